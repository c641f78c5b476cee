from atheria.cache import LocalCache
from atheria.config import load_settings
from atheria.doctor import run_checks


def test_doctor_basic(run_async):
    res = run_async(run_checks())
    assert 'config.data_dir' in res.details
    assert 'remote.tables' in res.details
    assert 'cache.dir' in res.details
    assert "notes" in res.details["remote.tables"]
    assert res.details["remote.ping"] == 1
    assert res.ok, res.errors
    assert isinstance(res.warnings, list)


def test_doctor_reports_cache_contents(run_async):
    s = load_settings()
    LocalCache(s.cache_dir).save(s.default_user, [])
    res = run_async(run_checks())
    assert res.details["cache.exists"] is True
    assert res.details["cache.note_count"] == 0


def test_doctor_warns_on_corrupt_cache(run_async):
    s = load_settings()
    cache = LocalCache(s.cache_dir)
    path = s.cache_dir / f"{cache.key_for(s.default_user)}.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("[{broken", encoding="utf-8")
    res = run_async(run_checks())
    assert any("corrupt" in w for w in res.warnings)
    assert res.ok
