import pytest

from atheria.auth import UserSession
from atheria.config import Settings, load_settings


def test_settings_from_temp_config():
    s = load_settings()
    assert s.default_user == "alice"
    assert s.debounce_ms == 500
    assert s.saved_display_ms == 2000
    assert s.remote_allowed is False
    assert s.state_dir.exists()
    assert s.cache_dir == s.state_dir / "cache"
    assert s.remote_url == f"sqlite+aiosqlite:///{s.state_dir / 'remote.db'}"


def test_settings_defaults_derive_from_data_dir(tmp_path):
    s = Settings({"data_dir": str(tmp_path / "d")})
    assert s.import_dir == tmp_path / "d" / "import"
    assert s.archive_dir == tmp_path / "d" / "import" / "archive"
    assert s.report_times["weekly"] == "Sun 18:00"
    assert s.poll_interval == 0


def test_missing_config_raises(tmp_path, monkeypatch):
    empty = tmp_path / "empty"
    empty.mkdir()
    monkeypatch.setenv("ATHERIA_CONFIG", str(empty / "nope.toml"))
    monkeypatch.chdir(empty)
    monkeypatch.setenv("HOME", str(empty))
    with pytest.raises(FileNotFoundError):
        load_settings()


def test_user_session_notifies_and_validates():
    auth = UserSession()
    seen = []
    unsubscribe = auth.subscribe(seen.append)
    auth.sign_in("alice")
    auth.sign_in("alice")
    auth.sign_out()
    assert seen == [None, "alice", None]
    unsubscribe()
    auth.sign_in("bob")
    assert seen == [None, "alice", None]
    with pytest.raises(ValueError):
        auth.sign_in("../root")
