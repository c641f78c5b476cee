import json

import pytest

from atheria.cache import LEGACY_STORAGE_KEY, LocalCache
from atheria.errors import ParseError
from atheria.note import Note, note_to_dict


def _notes():
    return [
        Note(id="a", title="First", created_at=1, updated_at=2, tags=("x",)),
        Note(id="b", title="Second", created_at=3, updated_at=4, is_favorite=True),
    ]


def test_save_and_load_per_user(tmp_path):
    cache = LocalCache(tmp_path)
    cache.save("alice", _notes())
    loaded = cache.load("alice")
    assert [n.id for n in loaded] == ["a", "b"]
    assert loaded[1].is_favorite
    assert cache.load("bob") == []
    assert cache.exists("alice") and not cache.exists("bob")


def test_key_includes_user_id(tmp_path):
    cache = LocalCache(tmp_path)
    assert cache.key_for("alice") == "atheria-journal-notes-alice"
    with pytest.raises(ValueError):
        cache.key_for("../etc")


def test_corrupt_entry_loads_as_empty(tmp_path):
    cache = LocalCache(tmp_path)
    (tmp_path / "atheria-journal-notes-alice.json").write_text("{not json", encoding="utf-8")
    assert cache.load("alice") == []
    with pytest.raises(ParseError):
        cache.read_entry(cache.key_for("alice"))

    (tmp_path / "atheria-journal-notes-alice.json").write_text('{"id": "a"}', encoding="utf-8")
    assert cache.load("alice") == []


def test_legacy_entry_is_adopted_and_kept(tmp_path):
    cache = LocalCache(tmp_path)
    legacy_path = tmp_path / f"{LEGACY_STORAGE_KEY}.json"
    legacy_path.write_text(json.dumps([note_to_dict(n) for n in _notes()]), encoding="utf-8")

    loaded = cache.load("alice")
    assert [n.id for n in loaded] == ["a", "b"]
    assert legacy_path.exists()

    # once the user has an entry of their own, the legacy one is ignored
    cache.save("alice", loaded[:1])
    assert [n.id for n in cache.load("alice")] == ["a"]


def test_empty_user_entry_does_not_fall_back_to_legacy(tmp_path):
    cache = LocalCache(tmp_path)
    (tmp_path / f"{LEGACY_STORAGE_KEY}.json").write_text(
        json.dumps([note_to_dict(n) for n in _notes()]), encoding="utf-8"
    )
    cache.save("alice", [])
    assert cache.load("alice") == []


def test_save_leaves_no_temp_files(tmp_path):
    cache = LocalCache(tmp_path / "nested")
    cache.save("alice", _notes())
    cache.save("alice", _notes()[:1])
    assert [p.name for p in (tmp_path / "nested").iterdir()] == ["atheria-journal-notes-alice.json"]


def test_one_bad_note_does_not_discard_the_rest(tmp_path):
    cache = LocalCache(tmp_path)
    good = [note_to_dict(n) for n in _notes()]
    bad = {**good[0], "id": "c", "novelCategory": "plot"}
    (tmp_path / "atheria-journal-notes-alice.json").write_text(json.dumps(good + [bad]), encoding="utf-8")
    assert [n.id for n in cache.load("alice")] == ["a", "b"]


def test_pending_ids_kept_beside_entry(tmp_path):
    cache = LocalCache(tmp_path)
    cache.save("alice", _notes(), pending={"b"})
    assert cache.load_pending("alice") == {"b"}
    assert cache.load_pending("bob") == frozenset()

    cache.save("alice", _notes())
    assert cache.load_pending("alice") == frozenset()
    assert sorted(p.name for p in tmp_path.iterdir()) == ["atheria-journal-notes-alice.json"]
