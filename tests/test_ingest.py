import os
from datetime import datetime

import pytest

from atheria.services.ingest import (
    DATE_SCAN_CHARS,
    detect_date,
    discover_importable,
    prepare_import,
    safe_move_to_archive,
)
from atheria.utils import datetime_from_ms


@pytest.mark.parametrize(
    "text, expected",
    [
        ("March 3, 2023\nWent for a walk.", datetime(2023, 3, 3)),
        ("Dear diary, on 14th of February 2021 we met.", datetime(2021, 2, 14)),
        ("Log 2022-11-05: quiet day", datetime(2022, 11, 5)),
        ("12/25/2020 - christmas", datetime(2020, 12, 25)),
        ("Sept. 9th, 2019", datetime(2019, 9, 9)),
    ],
)
def test_detect_date_formats(text, expected):
    assert detect_date(text) == expected


def test_detect_date_prefers_earliest_in_text():
    text = "Written 2024-01-02, remembering July 4, 1999."
    assert detect_date(text) == datetime(2024, 1, 2)


def test_detect_date_skips_impossible_and_late_dates():
    assert detect_date("2023-02-30 never happened") is None
    assert detect_date("no dates here") is None
    late = "x" * DATE_SCAN_CHARS + " March 3, 2023"
    assert detect_date(late) is None


def test_prepare_import_title_and_detected_date(tmp_path):
    p = tmp_path / "Seaside trip.md"
    p.write_text("March 3, 2023\nThe water was cold.", encoding="utf-8")
    r = prepare_import(p)
    assert r.title == "Seaside trip"
    assert r.content.startswith("March 3, 2023")
    assert r.date_detected
    assert datetime_from_ms(r.created_at).date() == datetime(2023, 3, 3).date()


def test_prepare_import_falls_back_to_mtime(tmp_path):
    p = tmp_path / "undated.txt"
    p.write_text("Nothing to date this.", encoding="utf-8")
    mtime = datetime(2020, 6, 1, 12, 0).timestamp()
    os.utime(p, (mtime, mtime))
    r = prepare_import(p)
    assert not r.date_detected
    assert r.created_at == int(mtime * 1000)


def test_prepare_import_rejects_unknown_types(tmp_path):
    p = tmp_path / "photo.png"
    p.write_bytes(b"\x89PNG")
    with pytest.raises(ValueError):
        prepare_import(p)


def test_discover_and_archive(tmp_path):
    inbox = tmp_path / "import"
    inbox.mkdir()
    (inbox / "b.txt").write_text("b", encoding="utf-8")
    (inbox / "a.md").write_text("a", encoding="utf-8")
    (inbox / "skip.pdf").write_text("x", encoding="utf-8")
    (inbox / ".hidden.txt").write_text("x", encoding="utf-8")
    (inbox / "archive").mkdir()
    (inbox / "archive" / "old.txt").write_text("old", encoding="utf-8")

    found = discover_importable(inbox)
    assert [p.name for p in found] == ["a.md", "b.txt"]

    archive = inbox / "archive"
    first = safe_move_to_archive(found[0], archive)
    assert first == archive / "a.md"
    (inbox / "a.md").write_text("again", encoding="utf-8")
    second = safe_move_to_archive(inbox / "a.md", archive)
    assert second != first and second.exists()
    assert discover_importable(tmp_path / "missing") == []
