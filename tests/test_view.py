from datetime import date, datetime, timedelta

import pytest

from atheria.note import MoodEntry, Note
from atheria.utils import ms_from_datetime
from atheria.view import available_moods, project, streak


def _notes():
    return [
        Note(id="1", title="banana", content="walk in the park", created_at=3, updated_at=30, tags=("outdoors",)),
        Note(id="2", title="Apple", content="rainy", created_at=1, updated_at=10, mood="calm", is_favorite=True),
        Note(id="3", title="cherry", content="work stress", created_at=2, updated_at=20,
             mood="calm", mood_history=(MoodEntry("calm", 6, "#a", 1), MoodEntry("anxious", 3, "#b", 2))),
        Note(id="4", title="Chapter one", content="It was a dark night", created_at=4, updated_at=40,
             type="novel", novel_category="chapter"),
        Note(id="5", title="Mira", content="protagonist", created_at=5, updated_at=50,
             type="novel", novel_category="character"),
    ]


def test_default_view_is_journal_by_updated_desc():
    assert [n.id for n in project(_notes())] == ["1", "3", "2"]


def test_search_matches_title_content_and_tags():
    assert [n.id for n in project(_notes(), search_term="PARK")] == ["1"]
    assert [n.id for n in project(_notes(), search_term="outdoor")] == ["1"]
    assert [n.id for n in project(_notes(), search_term="apple")] == ["2"]


def test_mood_filter_uses_latest_history_or_legacy_mood():
    # note 3 used to be calm, it is anxious now
    assert [n.id for n in project(_notes(), mood_filter="calm")] == ["2"]
    assert [n.id for n in project(_notes(), mood_filter="anxious")] == ["3"]


def test_favorites_and_types():
    assert [n.id for n in project(_notes(), favorites_only=True)] == ["2"]
    assert [n.id for n in project(_notes(), type_filter="novel")] == ["5", "4"]
    assert [n.id for n in project(_notes(), type_filter="novel", category_filter="character")] == ["5"]
    assert len(project(_notes(), type_filter=None)) == 5


def test_sorting():
    assert [n.id for n in project(_notes(), sort_by="title", sort_order="asc")] == ["2", "1", "3"]
    assert [n.id for n in project(_notes(), sort_by="createdAt", sort_order="asc")] == ["2", "3", "1"]
    with pytest.raises(ValueError):
        project(_notes(), sort_by="mood")


def test_equal_keys_keep_collection_order():
    notes = [Note(id=str(i), created_at=1, updated_at=1) for i in range(5)]
    assert [n.id for n in project(notes)] == ["0", "1", "2", "3", "4"]
    assert [n.id for n in project(notes, sort_order="asc")] == ["0", "1", "2", "3", "4"]


def test_untyped_documents_count_as_journal():
    legacy = Note(id="old", created_at=1, updated_at=1, type=None)
    assert [n.id for n in project([legacy])] == ["old"]


def test_available_moods():
    assert available_moods(_notes()) == ["anxious", "calm"]


def _on(day: date) -> Note:
    ms = ms_from_datetime(datetime(day.year, day.month, day.day, 9, 30))
    return Note(id=str(day), created_at=ms, updated_at=ms)


def test_streak_counts_back_from_today_or_yesterday():
    today = date(2024, 5, 10)
    days = [today - timedelta(days=i) for i in range(3)]
    assert streak([_on(d) for d in days], today=today) == 3

    # nothing yet today keeps yesterday's streak alive
    assert streak([_on(d) for d in days[1:]], today=today) == 2

    # a gap of two days ends it
    assert streak([_on(d) for d in days[2:]], today=today) == 0
    assert streak([], today=today) == 0


def test_streak_counts_each_day_once():
    today = date(2024, 5, 10)
    notes = [_on(today), _on(today), _on(today - timedelta(days=1))]
    assert streak(notes, today=today) == 2
