"""
Read-only projections of a note collection: filter, sort, mood list, streak.
"""
from __future__ import annotations

from datetime import date, timedelta
from typing import Iterable, Literal, Optional, Sequence

from atheria.note import Note, category_of, current_mood
from atheria.utils import datetime_from_ms

SortKey = Literal["createdAt", "updatedAt", "title"]
SortOrder = Literal["asc", "desc"]

SORT_KEYS = ("createdAt", "updatedAt", "title")


def mood_of(note: Note) -> Optional[str]:
    entry = current_mood(note)
    return entry.mood if entry is not None else None


def matches_search(note: Note, term: str) -> bool:
    if not term:
        return True
    t = term.lower()
    return (
        t in note.title.lower()
        or t in note.content.lower()
        or any(t in tag.lower() for tag in note.tags)
    )


def matches_type(note: Note, type_filter: Optional[str], category: Optional[str] = None) -> bool:
    if type_filter is None:
        return True
    # Documents written before novels existed carry no type
    if (note.type or "journal") != type_filter:
        return False
    if category is not None:
        return category_of(note) == category
    return True


def _sort_value(note: Note, sort_by: SortKey):
    if sort_by == "title":
        return (note.title or "").casefold()
    if sort_by == "createdAt":
        return note.created_at
    return note.updated_at


def project(
    notes: Iterable[Note],
    search_term: str = "",
    mood_filter: Optional[str] = None,
    favorites_only: bool = False,
    type_filter: Optional[str] = "journal",
    sort_by: SortKey = "updatedAt",
    sort_order: SortOrder = "desc",
    category_filter: Optional[str] = None,
) -> list[Note]:
    if sort_by not in SORT_KEYS:
        raise ValueError(f"unknown sort key: {sort_by}")
    filtered = [
        n for n in notes
        if matches_search(n, search_term)
        and (mood_filter is None or mood_of(n) == mood_filter)
        and (not favorites_only or n.is_favorite)
        and matches_type(n, type_filter, category_filter)
    ]
    # sorted() is stable in both directions, so ties keep collection order
    return sorted(filtered, key=lambda n: _sort_value(n, sort_by), reverse=(sort_order == "desc"))


def available_moods(notes: Iterable[Note]) -> list[str]:
    return sorted({m for m in (mood_of(n) for n in notes) if m})


def streak(notes: Sequence[Note], today: Optional[date] = None) -> int:
    """
    Consecutive days with at least one note created, counting back from today,
    or from yesterday when today has no entry yet.
    """
    days = {datetime_from_ms(n.created_at).date() for n in notes}
    today = today or date.today()
    if today in days:
        check = today
    elif today - timedelta(days=1) in days:
        check = today - timedelta(days=1)
    else:
        return 0
    count = 0
    while check in days:
        count += 1
        check -= timedelta(days=1)
    return count
