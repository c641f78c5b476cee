"""
Journal/novel note entity.

Notes are immutable values: every change produces a new Note, so code holding
an older reference never observes a half-applied edit. Identity is the `id`;
two Notes with the same id compare equal whatever their content.
"""
from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from typing import Any, Literal, Optional

from atheria.errors import ParseError
from atheria.utils import new_note_id, now_ms

NoteType = Literal["journal", "novel"]
NovelCategory = Literal["chapter", "character", "location", "lore", "idea"]

NOTE_TYPES = ("journal", "novel")
NOVEL_CATEGORIES = ("chapter", "character", "location", "lore", "idea")

# Shown for legacy notes that carry a mood but no history
LEGACY_MOOD_SCORE = 5
LEGACY_MOOD_COLOR = "#fb7185"


@dataclass(frozen=True)
class MoodEntry:
    mood: str
    score: float
    color: str
    timestamp: int

    def to_dict(self) -> dict[str, Any]:
        return {"mood": self.mood, "score": self.score, "color": self.color, "timestamp": self.timestamp}


@dataclass(frozen=True, eq=False)
class Note:
    id: str
    title: str = ""
    content: str = ""
    created_at: int = 0
    updated_at: int = 0
    tags: tuple[str, ...] = ()
    mood: Optional[str] = None
    mood_history: tuple[MoodEntry, ...] = ()
    ai_summary: Optional[str] = None
    ai_reflection: Optional[str] = None
    is_favorite: bool = False
    type: NoteType = "journal"
    novel_category: Optional[NovelCategory] = None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Note):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)


@dataclass(frozen=True)
class AnalysisResult:
    """Structured output of a mood analysis call."""
    mood: str
    mood_score: float
    mood_color: str
    tags: tuple[str, ...] = field(default_factory=tuple)
    summary: str = ""
    reflection_question: str = ""


# ---------------------------------------------------------------------
# constructors
# ---------------------------------------------------------------------

def new_note(
    type: NoteType = "journal",
    novel_category: Optional[NovelCategory] = None,
    *,
    now: int | None = None,
) -> Note:
    ts = now if now is not None else now_ms()
    return Note(
        id=new_note_id(),
        created_at=ts,
        updated_at=ts,
        type=type,
        novel_category=(novel_category or "chapter") if type == "novel" else None,
    )


def new_imported_note(
    title: str,
    content: str,
    created_at: int,
    type: NoteType = "journal",
    *,
    now: int | None = None,
) -> Note:
    return Note(
        id=new_note_id(),
        title=title,
        content=content,
        created_at=created_at,
        updated_at=now if now is not None else now_ms(),
        type=type,
    )


_MUTABLE_FIELDS = {f.name for f in fields(Note)} - {"id", "updated_at"}


def mutate_note(note: Note, *, now: int | None = None, **changes: Any) -> Note:
    """Return a copy of note with changes applied and updated_at refreshed."""
    unknown = set(changes) - _MUTABLE_FIELDS
    if unknown:
        raise TypeError(f"cannot change note field(s): {', '.join(sorted(unknown))}")
    if "tags" in changes:
        changes["tags"] = tuple(changes["tags"])
    if "mood_history" in changes:
        changes["mood_history"] = tuple(changes["mood_history"])
    return replace(note, updated_at=now if now is not None else now_ms(), **changes)


def toggle_favorite(note: Note) -> Note:
    # A direct flip: favoriting is not an edit and keeps updated_at
    return replace(note, is_favorite=not note.is_favorite)


# ---------------------------------------------------------------------
# editor helpers
# ---------------------------------------------------------------------

def add_tag(note: Note, tag: str, *, now: int | None = None) -> Note:
    clean = tag.strip()
    if clean.startswith("#"):
        clean = clean[1:]
    if not clean or clean in note.tags:
        return note
    return mutate_note(note, now=now, tags=note.tags + (clean,))


def remove_tag(note: Note, tag: str, *, now: int | None = None) -> Note:
    return mutate_note(note, now=now, tags=tuple(t for t in note.tags if t != tag))


def current_mood(note: Note) -> Optional[MoodEntry]:
    """Latest mood entry; legacy notes get a synthetic one from `mood`."""
    if note.mood_history:
        return note.mood_history[-1]
    if note.mood:
        return MoodEntry(mood=note.mood, score=LEGACY_MOOD_SCORE, color=LEGACY_MOOD_COLOR, timestamp=note.updated_at)
    return None


def recolor_mood(note: Note, color: str, *, now: int | None = None) -> Note:
    if not note.mood_history:
        if not note.mood:
            return note
        legacy = MoodEntry(mood=note.mood, score=LEGACY_MOOD_SCORE, color=color, timestamp=note.updated_at)
        return mutate_note(note, now=now, mood_history=(legacy,))
    last = replace(note.mood_history[-1], color=color)
    return mutate_note(note, now=now, mood_history=note.mood_history[:-1] + (last,))


def with_analysis(note: Note, result: AnalysisResult, *, now: int | None = None) -> Note:
    ts = now if now is not None else now_ms()
    entry = MoodEntry(mood=result.mood, score=result.mood_score, color=result.mood_color, timestamp=ts)
    tags = list(note.tags)
    for t in result.tags:
        if t not in tags:
            tags.append(t)
    return mutate_note(
        note,
        now=ts,
        mood=result.mood,
        mood_history=note.mood_history + (entry,),
        ai_summary=result.summary,
        ai_reflection=result.reflection_question,
        tags=tags,
    )


def category_of(note: Note) -> Optional[str]:
    if note.type != "novel":
        return None
    return note.novel_category or "chapter"


# ---------------------------------------------------------------------
# document format (camelCase keys, shared by cache and remote store)
# ---------------------------------------------------------------------

def note_to_dict(note: Note) -> dict[str, Any]:
    d: dict[str, Any] = {
        "id": note.id,
        "title": note.title,
        "content": note.content,
        "createdAt": note.created_at,
        "updatedAt": note.updated_at,
        "tags": list(note.tags),
        "isFavorite": note.is_favorite,
        "type": note.type,
    }
    if note.mood is not None:
        d["mood"] = note.mood
    if note.mood_history:
        d["moodHistory"] = [m.to_dict() for m in note.mood_history]
    if note.ai_summary is not None:
        d["aiSummary"] = note.ai_summary
    if note.ai_reflection is not None:
        d["aiReflection"] = note.ai_reflection
    if note.novel_category is not None:
        d["novelCategory"] = note.novel_category
    return d


def _int_ms(raw: dict, key: str, default: int | None = None) -> int:
    v = raw.get(key, default)
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        raise ParseError(f"note field {key!r} must be a number, got {v!r}")
    return int(v)


def note_from_dict(raw: Any) -> Note:
    """Decode a stored document. Unknown keys (e.g. userId) are ignored."""
    if not isinstance(raw, dict):
        raise ParseError(f"note document must be an object, got {type(raw).__name__}")
    note_id = raw.get("id")
    if not isinstance(note_id, str) or not note_id:
        raise ParseError("note document has no id")

    created = _int_ms(raw, "createdAt")
    updated = _int_ms(raw, "updatedAt", created)

    tags = raw.get("tags") or []
    if not isinstance(tags, list):
        raise ParseError(f"note {note_id}: tags must be a list")

    history: list[MoodEntry] = []
    for m in raw.get("moodHistory") or []:
        try:
            history.append(
                MoodEntry(
                    mood=str(m["mood"]),
                    score=float(m["score"]),
                    color=str(m["color"]),
                    timestamp=int(m["timestamp"]),
                )
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ParseError(f"note {note_id}: bad mood history entry {m!r}") from e

    note_type = raw.get("type") or "journal"
    if note_type not in NOTE_TYPES:
        raise ParseError(f"note {note_id}: unknown type {note_type!r}")
    category = raw.get("novelCategory")
    if category is not None and category not in NOVEL_CATEGORIES:
        raise ParseError(f"note {note_id}: unknown novel category {category!r}")

    return Note(
        id=note_id,
        title=str(raw.get("title") or ""),
        content=str(raw.get("content") or ""),
        created_at=created,
        updated_at=updated,
        tags=tuple(str(t) for t in tags),
        mood=raw.get("mood"),
        mood_history=tuple(history),
        ai_summary=raw.get("aiSummary"),
        ai_reflection=raw.get("aiReflection"),
        is_favorite=bool(raw.get("isFavorite", False)),
        type=note_type,
        novel_category=category,
    )
