"""
Reconciliation of local optimistic edits with remote snapshots.

All changes to the in-memory collection go through `reduce`, a pure function
over tagged events. The merge rule is last-writer-wins on the client
`updated_at` clock: a local copy survives a snapshot only while it is strictly
newer than the snapshot's copy.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Optional, Sequence, Union

from atheria.note import Note, toggle_favorite


@dataclass(frozen=True)
class SyncState:
    notes: tuple[Note, ...] = ()
    selected_id: Optional[str] = None
    # Created locally, not yet seen in any snapshot
    pending_creates: frozenset[str] = frozenset()
    # Deleted locally, possibly still present in snapshots
    pending_deletes: frozenset[str] = frozenset()

    def get(self, note_id: Optional[str]) -> Optional[Note]:
        if note_id is None:
            return None
        for n in self.notes:
            if n.id == note_id:
                return n
        return None

    @property
    def selected(self) -> Optional[Note]:
        return self.get(self.selected_id)


# ---------------------------------------------------------------------
# events
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class LocalCreate:
    note: Note


@dataclass(frozen=True)
class LocalEdit:
    note: Note


@dataclass(frozen=True)
class RemoteSnapshot:
    notes: tuple[Note, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class OptimisticDelete:
    note_id: str


@dataclass(frozen=True)
class FavoriteToggled:
    note_id: str


@dataclass(frozen=True)
class Select:
    note_id: Optional[str]


@dataclass(frozen=True)
class Reset:
    notes: tuple[Note, ...] = field(default_factory=tuple)
    # Ids from an earlier run whose create write has not been confirmed
    pending_creates: frozenset[str] = frozenset()


Event = Union[LocalCreate, LocalEdit, RemoteSnapshot, OptimisticDelete, FavoriteToggled, Select, Reset]


# ---------------------------------------------------------------------
# merge
# ---------------------------------------------------------------------

def merge_note(local: Optional[Note], remote: Note) -> Note:
    """Keep local only when strictly newer; ties go to the remote copy."""
    if local is not None and local.updated_at > remote.updated_at:
        return local
    return remote


def _apply_snapshot(state: SyncState, remote_notes: Sequence[Note]) -> SyncState:
    local = {n.id: n for n in state.notes}
    remote_ids = {n.id for n in remote_notes}

    merged = [
        merge_note(local.get(r.id), r)
        for r in remote_notes
        if r.id not in state.pending_deletes
    ]
    still_pending = frozenset(
        i for i in state.pending_creates if i not in remote_ids and i in local
    )
    # Local-only ids that are not pending creations are remote deletions
    kept = [n for n in state.notes if n.id in still_pending]
    notes = tuple(kept + merged)

    selected = state.selected_id
    if selected is not None and all(n.id != selected for n in notes):
        selected = None

    return SyncState(
        notes=notes,
        selected_id=selected,
        pending_creates=still_pending,
        pending_deletes=frozenset(i for i in state.pending_deletes if i in remote_ids),
    )


def _replace_note(notes: tuple[Note, ...], note: Note) -> tuple[Note, ...]:
    return tuple(note if n.id == note.id else n for n in notes)


def reduce(state: SyncState, event: Event) -> SyncState:
    if isinstance(event, RemoteSnapshot):
        return _apply_snapshot(state, event.notes)

    if isinstance(event, LocalCreate):
        return replace(
            state,
            notes=(event.note,) + tuple(n for n in state.notes if n.id != event.note.id),
            pending_creates=state.pending_creates | {event.note.id},
        )

    if isinstance(event, LocalEdit):
        # Edits to a note deleted meanwhile are dropped
        if state.get(event.note.id) is None:
            return state
        return replace(state, notes=_replace_note(state.notes, event.note))

    if isinstance(event, FavoriteToggled):
        current = state.get(event.note_id)
        if current is None:
            return state
        return replace(state, notes=_replace_note(state.notes, toggle_favorite(current)))

    if isinstance(event, OptimisticDelete):
        return replace(
            state,
            notes=tuple(n for n in state.notes if n.id != event.note_id),
            selected_id=None if state.selected_id == event.note_id else state.selected_id,
            pending_creates=state.pending_creates - {event.note_id},
            pending_deletes=state.pending_deletes | {event.note_id},
        )

    if isinstance(event, Select):
        if event.note_id is not None and state.get(event.note_id) is None:
            return state
        return replace(state, selected_id=event.note_id)

    if isinstance(event, Reset):
        ids = {n.id for n in event.notes}
        return SyncState(
            notes=tuple(event.notes),
            pending_creates=frozenset(i for i in event.pending_creates if i in ids),
        )

    raise TypeError(f"unknown sync event: {event!r}")
