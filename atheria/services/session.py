"""
The journal session: one signed-in user's notes, kept in step with the remote
store.

Owns the in-memory SyncState and is its only writer. Every change goes through
`_dispatch`, which runs the reducer, refreshes the local cache and notifies
listeners. Edits are optimistic and reach the remote store through the
debounced SavePipeline; creations, favorites and deletes are written at once.
"""
from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Callable, Optional

from atheria.auth import UserSession
from atheria.cache import LocalCache
from atheria.config import Settings
from atheria.errors import RemoteWriteError
from atheria.log import logger
from atheria.llm.base import LLMProvider
from atheria.note import (
    AnalysisResult,
    Note,
    NoteType,
    NovelCategory,
    add_tag,
    mutate_note,
    new_imported_note,
    new_note,
    recolor_mood,
    remove_tag,
    with_analysis,
)
from atheria.remote import RemoteStore, Subscription
from atheria.services.ingest import prepare_import
from atheria.services.saver import SavePipeline
from atheria.services.sync import (
    Event,
    FavoriteToggled,
    LocalCreate,
    LocalEdit,
    OptimisticDelete,
    RemoteSnapshot,
    Reset,
    Select,
    SyncState,
    reduce,
)
from atheria.timers import LoopTimers, Timers
from atheria.view import project

StateListener = Callable[[SyncState], None]


class JournalSession:
    def __init__(
        self,
        store: RemoteStore,
        cache: LocalCache,
        timers: Timers,
        provider: Optional[LLMProvider] = None,
        *,
        debounce_ms: int = 500,
        saved_display_ms: int = 2000,
    ):
        self.store = store
        self.cache = cache
        self.provider = provider
        self.state = SyncState()
        self.user_id: Optional[str] = None
        self.saver = SavePipeline(self._write, timers, debounce_ms=debounce_ms, saved_display_ms=saved_display_ms)
        self._subscription: Optional[Subscription] = None
        self._rescope: Optional[asyncio.Task] = None
        self._listeners: list[StateListener] = []

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        store: RemoteStore,
        *,
        timers: Optional[Timers] = None,
        provider: Optional[LLMProvider] = None,
    ) -> "JournalSession":
        return cls(
            store,
            LocalCache(settings.cache_dir),
            timers or LoopTimers(),
            provider,
            debounce_ms=settings.debounce_ms,
            saved_display_ms=settings.saved_display_ms,
        )

    # -----------------------------------------------------------------
    # state
    # -----------------------------------------------------------------

    @property
    def notes(self) -> list[Note]:
        return list(self.state.notes)

    @property
    def selected(self) -> Optional[Note]:
        return self.state.selected

    def get(self, note_id: str) -> Optional[Note]:
        return self.state.get(note_id)

    def on_change(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)
        return _unsubscribe

    def _dispatch(self, event: Event) -> None:
        self.state = reduce(self.state, event)
        if self.user_id is not None:
            self.cache.save(self.user_id, self.state.notes, pending=self.state.pending_creates)
        for listener in list(self._listeners):
            listener(self.state)

    def view(self, **filters: Any) -> list[Note]:
        return project(self.state.notes, **filters)

    # -----------------------------------------------------------------
    # user scope
    # -----------------------------------------------------------------

    async def start(self, user_id: str) -> None:
        """Show cached notes for user_id, then follow the remote store."""
        if self.user_id == user_id and self._subscription is not None:
            return
        await self.stop()
        self.user_id = user_id
        cached = self.cache.load(user_id)
        unsent = self.cache.load_pending(user_id)
        self._dispatch(Reset(tuple(cached), unsent))
        logger.info(f"[sync] {user_id}: {len(cached)} cached note(s)")
        self._subscription = await self.store.subscribe(user_id, self._on_snapshot)
        await self._resend_pending()

    async def _resend_pending(self) -> None:
        """Write notes created in an earlier run whose create never reached the store."""
        for note_id in sorted(self.state.pending_creates):
            note = self.state.get(note_id)
            if note is not None:
                logger.info(f"[sync] resending offline note {note_id}")
                await self._write_now(note)

    async def stop(self) -> None:
        """Flush pending saves and stop following the current user."""
        if self._subscription is not None:
            await self._subscription.unsubscribe()
            self._subscription = None
        self.saver.flush()
        await self.saver.drain()
        self.user_id = None
        self.state = SyncState()

    def follow(self, auth: UserSession) -> Callable[[], None]:
        """Re-scope to whoever is signed in; returns an unsubscribe function."""
        def _on_user(user_id: Optional[str]) -> None:
            self._rescope = asyncio.ensure_future(self._switch_user(self._rescope, user_id))
        return auth.subscribe(_on_user)

    async def _switch_user(self, previous: Optional[asyncio.Task], user_id: Optional[str]) -> None:
        if previous is not None:
            await previous
        if user_id is None:
            await self.stop()
        else:
            await self.start(user_id)

    async def settled(self) -> None:
        """Wait for the latest user switch to finish."""
        if self._rescope is not None:
            await self._rescope

    def _on_snapshot(self, notes: list[Note]) -> None:
        before = {n.id for n in self.state.notes}
        self._dispatch(RemoteSnapshot(tuple(notes)))
        gone = before - {n.id for n in self.state.notes}
        if gone:
            logger.info(f"[sync] {len(gone)} note(s) removed remotely")

    # -----------------------------------------------------------------
    # remote writes
    # -----------------------------------------------------------------

    async def _write(self, note: Note) -> None:
        if self.user_id is None:
            raise RemoteWriteError(f"note {note.id}: not signed in")
        await self.store.upsert(note, self.user_id)

    async def _write_now(self, note: Note) -> bool:
        try:
            await self._write(note)
        except RemoteWriteError as e:
            logger.error(f"[sync] {e}")
            return False
        return True

    # -----------------------------------------------------------------
    # operations
    # -----------------------------------------------------------------

    async def create_note(
        self,
        type: NoteType = "journal",
        novel_category: Optional[NovelCategory] = None,
    ) -> Note:
        note = new_note(type, novel_category)
        self._dispatch(LocalCreate(note))
        self._dispatch(Select(note.id))
        await self._write_now(note)
        return note

    async def import_note(self, title: str, content: str, created_at: int, type: NoteType = "journal") -> Note:
        note = new_imported_note(title, content, created_at, type)
        self._dispatch(LocalCreate(note))
        self._dispatch(Select(note.id))
        await self._write_now(note)
        return note

    async def import_file(self, path: Path, type: NoteType = "journal") -> Note:
        res = prepare_import(path)
        if not res.date_detected:
            logger.info(f"[import] no date found in {path.name}; using file time")
        return await self.import_note(res.title, res.content, res.created_at, type)

    def select(self, note_id: Optional[str]) -> Optional[Note]:
        self._dispatch(Select(note_id))
        return self.selected

    def _edit(self, note_id: str, fn: Callable[[Note], Note]) -> Optional[Note]:
        current = self.state.get(note_id)
        if current is None:
            return None
        updated = fn(current)
        if updated is current:
            return current
        if updated.created_at > updated.updated_at:
            logger.debug(f"[sync] note {note_id} is backdated after its last edit")
        self._dispatch(LocalEdit(updated))
        self.saver.schedule(updated)
        return updated

    def update_note(self, **changes: Any) -> Optional[Note]:
        """Apply changes to the selected note and schedule its save."""
        if self.state.selected_id is None:
            return None
        return self._edit(self.state.selected_id, lambda n: mutate_note(n, **changes))

    def add_tag(self, note_id: str, tag: str) -> Optional[Note]:
        return self._edit(note_id, lambda n: add_tag(n, tag))

    def remove_tag(self, note_id: str, tag: str) -> Optional[Note]:
        return self._edit(note_id, lambda n: remove_tag(n, tag))

    def recolor_mood(self, note_id: str, color: str) -> Optional[Note]:
        return self._edit(note_id, lambda n: recolor_mood(n, color))

    async def toggle_favorite(self, note_id: str) -> Optional[Note]:
        self._dispatch(FavoriteToggled(note_id))
        note = self.state.get(note_id)
        if note is None:
            return None
        # A debounced edit captured before the toggle must carry the new flag
        self.saver.recapture(note)
        await self.saver.drain()
        # Not rolled back on failure
        await self._write_now(note)
        return note

    async def delete_note(self, note_id: str) -> None:
        self._dispatch(OptimisticDelete(note_id))
        self.saver.discard(note_id)
        if self.user_id is None:
            return
        # A write already on its way must land before the remove
        await self.saver.drain()
        try:
            await self.store.remove(note_id, self.user_id)
        except RemoteWriteError as e:
            # The local deletion stays; no retry
            logger.error(f"[sync] failed to delete {note_id}: {e}")

    # -----------------------------------------------------------------
    # AI assistance
    # -----------------------------------------------------------------

    def _require_provider(self) -> LLMProvider:
        if self.provider is None:
            raise RuntimeError("no AI provider configured for this session")
        return self.provider

    async def analyze(self, note_id: Optional[str] = None) -> AnalysisResult:
        """Analyze a note (default: selected) and record mood, summary, tags."""
        provider = self._require_provider()
        note = self.state.get(note_id or self.state.selected_id)
        if note is None:
            raise KeyError(note_id or "no note selected")
        result = await asyncio.to_thread(provider.analyze, note.content)
        self._edit(note.id, lambda n: with_analysis(n, result))
        return result

    async def continue_writing(self, note_id: Optional[str] = None) -> str:
        """Append a continuation to a note (default: selected); returns the added text."""
        provider = self._require_provider()
        note = self.state.get(note_id or self.state.selected_id)
        if note is None:
            return ""
        continuation = await asyncio.to_thread(provider.continue_text, note.content)
        if not continuation:
            return ""

        def _append(n: Note) -> Note:
            spacer = "" if n.content[-1:].isspace() else " "
            return mutate_note(n, content=n.content + spacer + continuation)

        self._edit(note.id, _append)
        return continuation

