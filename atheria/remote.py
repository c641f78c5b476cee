# atheria/remote.py
from __future__ import annotations
import asyncio
import contextlib
from typing import Callable, List, Optional

from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from atheria.errors import ParseError, RemoteWriteError
from atheria.log import logger
from atheria.models import NoteDocument
from atheria.note import Note, note_from_dict, note_to_dict

SnapshotCallback = Callable[[List[Note]], None]


def _fingerprint(notes: List[Note]) -> frozenset[tuple[str, int]]:
    return frozenset((n.id, n.updated_at) for n in notes)


class Subscription:
    """Handle for a live per-user query. Call `unsubscribe()` on teardown."""

    def __init__(self, store: "RemoteStore", user_id: str, callback: SnapshotCallback):
        self._store = store
        self.user_id = user_id
        self._callback = callback
        self._active = True
        self._poll_task: Optional[asyncio.Task] = None
        self.fingerprint: Optional[frozenset] = None

    @property
    def active(self) -> bool:
        return self._active

    def _deliver(self, notes: List[Note]) -> None:
        if not self._active:
            return
        self.fingerprint = _fingerprint(notes)
        try:
            self._callback(list(notes))
        except Exception:
            logger.exception(f"[remote] snapshot listener for {self.user_id} failed")

    async def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        self._store._drop(self)
        if self._poll_task is not None:
            self._poll_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._poll_task
            self._poll_task = None


class RemoteStore:
    """
    Per-user note documents over a SQLAlchemy database.

    Every document row carries its owner; reads are always filtered by owner
    and writes refuse to touch another user's document.
    """

    def __init__(self, engine: AsyncEngine, session_factory: async_sessionmaker, *, poll_interval: float = 0.0):
        self.engine = engine
        self._session_factory = session_factory
        self.poll_interval = poll_interval
        self._subscriptions: list[Subscription] = []

    # -------- reads --------

    async def fetch_all(self, user_id: str) -> list[Note]:
        async with self._session_factory() as session:
            rows = (
                await session.execute(
                    select(NoteDocument)
                    .where(NoteDocument.user_id == user_id)
                    .order_by(NoteDocument.updated_at.desc())
                )
            ).scalars().all()
        notes: list[Note] = []
        for row in rows:
            try:
                notes.append(note_from_dict({**row.doc, "id": row.id}))
            except ParseError as e:
                logger.warning(f"[remote] skipping unreadable document {row.id}: {e}")
        return notes

    async def ping(self) -> int:
        async with self.engine.connect() as conn:
            return (await conn.execute(text("SELECT 1"))).scalar_one()

    # -------- live query --------

    async def subscribe(self, user_id: str, on_snapshot: SnapshotCallback) -> Subscription:
        """
        Deliver the full current set for user_id now and after every change.
        """
        sub = Subscription(self, user_id, on_snapshot)
        self._subscriptions.append(sub)
        sub._deliver(await self.fetch_all(user_id))
        if self.poll_interval > 0:
            sub._poll_task = asyncio.create_task(self._poll(sub))
        logger.debug(f"[remote] subscribed {user_id}")
        return sub

    def _drop(self, sub: Subscription) -> None:
        if sub in self._subscriptions:
            self._subscriptions.remove(sub)

    async def _poll(self, sub: Subscription) -> None:
        """Pick up writes made by other processes sharing the database."""
        while sub.active:
            await asyncio.sleep(self.poll_interval)
            try:
                notes = await self.fetch_all(sub.user_id)
            except SQLAlchemyError as e:
                logger.warning(f"[remote] poll failed for {sub.user_id}: {e}")
                continue
            if _fingerprint(notes) != sub.fingerprint:
                sub._deliver(notes)

    async def _notify(self, user_id: str) -> None:
        listeners = [s for s in self._subscriptions if s.user_id == user_id and s.active]
        if not listeners:
            return
        try:
            notes = await self.fetch_all(user_id)
        except SQLAlchemyError as e:
            # The write itself went through; the next change or poll re-delivers
            logger.warning(f"[remote] snapshot refresh failed for {user_id}: {e}")
            return
        for sub in listeners:
            sub._deliver(notes)

    # -------- writes --------

    async def upsert(self, note: Note, user_id: str) -> None:
        """Write or merge one document, stamping its owner."""
        doc = {**note_to_dict(note), "userId": user_id}
        try:
            async with self._session_factory() as session:
                row = await session.get(NoteDocument, note.id)
                if row is None:
                    session.add(NoteDocument(id=note.id, user_id=user_id, updated_at=note.updated_at, doc=doc))
                else:
                    if row.user_id != user_id:
                        raise RemoteWriteError(f"note {note.id} belongs to another user")
                    row.doc = {**row.doc, **doc}
                    row.updated_at = note.updated_at
                await session.commit()
        except SQLAlchemyError as e:
            raise RemoteWriteError(f"failed to write note {note.id}: {e}") from e
        await self._notify(user_id)

    async def remove(self, note_id: str, user_id: str | None = None) -> None:
        """Delete one document by id; a missing document is not an error."""
        try:
            async with self._session_factory() as session:
                row = await session.get(NoteDocument, note_id)
                if row is None:
                    return
                if user_id is not None and row.user_id != user_id:
                    raise RemoteWriteError(f"note {note_id} belongs to another user")
                owner = row.user_id
                await session.delete(row)
                await session.commit()
        except SQLAlchemyError as e:
            raise RemoteWriteError(f"failed to delete note {note_id}: {e}") from e
        await self._notify(owner)

    async def close(self) -> None:
        for sub in list(self._subscriptions):
            await sub.unsubscribe()
        await self.engine.dispose()
