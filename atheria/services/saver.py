"""
Debounced remote saves with a user-visible status.

A burst of edits produces one write carrying the last value of the burst.
Status moves idle -> saving -> saved -> idle, or saving -> error on a failed
write. Failed writes are not retried; the next edit schedules a fresh one.
"""
from __future__ import annotations

import asyncio
from enum import Enum
from typing import Awaitable, Callable, Optional

from atheria.errors import RemoteWriteError
from atheria.log import logger
from atheria.note import Note
from atheria.timers import TimerHandle, Timers

WriteFn = Callable[[Note], Awaitable[None]]
StatusListener = Callable[["SaveStatus"], None]


class SaveStatus(str, Enum):
    IDLE = "idle"
    SAVING = "saving"
    SAVED = "saved"
    ERROR = "error"


class SavePipeline:
    def __init__(
        self,
        write: WriteFn,
        timers: Timers,
        *,
        debounce_ms: int = 500,
        saved_display_ms: int = 2000,
    ):
        self._write = write
        self._timers = timers
        self.debounce = debounce_ms / 1000
        self.saved_display = saved_display_ms / 1000

        self._status = SaveStatus.IDLE
        self._pending: Optional[TimerHandle] = None
        self._pending_note: Optional[Note] = None
        self._reset: Optional[TimerHandle] = None
        self._inflight: set[asyncio.Task] = set()
        self._listeners: list[StatusListener] = []

    # -------- state --------

    @property
    def status(self) -> SaveStatus:
        return self._status

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    @property
    def is_busy(self) -> bool:
        return self._status is SaveStatus.SAVING or self._pending is not None

    def on_status(self, listener: StatusListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)
        return _unsubscribe

    def _set_status(self, status: SaveStatus) -> None:
        if status is self._status:
            return
        self._status = status
        for listener in list(self._listeners):
            listener(status)

    # -------- scheduling --------

    def schedule(self, note: Note) -> None:
        """Replace any pending write with one for `note` after the quiet period."""
        if self._pending is not None:
            self._pending.cancel()
            if self._pending_note is not None and self._pending_note.id != note.id:
                # Another note's edit is waiting: send it now rather than lose it
                self._fire()
        if self._reset is not None:
            self._reset.cancel()
            self._reset = None
        # The closure captures this exact value, whatever is selected later
        self._pending_note = note
        self._pending = self._timers.call_later(self.debounce, self._fire)
        self._set_status(SaveStatus.SAVING)

    def _fire(self) -> None:
        note = self._pending_note
        self._pending = None
        self._pending_note = None
        if note is None:
            return
        task = asyncio.ensure_future(self._run(note))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _run(self, note: Note) -> None:
        try:
            await self._write(note)
        except RemoteWriteError as e:
            logger.error(f"[save] note {note.id} not saved: {e}")
            self._set_status(SaveStatus.ERROR)
            return
        logger.debug(f"[save] note {note.id} saved")
        if self._pending is not None or self._others_inflight():
            # A newer edit is queued or another note's write is still out
            return
        self._set_status(SaveStatus.SAVED)
        self._reset = self._timers.call_later(self.saved_display, self._back_to_idle)

    def _others_inflight(self) -> bool:
        current = asyncio.current_task()
        return any(t is not current and not t.done() for t in self._inflight)

    def _back_to_idle(self) -> None:
        self._reset = None
        if self._status is SaveStatus.SAVED:
            self._set_status(SaveStatus.IDLE)

    def pending_for(self, note_id: str) -> Optional[Note]:
        if self._pending is not None and self._pending_note is not None and self._pending_note.id == note_id:
            return self._pending_note
        return None

    def recapture(self, note: Note) -> None:
        """Swap the value a pending write for the same note will send."""
        if self.pending_for(note.id) is not None:
            self._pending_note = note

    def discard(self, note_id: str) -> None:
        """Drop a pending write for note_id (the note was deleted)."""
        if self.pending_for(note_id) is None:
            return
        self._pending.cancel()
        self._pending = None
        self._pending_note = None
        if not self._inflight and self._status is SaveStatus.SAVING:
            self._set_status(SaveStatus.IDLE)

    # -------- shutdown helpers --------

    def flush(self) -> None:
        """Send the pending write now instead of waiting out the quiet period."""
        if self._pending is not None:
            self._pending.cancel()
            self._fire()

    async def drain(self) -> None:
        """Wait until no write is in flight."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight))

    def cancel(self) -> None:
        """Drop the pending write and timers (used when the user signs out)."""
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
            self._pending_note = None
        if self._reset is not None:
            self._reset.cancel()
            self._reset = None
        self._set_status(SaveStatus.IDLE)


class UnloadGuard:
    """
    Asks before exit while a save is pending or in flight.

    Armed while the pipeline is busy, disarmed as soon as it is not, so a
    stale guard never blocks an unrelated later exit.
    """

    PROMPT = "Changes are still being saved. Leave anyway?"

    def __init__(self, pipeline: SavePipeline):
        self._pipeline = pipeline
        self.armed = False
        self._detach = pipeline.on_status(lambda _status: self._sync())
        self._sync()

    def _sync(self) -> None:
        busy = self._pipeline.is_busy
        if busy and not self.armed:
            self.armed = True
            logger.debug("[save] exit guard armed")
        elif not busy and self.armed:
            self.armed = False
            logger.debug("[save] exit guard released")

    def confirm_exit(self, ask: Callable[[str], bool]) -> bool:
        self._sync()
        if not self.armed:
            return True
        return ask(self.PROMPT)

    def detach(self) -> None:
        self._detach()
        self.armed = False
