# atheria/services/watcher.py
from __future__ import annotations
from pathlib import Path
import asyncio

from watchdog.observers import Observer
from watchdog.events import FileSystemEventHandler

from atheria.config import load_settings
from atheria.db import make_engine, ensure_schema
from atheria.log import logger
from atheria.remote import RemoteStore
from atheria.services.ingest import discover_importable, safe_move_to_archive
from atheria.services.session import JournalSession


async def import_pending(session: JournalSession, import_dir: Path, archive_dir: Path) -> int:
    """Import every supported file in import_dir into the session, archiving each."""
    files = discover_importable(import_dir)
    if not files:
        return 0
    logger.info(f"[watch] detected {len(files)} new file(s)")
    added = 0
    for p in files:
        try:
            note = await session.import_file(p)
        except (OSError, ValueError) as e:
            logger.error(f"[watch] could not import {p.name}: {e}")
            continue
        final = safe_move_to_archive(p, archive_dir)
        logger.info(f"[watch] imported {p.name} as {note.id}; archived to {final.name}")
        added += 1
    return added


# ---------------------------------------------------------------------
# Handler
# ---------------------------------------------------------------------
class _Handler(FileSystemEventHandler):
    """Watches the import folder and imports new files into the journal."""

    def __init__(self, loop: asyncio.AbstractEventLoop, session: JournalSession, import_dir: Path, archive_dir: Path):
        super().__init__()
        self._loop = loop
        self.session = session
        self.import_dir = import_dir
        self.archive_dir = archive_dir
        self._busy = False

    def on_any_event(self, event):
        """Called from watchdog thread; schedule async work on main loop."""
        if not self._busy:
            self._busy = True
            self._loop.call_soon_threadsafe(self._schedule_run)

    def _schedule_run(self):
        """Debounced execution on main thread."""
        self._loop.call_later(0.75, lambda: asyncio.ensure_future(self._run()))

    async def _run(self):
        try:
            await import_pending(self.session, self.import_dir, self.archive_dir)
        except Exception:
            logger.exception("[watch] import run failed")
        finally:
            self._busy = False


# ---------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------
def run_watch(user_id: str | None = None):
    """Run the import watcher (blocking until Ctrl-C)."""
    s = load_settings()
    import_dir = s.import_dir
    import_dir.mkdir(parents=True, exist_ok=True)
    user = user_id or s.default_user

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    async def _open() -> JournalSession:
        eng, session_factory = make_engine(s.remote_url)
        await ensure_schema(eng)
        store = RemoteStore(eng, session_factory, poll_interval=s.poll_interval)
        session = JournalSession.from_settings(s, store)
        await session.start(user)
        # Files dropped while the watcher was not running
        await import_pending(session, import_dir, s.archive_dir)
        return session

    session = loop.run_until_complete(_open())
    handler = _Handler(loop=loop, session=session, import_dir=import_dir, archive_dir=s.archive_dir)

    observer = Observer()
    observer.schedule(handler, str(import_dir), recursive=False)
    observer.start()

    try:
        logger.info(f"[watch] watching {import_dir} for {user} — press Ctrl-C to stop.")
        loop.run_forever()
    except KeyboardInterrupt:
        logger.info("[watch] stopping...")
    finally:
        observer.stop()
        observer.join()
        loop.run_until_complete(session.stop())
        loop.run_until_complete(session.store.close())
        loop.close()
        logger.info("[watch] stopped cleanly.")
