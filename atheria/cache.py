# atheria/cache.py
from __future__ import annotations
import json
import os
import tempfile
from pathlib import Path
from typing import Iterable, Optional

from atheria.errors import ParseError
from atheria.log import logger
from atheria.note import Note, note_from_dict, note_to_dict
from atheria.utils import safe_key_part

STORAGE_KEY = "atheria-journal-notes"
LEGACY_STORAGE_KEY = "serenity-journal-notes"


def _atomic_write_text(target: Path, text: str) -> None:
    """Write via a temp file in the same directory, then replace."""
    target.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile("w", encoding="utf-8", dir=str(target.parent), delete=False) as f:
        tmp_name = f.name
        f.write(text)
        f.flush()
        os.fsync(f.fileno())
    os.replace(tmp_name, target)


class LocalCache:
    """
    Last-known note collection per user, stored as one JSON file per key.

    Gives the session something to show before the first remote snapshot
    arrives, and keeps working without a reachable remote store.
    """

    def __init__(self, cache_dir: Path):
        self.cache_dir = cache_dir.expanduser()

    def key_for(self, user_id: str) -> str:
        return f"{STORAGE_KEY}-{safe_key_part(user_id)}"

    def _path(self, key: str) -> Path:
        return self.cache_dir / f"{key}.json"

    def read_entry(self, key: str) -> list[Note] | None:
        """
        Entry contents, or None when the key has never been written.
        Raises ParseError when the entry as a whole is unreadable; single bad
        notes are skipped with a warning.
        """
        path = self._path(key)
        if not path.is_file():
            return None
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ParseError(f"cache entry {key} is not valid JSON: {e}") from e
        if not isinstance(raw, list):
            raise ParseError(f"cache entry {key} is not a list")
        notes: list[Note] = []
        for item in raw:
            try:
                notes.append(note_from_dict(item))
            except ParseError as e:
                logger.warning(f"[cache] skipping unreadable note in {key}: {e}")
        return notes

    def _read(self, key: str) -> list[Note] | None:
        try:
            return self.read_entry(key)
        except ParseError as e:
            logger.warning(f"[cache] discarding corrupt entry {key}: {e}")
            return []

    def load(self, user_id: str) -> list[Note]:
        notes = self._read(self.key_for(user_id))
        if notes is not None:
            return notes
        # One-time migration: adopt the legacy entry, leave it in place
        legacy = self._read(LEGACY_STORAGE_KEY)
        if legacy:
            logger.info(f"[cache] adopted {len(legacy)} note(s) from legacy cache for {user_id}")
            return legacy
        return []

    def _pending_path(self, user_id: str) -> Path:
        return self._path(f"{self.key_for(user_id)}-pending")

    def save(self, user_id: str, notes: Iterable[Note], *, pending: Optional[Iterable[str]] = None) -> None:
        """Store notes; `pending` are ids created locally but not yet confirmed remotely."""
        payload = json.dumps([note_to_dict(n) for n in notes], ensure_ascii=False)
        _atomic_write_text(self._path(self.key_for(user_id)), payload)
        pending_ids = sorted(pending or ())
        sidecar = self._pending_path(user_id)
        if pending_ids:
            _atomic_write_text(sidecar, json.dumps(pending_ids))
        elif sidecar.exists():
            sidecar.unlink()

    def load_pending(self, user_id: str) -> frozenset[str]:
        path = self._pending_path(user_id)
        if not path.is_file():
            return frozenset()
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"[cache] discarding corrupt pending list for {user_id}: {e}")
            return frozenset()
        if not isinstance(raw, list):
            return frozenset()
        return frozenset(i for i in raw if isinstance(i, str))

    def exists(self, user_id: str) -> bool:
        return self._path(self.key_for(user_id)).is_file()
