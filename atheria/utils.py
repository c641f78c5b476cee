from __future__ import annotations
from datetime import datetime
import time
import uuid


def now_ms() -> int:
    """Current wall-clock time in integer milliseconds since the epoch."""
    return int(time.time() * 1000)


def new_note_id() -> str:
    return str(uuid.uuid4())


def ms_from_datetime(dt: datetime) -> int:
    """
    Milliseconds since epoch for dt.
    Naive datetimes are taken as local time.
    """
    return int(dt.timestamp() * 1000)


def datetime_from_ms(ms: int) -> datetime:
    """Local naive datetime for an epoch-millisecond timestamp."""
    return datetime.fromtimestamp(ms / 1000)


def safe_key_part(value: str) -> str:
    """
    Validate a user id before it becomes part of a file name or cache key.
    """
    if not value or any(ch in value for ch in "/\\") or ".." in value:
        raise ValueError(f"Invalid user id: {value!r}")
    return value
