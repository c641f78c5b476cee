from __future__ import annotations
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import List, Dict, Any
import re

from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError

from atheria.cache import LocalCache
from atheria.config import load_settings
from atheria.db import make_engine, ensure_schema
from atheria.errors import ParseError
from atheria.remote import RemoteStore


@dataclass
class DoctorResult:
    ok: bool
    warnings: List[str]
    errors: List[str]
    details: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        return d


def _parse_hm(v: str) -> bool:
    return bool(re.match(r"^\d{1,2}:\d{2}$", v.strip()))


def _parse_weekly(v: str) -> bool:
    m = re.match(r"^(mon|tue|wed|thu|fri|sat|sun)\s+\d{1,2}:\d{2}$", v.strip(), re.IGNORECASE)
    return bool(m)


async def run_checks() -> DoctorResult:
    s = load_settings()

    warnings: List[str] = []
    errors: List[str] = []
    details: Dict[str, Any] = {}

    # Config and paths
    details["config.data_dir"] = str(s.data_dir)
    details["config.import_dir"] = str(s.import_dir)
    details["config.reports_dir"] = str(s.reports_dir)
    details["config.remote_url"] = s.remote_url
    details["config.default_user"] = s.default_user
    details["config.llm_backend"] = s.llm_backend if s.remote_allowed else "local"
    details["config.report_times"] = s.report_times

    for p in [s.data_dir, s.state_dir]:
        if not Path(p).exists():
            errors.append(f"Missing directory: {p}")
    for p in [s.import_dir, s.reports_dir]:
        if not Path(p).exists():
            warnings.append(f"Directory not created yet: {p}")

    if s.debounce_ms <= 0:
        warnings.append("debounce_ms should be positive; every keystroke becomes a write")

    # Validate report_times formats
    rt = s.report_times or {}
    daily = rt.get("daily")
    weekly = rt.get("weekly")
    if daily and not _parse_hm(daily):
        warnings.append("report_times.daily format should be 'HH:MM'")
    if weekly and not _parse_weekly(weekly):
        warnings.append("report_times.weekly format should be 'DOW HH:MM' (e.g., 'Sun 18:00')")

    # Remote store
    eng, session_factory = make_engine(s.remote_url)
    store = RemoteStore(eng, session_factory)
    try:
        await ensure_schema(eng)
        details["remote.ping"] = await store.ping()

        async with eng.begin() as conn:
            def _tables(sync_conn):
                return inspect(sync_conn).get_table_names()
            tables = await conn.run_sync(_tables)
        details["remote.tables"] = sorted(tables)
        if "notes" not in tables:
            errors.append("Missing expected table: notes")
        details["remote.note_count"] = len(await store.fetch_all(s.default_user))
    except SQLAlchemyError as e:
        errors.append(f"Remote store unreachable: {e}")
    finally:
        await store.close()

    # Offline cache for the default user
    cache = LocalCache(s.cache_dir)
    details["cache.dir"] = str(s.cache_dir)
    key = cache.key_for(s.default_user)
    details["cache.key"] = key
    details["cache.exists"] = cache.exists(s.default_user)
    if cache.exists(s.default_user):
        try:
            details["cache.note_count"] = len(cache.read_entry(key) or [])
        except ParseError as e:
            warnings.append(f"Cache for {s.default_user} is corrupt and will be discarded on load: {e}")

    ok = (len(errors) == 0)
    return DoctorResult(ok=ok, warnings=warnings, errors=errors, details=details)
