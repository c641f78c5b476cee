from __future__ import annotations
import asyncio

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from atheria.cache import LocalCache
from atheria.config import Settings, load_settings
from atheria.db import make_engine, ensure_schema
from atheria.remote import RemoteStore
from atheria.reporters.report import collect, render_md, write_report
from atheria.log import logger


async def _open_store(s: Settings) -> RemoteStore:
    eng, session_factory = make_engine(s.remote_url)
    await ensure_schema(eng)
    return RemoteStore(eng, session_factory)


async def job_refresh_cache(s: Settings | None = None) -> int:
    """Nightly: pull the user's full remote set into the offline cache."""
    s = s or load_settings()
    store = await _open_store(s)
    try:
        notes = await store.fetch_all(s.default_user)
        cache = LocalCache(s.cache_dir)
        # Keep notes created offline that the store has not seen yet
        remote_ids = {n.id for n in notes}
        pending = cache.load_pending(s.default_user) - remote_ids
        unsent = [n for n in cache.load(s.default_user) if n.id in pending]
        cache.save(s.default_user, unsent + notes, pending=pending)
        logger.info(f"[sched] cached {len(notes)} note(s) for {s.default_user}")
        return len(notes)
    finally:
        await store.close()


async def job_weekly_report(s: Settings | None = None):
    s = s or load_settings()
    store = await _open_store(s)
    try:
        bundle = await collect(store, s.default_user, period="weekly")
        md = render_md(bundle)
        path = write_report(md, s.reports_dir, bundle["period"], bundle["start"], bundle["end"])
        logger.info(f"[sched] wrote {path}")
        return path
    finally:
        await store.close()


def _parse_hm(hm: str) -> tuple[int, int]:
    h, m = hm.strip().split(":")
    return int(h), int(m)


def build_scheduler(s: Settings, loop: asyncio.AbstractEventLoop | None = None) -> AsyncIOScheduler:
    # use system/local timezone
    sched = AsyncIOScheduler(event_loop=loop) if loop is not None else AsyncIOScheduler()

    # Daily cache refresh
    daily = s.report_times.get("daily", "23:00")
    dh, dm = _parse_hm(daily)
    sched.add_job(job_refresh_cache, CronTrigger(hour=dh, minute=dm), args=[s])

    # Weekly report (e.g., "Sun 18:00")
    weekly = s.report_times.get("weekly", "Sun 18:00")
    try:
        dow, hm = weekly.split()
        wh, wm = _parse_hm(hm)
        sched.add_job(job_weekly_report, CronTrigger(day_of_week=dow.lower(), hour=wh, minute=wm), args=[s])
    except ValueError:
        logger.warning("[sched] invalid report_times.weekly format; expected 'DOW HH:MM', using Sun 18:00")
        sched.add_job(job_weekly_report, CronTrigger(day_of_week="sun", hour=18, minute=0), args=[s])
    return sched


def run_scheduler():
    s = load_settings()
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    sched = build_scheduler(s, loop)
    sched.start()
    logger.info("[sched] started using config.report_times")
    try:
        loop.run_forever()
    except KeyboardInterrupt:
        pass
    finally:
        sched.shutdown(wait=False)
        loop.close()
