# atheria/db.py
from __future__ import annotations
from pathlib import Path

from sqlalchemy.ext.asyncio import (
    create_async_engine,
    async_sessionmaker,
    AsyncEngine,
)
from sqlalchemy import inspect

from atheria.log import logger
from atheria.models import Base


async def ensure_schema(engine: AsyncEngine) -> None:
    """
    Create tables if the database is empty.
    Idempotent: does nothing if tables already exist.
    """
    async with engine.begin() as conn:
        def _get_tables(sync_conn):
            insp = inspect(sync_conn)
            return insp.get_table_names()

        existing = await conn.run_sync(_get_tables)
        if "notes" not in existing:
            logger.info("[db] creating tables...")
            await conn.run_sync(Base.metadata.create_all)


def make_engine(url: str) -> tuple[AsyncEngine, async_sessionmaker]:
    """
    Build the async engine + session factory for the remote store URL.
    """
    if url.startswith("sqlite") and "///" in url:
        # SQLite file URLs need their parent directory to exist
        path = url.split("///", 1)[-1]
        if path and path != ":memory:":
            Path(path).expanduser().parent.mkdir(parents=True, exist_ok=True)
    eng = create_async_engine(url, future=True)
    session_factory = async_sessionmaker(eng, expire_on_commit=False)
    return eng, session_factory
