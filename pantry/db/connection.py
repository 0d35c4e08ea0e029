"""Process-wide engine and sessions for Pantry.

One engine per process. The web app runs as a single uvicorn worker and
the price refresh job runs inside it as a background task, so request
handlers and the job share the engine but never a session: handlers use
``get_session()`` for one unit of work, and the job is handed
``get_session_factory()`` and opens a short session per pair.

Development and the test suite use SQLite through aiosqlite; production
uses Postgres through asyncpg with a connection pool.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from pantry.config import DBConfig, get_config
from pantry.db.models import Base

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None

# Seconds a SQLite writer waits for the file lock held by the other side
SQLITE_BUSY_TIMEOUT = 30


def engine_options(db_config: DBConfig) -> dict[str, Any]:
    """Keyword arguments for ``create_async_engine`` by backend."""
    options: dict[str, Any] = {"echo": db_config.echo}

    if db_config.url.lower().startswith("sqlite"):
        # The refresh job writes while requests read the same file
        options["connect_args"] = {"timeout": SQLITE_BUSY_TIMEOUT}
        return options

    options.update(
        pool_size=db_config.pool_size,
        max_overflow=db_config.pool_max_overflow,
        pool_timeout=db_config.pool_timeout,
        pool_pre_ping=True,
        pool_recycle=3600,
    )
    return options


def get_engine() -> AsyncEngine:
    """Engine for ``DATABASE_URL``, created on first use."""
    global _engine

    if _engine is None:
        db_config = get_config().db
        _engine = create_async_engine(db_config.url, **engine_options(db_config))

    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory handed to the refresh job.

    Objects stay loaded after commit so a job can log a row it has
    just written without another round trip.
    """
    global _session_factory

    if _session_factory is None:
        _session_factory = async_sessionmaker(get_engine(), expire_on_commit=False)

    return _session_factory


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """One request's unit of work: commit on clean exit, roll back on error.

    Usage:
        async with get_session() as session:
            prices = await list_ingredients_with_prices(session, center_id)
    """
    session = get_session_factory()()

    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def init_db(drop: bool = False) -> None:
    """Create every Pantry table if missing; used by ``pantry init``.

    Args:
        drop: Drop every Pantry table first (``pantry init --drop``)
    """
    async with get_engine().begin() as conn:
        if drop:
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Dispose the engine; called at app shutdown and after each CLI command."""
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None
