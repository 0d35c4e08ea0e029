"""Tests for engine and session management."""

from __future__ import annotations

import pytest
from sqlalchemy import inspect, select

from pantry.config import DBConfig, reset_config
from pantry.db import connection
from pantry.db.connection import SQLITE_BUSY_TIMEOUT, engine_options
from pantry.db.models import VendorModel


@pytest.fixture
def sqlite_url(tmp_path, monkeypatch):
    url = f"sqlite+aiosqlite:///{tmp_path / 'pantry.db'}"
    monkeypatch.setenv("DATABASE_URL", url)
    reset_config()
    monkeypatch.setattr(connection, "_engine", None)
    monkeypatch.setattr(connection, "_session_factory", None)
    yield url
    reset_config()


class TestEngineOptions:
    def test_sqlite_waits_for_lock_without_pool_settings(self):
        options = engine_options(DBConfig(url="sqlite+aiosqlite:///./pantry.db"))

        assert options == {"echo": False, "connect_args": {"timeout": SQLITE_BUSY_TIMEOUT}}

    def test_postgres_is_pooled(self):
        options = engine_options(
            DBConfig(url="postgresql+asyncpg://u:p@db/pantry", pool_size=5, echo=True)
        )

        assert options["echo"] is True
        assert options["pool_size"] == 5
        assert options["max_overflow"] == 20
        assert options["pool_pre_ping"] is True
        assert "connect_args" not in options


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_init_session_and_close(self, sqlite_url):
        await connection.init_db()
        try:
            async with connection.get_session() as session:
                session.add(VendorModel(name="Aldi"))

            async with connection.get_session() as session:
                names = (await session.execute(select(VendorModel.name))).scalars().all()
            assert names == ["Aldi"]

            async with connection.get_engine().connect() as conn:
                tables = await conn.run_sync(lambda c: inspect(c).get_table_names())
            assert "ingredient_prices" in tables
        finally:
            await connection.close_db()

        assert connection._engine is None
        assert connection._session_factory is None

    @pytest.mark.asyncio
    async def test_session_rolls_back_on_error(self, sqlite_url):
        await connection.init_db()
        try:
            with pytest.raises(RuntimeError):
                async with connection.get_session() as session:
                    session.add(VendorModel(name="Costco"))
                    await session.flush()
                    raise RuntimeError("boom")

            async with connection.get_session() as session:
                assert (await session.execute(select(VendorModel))).first() is None
        finally:
            await connection.close_db()
