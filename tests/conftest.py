"""Pytest configuration and fixtures for Pantry tests.

Provides a file-backed SQLite database per test, catalog seeding helpers,
fake search/extraction clients and controllable clocks.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from pantry.config import AppConfig, DBConfig, LLMConfig, SearchConfig, reset_config
from pantry.db.models import (
    Base,
    CenterModel,
    IngredientModel,
    IngredientPriceModel,
    VendorModel,
)
from pantry.pipeline.types import Candidate, Extraction, IngredientRef, VendorRef


class FrozenClock:
    """Wall clock for the status store; only moves when told to."""

    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


class VirtualClock:
    """Monotonic clock plus sleep for the rate limiter; sleeping advances time."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeSearch:
    """Stands in for SearchClient. Responses keyed by (ingredient, vendor) name."""

    def __init__(self):
        self.responses: dict[tuple[str, str], object] = {}
        self.calls: list[Candidate] = []
        self.closed = False

    async def snippets_for(self, candidate: Candidate):
        self.calls.append(candidate)
        value = self.responses.get((candidate.ingredient.name, candidate.vendor.name))
        if isinstance(value, Exception):
            raise value
        return value

    async def close(self) -> None:
        self.closed = True


class FakeExtractor:
    """Stands in for PriceExtractor. Responses keyed by (ingredient, vendor) name."""

    def __init__(self):
        self.responses: dict[tuple[str, str], object] = {}
        self.calls: list[tuple[Candidate, str]] = []
        self.closed = False

    async def extract(self, candidate: Candidate, snippets: str):
        self.calls.append((candidate, snippets))
        value = self.responses.get((candidate.ingredient.name, candidate.vendor.name))
        if isinstance(value, Exception):
            raise value
        return value

    async def close(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def setup_test_env(monkeypatch):
    """Set up test environment variables."""
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.delenv("BRAVE_API_KEY", raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def app_config() -> AppConfig:
    """Fully configured AppConfig with fake credentials."""
    return AppConfig(
        db=DBConfig(url="sqlite+aiosqlite:///:memory:"),
        search=SearchConfig(api_key="brave-test-key"),
        llm=LLMConfig(api_key="openai-test-key"),
    )


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2026, 3, 2, 15, 0, tzinfo=timezone.utc))


@pytest.fixture
def virtual_clock() -> VirtualClock:
    return VirtualClock()


@pytest.fixture
def fake_search() -> FakeSearch:
    return FakeSearch()


@pytest.fixture
def fake_extractor() -> FakeExtractor:
    return FakeExtractor()


@pytest_asyncio.fixture()
async def session_factory(tmp_path):
    """File-backed SQLite database with all tables created."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'pantry.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, expire_on_commit=False)
    try:
        yield factory
    finally:
        await engine.dispose()


@pytest.fixture
def seed_catalog(session_factory):
    """Returns an async helper that inserts ingredients and vendors.

    Usage:
        ids = await seed_catalog(
            ingredients=[("Milk", "gallon")], vendors=["Aldi", "Walmart"]
        )
        ids["Milk"], ids["Aldi"]
    """

    async def _seed(
        ingredients: list[tuple[str, str]], vendors: list[str]
    ) -> dict[str, int]:
        async with session_factory() as session:
            ingredient_models = [
                IngredientModel(name=name, unit=unit, category="general")
                for name, unit in ingredients
            ]
            vendor_models = [VendorModel(name=name) for name in vendors]
            session.add_all(ingredient_models + vendor_models)
            await session.commit()
            ids = {m.name: m.id for m in ingredient_models}
            ids.update({m.name: m.id for m in vendor_models})
            return ids

    return _seed


@pytest.fixture
def add_center(session_factory):
    async def _add(name: str = "Young Child Development Center") -> int:
        async with session_factory() as session:
            center = CenterModel(name=name, city="Appleton", state="WI")
            session.add(center)
            await session.commit()
            return center.id

    return _add


@pytest.fixture
def fetch_prices(session_factory):
    """Returns an async helper listing all ingredient_prices rows by id."""

    async def _fetch() -> list[IngredientPriceModel]:
        async with session_factory() as session:
            result = await session.execute(
                select(IngredientPriceModel).order_by(IngredientPriceModel.id)
            )
            return list(result.scalars().all())

    return _fetch


@pytest.fixture
def milk() -> IngredientRef:
    return IngredientRef(id=1, name="Milk", unit="gallon")


@pytest.fixture
def aldi_milk(milk) -> Candidate:
    return Candidate(ingredient=milk, vendor=VendorRef(id=1, name="Aldi"))


@pytest.fixture
def sample_extraction() -> Extraction:
    return Extraction(price=Decimal("2.99"), unit="gallon")
