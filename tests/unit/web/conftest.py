"""Fixtures for route tests that need a real catalog.

The engine uses NullPool so every request opens its connection on the
TestClient's own event loop.
"""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from pantry.db.models import (
    Base,
    CenterModel,
    IngredientModel,
    IngredientPriceModel,
    VendorModel,
)


@dataclass
class CatalogDB:
    session_factory: async_sessionmaker
    ids: dict

    @asynccontextmanager
    async def get_session(self):
        session = self.session_factory()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


@pytest.fixture
def catalog_db(tmp_path):
    """Seeded catalog: Milk priced at Aldi and Walmart, plus one manual price.

    - Milk @ Aldi     2.99 automatic
    - Milk @ Walmart  3.18 automatic, 2.75 manual for the center
    - Bananas @ Aldi  0.58 automatic
    - Eggs            no prices
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'catalog.db'}", poolclass=NullPool
    )
    factory = async_sessionmaker(engine, expire_on_commit=False)

    async def _setup():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        async with factory() as session:
            center = CenterModel(name="Young Child Development Center", city="Appleton", state="WI")
            milk = IngredientModel(name="Milk", category="dairy", unit="gallon")
            bananas = IngredientModel(name="Bananas", category="produce", unit="lb")
            eggs = IngredientModel(name="Eggs", category="protein", unit="dozen")
            aldi = VendorModel(name="Aldi")
            walmart = VendorModel(name="Walmart")
            session.add_all([center, milk, bananas, eggs, aldi, walmart])
            await session.flush()

            recorded = date(2026, 3, 1)
            session.add_all(
                [
                    IngredientPriceModel(
                        ingredient_id=milk.id, vendor_id=aldi.id, price=Decimal("2.99"),
                        unit="gallon", recorded_date=recorded,
                    ),
                    IngredientPriceModel(
                        ingredient_id=milk.id, vendor_id=walmart.id, price=Decimal("3.18"),
                        unit="gallon", recorded_date=recorded,
                    ),
                    IngredientPriceModel(
                        ingredient_id=milk.id, vendor_id=walmart.id, center_id=center.id,
                        price=Decimal("2.75"), unit="gallon", recorded_date=recorded,
                    ),
                    IngredientPriceModel(
                        ingredient_id=bananas.id, vendor_id=aldi.id, price=Decimal("0.58"),
                        unit="lb", recorded_date=recorded,
                    ),
                ]
            )
            await session.commit()
            return {
                "center": center.id,
                "Milk": milk.id,
                "Bananas": bananas.id,
                "Eggs": eggs.id,
                "Aldi": aldi.id,
                "Walmart": walmart.id,
            }

    ids = asyncio.run(_setup())
    yield CatalogDB(session_factory=factory, ids=ids)
    asyncio.run(engine.dispose())
