"""Ingredient price queries.

Automatic prices (center_id IS NULL) are owned by the refresh job and kept
at one row per (ingredient, vendor). Manual prices are scoped to a center
and are only written through replace_manual_prices(). Every function that
touches automatic rows filters on center_id IS NULL so manual rows can
never match.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import and_, delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from pantry.db.models import IngredientModel, IngredientPriceModel, VendorModel
from pantry.pipeline.types import Candidate, Extraction


@dataclass(frozen=True)
class ManualPriceEntry:
    vendor_id: int
    price: Decimal
    unit: Optional[str] = None


def _automatic_pair(ingredient_id: int, vendor_id: int):
    return and_(
        IngredientPriceModel.ingredient_id == ingredient_id,
        IngredientPriceModel.vendor_id == vendor_id,
        IngredientPriceModel.center_id.is_(None),
    )


async def replace_automatic_price(
    session: AsyncSession,
    candidate: Candidate,
    extraction: Extraction,
    recorded_on: date,
) -> IngredientPriceModel:
    """Swap the pair's automatic price for a freshly extracted one.

    Delete-then-insert keeps exactly one automatic row per pair no matter
    how many times a run repeats. The caller commits.

    Args:
        session: Database session
        candidate: Pair being priced
        extraction: Extracted price; unit falls back to the ingredient's unit
        recorded_on: Date stamped on the new row

    Returns:
        The new IngredientPriceModel
    """
    await session.execute(
        delete(IngredientPriceModel)
        .where(_automatic_pair(candidate.ingredient.id, candidate.vendor.id))
        .execution_options(synchronize_session=False)
    )

    record = IngredientPriceModel(
        ingredient_id=candidate.ingredient.id,
        vendor_id=candidate.vendor.id,
        center_id=None,
        price=extraction.price,
        unit=extraction.unit or candidate.ingredient.unit,
        recorded_date=recorded_on,
    )
    session.add(record)
    await session.flush()
    return record


async def replace_manual_prices(
    session: AsyncSession,
    ingredient: IngredientModel,
    center_id: int,
    entries: list[ManualPriceEntry],
    recorded_on: date,
) -> list[IngredientPriceModel]:
    """Replace one center's hand-entered prices for an ingredient.

    Automatic rows are left alone.
    """
    await session.execute(
        delete(IngredientPriceModel)
        .where(
            IngredientPriceModel.ingredient_id == ingredient.id,
            IngredientPriceModel.center_id == center_id,
        )
        .execution_options(synchronize_session=False)
    )

    records = [
        IngredientPriceModel(
            ingredient_id=ingredient.id,
            vendor_id=entry.vendor_id,
            center_id=center_id,
            price=entry.price,
            unit=entry.unit or ingredient.unit,
            recorded_date=recorded_on,
        )
        for entry in entries
    ]
    session.add_all(records)
    await session.flush()
    return records


async def list_ingredients_with_prices(
    session: AsyncSession, center_id: Optional[int] = None
) -> list[tuple[IngredientModel, list[IngredientPriceModel]]]:
    """Ingredients by name with the prices visible to a center.

    Automatic prices are always visible. Manual prices are included for
    center_id only; without a center, only automatic prices are returned.
    """
    ingredients_result = await session.execute(
        select(IngredientModel).order_by(IngredientModel.name)
    )
    ingredients = list(ingredients_result.scalars().all())

    scope = IngredientPriceModel.center_id.is_(None)
    if center_id is not None:
        scope = or_(scope, IngredientPriceModel.center_id == center_id)

    prices_result = await session.execute(
        select(IngredientPriceModel)
        .options(selectinload(IngredientPriceModel.vendor))
        .where(scope)
        .order_by(IngredientPriceModel.price)
    )
    by_ingredient: dict[int, list[IngredientPriceModel]] = {}
    for price in prices_result.scalars().all():
        by_ingredient.setdefault(price.ingredient_id, []).append(price)

    return [(ing, by_ingredient.get(ing.id, [])) for ing in ingredients]


async def list_vendors(session: AsyncSession) -> list[VendorModel]:
    result = await session.execute(select(VendorModel).order_by(VendorModel.name))
    return list(result.scalars().all())


def best_price_per_vendor(
    prices: list[IngredientPriceModel],
) -> list[IngredientPriceModel]:
    """One price per vendor, cheapest first.

    A center's manual price wins over the automatic one for the same vendor.
    """
    chosen: dict[int, IngredientPriceModel] = {}
    for price in prices:
        current = chosen.get(price.vendor_id)
        if current is None or (current.is_automatic and not price.is_automatic):
            chosen[price.vendor_id] = price
    return sorted(chosen.values(), key=lambda p: (p.price, p.vendor_id))
