"""Candidate enumeration: every (ingredient, vendor) pair, in a fixed order."""

from __future__ import annotations

from itertools import product

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pantry.db.models import IngredientModel, VendorModel
from pantry.pipeline.types import Candidate, IngredientRef, VendorRef


def build_candidates(
    ingredients: list[IngredientRef], vendors: list[VendorRef]
) -> list[Candidate]:
    """Cross product with ingredients outer and vendors inner, both by name.

    Ties on name fall back to id so the order is total.
    """
    ordered_ingredients = sorted(ingredients, key=lambda i: (i.name, i.id))
    ordered_vendors = sorted(vendors, key=lambda v: (v.name, v.id))
    return [
        Candidate(ingredient=ingredient, vendor=vendor)
        for ingredient, vendor in product(ordered_ingredients, ordered_vendors)
    ]


async def enumerate_candidates(session: AsyncSession) -> list[Candidate]:
    """Load the catalogs and build the candidate list for one run.

    Catalog rows are copied into frozen refs so the run does not hold ORM
    objects across sessions.
    """
    ingredients_result = await session.execute(
        select(IngredientModel.id, IngredientModel.name, IngredientModel.unit)
    )
    vendors_result = await session.execute(select(VendorModel.id, VendorModel.name))

    ingredients = [
        IngredientRef(id=row.id, name=row.name, unit=row.unit)
        for row in ingredients_result
    ]
    vendors = [VendorRef(id=row.id, name=row.name) for row in vendors_result]

    return build_candidates(ingredients, vendors)
