"""Ingredient and vendor catalog routes.

Routes:
- GET /ingredients                  - Ingredients with automatic (and a center's manual) prices
- GET /ingredients/compare          - Cheapest vendor per ingredient
- PUT /ingredients/{id}/prices      - Replace a center's manual prices for an ingredient
- GET /vendors                      - Vendors by name
"""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, HTTPException, Query
from sqlalchemy import select

from pantry.db.connection import get_session
from pantry.db.models import CenterModel, IngredientModel, IngredientPriceModel, VendorModel
from pantry.db.price_queries import (
    ManualPriceEntry,
    best_price_per_vendor,
    list_ingredients_with_prices,
    list_vendors,
    replace_manual_prices,
)
from pantry.web.models import (
    IngredientResponse,
    ManualPricesRequest,
    PriceResponse,
    VendorComparison,
    VendorResponse,
)

router = APIRouter(tags=["catalog"])


def _price_response(price: IngredientPriceModel, vendor_name: str) -> PriceResponse:
    return PriceResponse(
        vendor_id=price.vendor_id,
        vendor_name=vendor_name,
        price=price.price,
        unit=price.unit,
        recorded_date=price.recorded_date,
        center_id=price.center_id,
        automatic=price.is_automatic,
    )


@router.get("/ingredients", response_model=list[IngredientResponse])
async def list_ingredients(center: int | None = Query(default=None)):
    """List ingredients with their prices.

    Automatic prices are always included; manual prices only for `center`.
    """
    async with get_session() as session:
        rows = await list_ingredients_with_prices(session, center_id=center)

        return [
            IngredientResponse(
                id=ingredient.id,
                name=ingredient.name,
                category=ingredient.category,
                unit=ingredient.unit,
                prices=[_price_response(p, p.vendor.name) for p in prices],
            )
            for ingredient, prices in rows
        ]


@router.get("/ingredients/compare", response_model=list[VendorComparison])
async def compare_vendors(center: int | None = Query(default=None)):
    """Per ingredient, one price per vendor sorted cheapest first.

    A center's manual price takes precedence over the automatic price for
    the same vendor. Ingredients without any price are omitted.
    """
    async with get_session() as session:
        rows = await list_ingredients_with_prices(session, center_id=center)

        comparisons = []
        for ingredient, prices in rows:
            ranked = best_price_per_vendor(prices)
            if not ranked:
                continue
            comparisons.append(
                VendorComparison(
                    ingredient_id=ingredient.id,
                    ingredient_name=ingredient.name,
                    unit=ingredient.unit,
                    prices=[_price_response(p, p.vendor.name) for p in ranked],
                    best_vendor=ranked[0].vendor.name,
                    savings=ranked[-1].price - ranked[0].price if len(ranked) > 1 else None,
                )
            )
        return comparisons


@router.put("/ingredients/{ingredient_id}/prices", response_model=IngredientResponse)
async def save_manual_prices(ingredient_id: int, payload: ManualPricesRequest):
    """Replace the center's hand-entered vendor prices for one ingredient.

    Vendors left out of `prices` lose their manual price for this center.
    Automatic prices from the refresh job are not affected.
    """
    async with get_session() as session:
        ingredient = await session.get(IngredientModel, ingredient_id)
        if ingredient is None:
            raise HTTPException(status_code=404, detail="Ingredient not found")

        if await session.get(CenterModel, payload.center_id) is None:
            raise HTTPException(status_code=404, detail="Center not found")

        vendor_ids = {p.vendor_id for p in payload.prices}
        vendors: dict[int, str] = {}
        if vendor_ids:
            result = await session.execute(
                select(VendorModel.id, VendorModel.name).where(VendorModel.id.in_(vendor_ids))
            )
            vendors = {row.id: row.name for row in result}
        unknown = sorted(vendor_ids - vendors.keys())
        if unknown:
            raise HTTPException(status_code=422, detail=f"Unknown vendor ids: {unknown}")
        if len(vendor_ids) != len(payload.prices):
            raise HTTPException(status_code=422, detail="Each vendor may appear only once")

        records = await replace_manual_prices(
            session,
            ingredient,
            payload.center_id,
            [ManualPriceEntry(vendor_id=p.vendor_id, price=p.price, unit=p.unit) for p in payload.prices],
            recorded_on=date.today(),
        )

        return IngredientResponse(
            id=ingredient.id,
            name=ingredient.name,
            category=ingredient.category,
            unit=ingredient.unit,
            prices=[_price_response(r, vendors[r.vendor_id]) for r in records],
        )


@router.get("/vendors", response_model=list[VendorResponse])
async def get_vendors():
    async with get_session() as session:
        vendors = await list_vendors(session)
        return [VendorResponse(id=v.id, name=v.name) for v in vendors]
