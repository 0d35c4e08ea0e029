"""Shared Pydantic models for the Pantry web API.

Refresh payloads use camelCase on the wire, matching what the portal UI
polls for.

Usage:
    from pantry.web.models import RefreshRequest

    @router.post("/refresh")
    async def trigger(payload: RefreshRequest | None = None):
        ...
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from pantry.pipeline.types import StatusReport


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================================
# Refresh Models
# ============================================================================


class RefreshRequest(BaseModel):
    """Body of POST /refresh."""

    force: bool = False


class RefreshStartedResponse(CamelModel):
    status: Literal["started"] = "started"
    run_id: str


class RefreshErrorResponse(CamelModel):
    error: str
    last_refresh: Optional[datetime] = None
    hours_remaining: Optional[int] = None


class RefreshSummaryModel(BaseModel):
    updated: int
    failed: int
    skipped: int
    total: int


class RefreshStatusResponse(CamelModel):
    """Body of GET /refresh-status."""

    status: Literal["idle", "running", "done", "error"]
    last_refresh: Optional[datetime]
    can_refresh: bool
    hours_until_next: int
    summary: Optional[RefreshSummaryModel]

    @classmethod
    def from_report(cls, report: StatusReport) -> RefreshStatusResponse:
        return cls(
            status=report.status.value,
            last_refresh=report.last_refresh,
            can_refresh=report.can_refresh,
            hours_until_next=report.hours_until_next,
            summary=(
                RefreshSummaryModel(**report.summary.to_dict())
                if report.summary
                else None
            ),
        )


# ============================================================================
# Catalog Models
# ============================================================================


class VendorResponse(BaseModel):
    id: int
    name: str


class PriceResponse(BaseModel):
    vendor_id: int
    vendor_name: str
    price: Decimal
    unit: str
    recorded_date: date
    center_id: Optional[int] = None
    automatic: bool


class IngredientResponse(BaseModel):
    id: int
    name: str
    category: str
    unit: str
    prices: List[PriceResponse] = Field(default_factory=list)


class ManualPriceIn(BaseModel):
    vendor_id: int
    price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    unit: Optional[str] = None


class ManualPricesRequest(BaseModel):
    """Body of PUT /ingredients/{id}/prices."""

    center_id: int
    prices: List[ManualPriceIn]


class VendorComparison(BaseModel):
    ingredient_id: int
    ingredient_name: str
    unit: str
    prices: List[PriceResponse]
    best_vendor: Optional[str] = None
    savings: Optional[Decimal] = None  # Most expensive minus cheapest
