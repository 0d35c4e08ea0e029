"""Ingredient price refresh routes.

Routes:
- POST /refresh         - Start a background price refresh (optionally forced)
- GET  /refresh-status  - Poll refresh state, cooldown and last summary
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from pantry.pipeline.errors import (
    ConfigurationError,
    CooldownActive,
    RefreshAlreadyRunning,
)
from pantry.pipeline.service import RefreshService
from pantry.web.dependencies import get_refresh_service
from pantry.web.models import (
    RefreshErrorResponse,
    RefreshRequest,
    RefreshStartedResponse,
    RefreshStatusResponse,
)

router = APIRouter(tags=["refresh"])


def _error(status_code: int, body: RefreshErrorResponse) -> JSONResponse:
    # Fields passed explicitly are sent even when null (lastRefresh before any run)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json", by_alias=True, exclude_unset=True),
    )


@router.post(
    "/refresh",
    response_model=RefreshStartedResponse,
    responses={429: {"model": RefreshErrorResponse}, 503: {"model": RefreshErrorResponse}},
)
async def trigger_refresh(
    payload: RefreshRequest | None = None,
    force: bool = Query(default=False),
    service: RefreshService = Depends(get_refresh_service),
):
    """Start a price refresh and return immediately.

    The run continues in the background; poll /refresh-status for progress.
    `force` (body or query) skips the 24h cooldown but never starts a second
    concurrent run.
    """
    forced = force or (payload is not None and payload.force)

    try:
        started = await service.request_refresh(force=forced)
    except ConfigurationError as e:
        return _error(503, RefreshErrorResponse(error=str(e)))
    except RefreshAlreadyRunning as e:
        status = await service.status()
        return _error(
            429, RefreshErrorResponse(error=str(e), last_refresh=status.last_refresh)
        )
    except CooldownActive as e:
        return _error(
            429,
            RefreshErrorResponse(
                error=str(e),
                last_refresh=e.last_refresh,
                hours_remaining=e.hours_remaining,
            ),
        )

    return RefreshStartedResponse(run_id=started.run_id)


@router.get("/refresh-status", response_model=RefreshStatusResponse)
async def refresh_status(service: RefreshService = Depends(get_refresh_service)):
    """Current refresh status for polling.

    canRefresh/hoursUntilNext are derived from lastRefresh and the cooldown,
    independent of whether a run is in progress.
    """
    report = await service.status()
    return RefreshStatusResponse.from_report(report)
