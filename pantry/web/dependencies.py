"""Shared dependencies for Pantry web routes.

Dependencies are injected using FastAPI's Depends() system, so tests can
swap them through app.dependency_overrides.

Usage:
    from fastapi import Depends
    from pantry.web.dependencies import get_refresh_service

    @router.get("/refresh-status")
    async def status(service=Depends(get_refresh_service)):
        ...
"""

from __future__ import annotations

from pantry.config import get_config
from pantry.db.connection import get_session_factory
from pantry.pipeline.service import RefreshService

# Global singleton: one runner (and one in-flight task) per process
_refresh_service: RefreshService | None = None


def get_refresh_service() -> RefreshService:
    """Get the process-wide RefreshService, creating it on first use."""
    global _refresh_service
    if _refresh_service is None:
        _refresh_service = RefreshService(get_config(), get_session_factory())
    return _refresh_service


async def shutdown_refresh_service() -> None:
    """Stop any in-flight run and release the service's HTTP clients."""
    global _refresh_service
    if _refresh_service is not None:
        await _refresh_service.aclose()
        _refresh_service = None
