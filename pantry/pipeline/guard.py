"""Trigger guard: decides whether a refresh run may start.

Checks, in order: credentials configured, no run in flight, cooldown
elapsed (unless forced). The running status is then claimed with a
compare-and-swap so two near-simultaneous triggers cannot both start.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

import structlog

from pantry.config import AppConfig
from pantry.pipeline.errors import (
    ConfigurationError,
    CooldownActive,
    RefreshAlreadyRunning,
)
from pantry.pipeline.orchestrator import RefreshOrchestrator
from pantry.pipeline.runner import RefreshRunner
from pantry.pipeline.status_store import RefreshStatusStore
from pantry.pipeline.types import RefreshState

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RefreshStarted:
    run_id: str
    forced: bool


class TriggerGuard:
    """Gatekeeper in front of RefreshRunner.start()."""

    def __init__(
        self,
        config: AppConfig,
        store: RefreshStatusStore,
        runner: RefreshRunner,
        orchestrator_factory: Callable[[], RefreshOrchestrator],
    ):
        self.config = config
        self.store = store
        self.runner = runner
        self.orchestrator_factory = orchestrator_factory

    def check_configured(self) -> None:
        if self.config.refresh_configured:
            return

        missing = []
        if not self.config.search.api_key:
            missing.append("BRAVE_API_KEY")
        if not self.config.llm.api_key:
            missing.append("OPENAI_API_KEY")
        if missing:
            raise ConfigurationError(
                f"Price refresh is not configured: set {', '.join(missing)}"
            )

    async def request_refresh(self, force: bool = False) -> RefreshStarted:
        """Start a run in the background if allowed.

        Args:
            force: Skip the cooldown check (never the in-flight check)

        Returns:
            RefreshStarted for the spawned run

        Raises:
            ConfigurationError: Credentials missing
            RefreshAlreadyRunning: A run is in progress
            CooldownActive: Last successful run is within the cooldown window
        """
        self.check_configured()

        if self.runner.is_active:
            raise RefreshAlreadyRunning()

        status = await self.store.load()

        if status.state is RefreshState.RUNNING:
            # No task in this process owns it; only a stale claim is reclaimable
            if not self.store.is_stale(status, self.config.refresh.max_run_minutes):
                raise RefreshAlreadyRunning()

            logger.warning(
                "refresh_status_stale_reset",
                started_at=status.started_at.isoformat() if status.started_at else None,
                max_run_minutes=self.config.refresh.max_run_minutes,
            )
            await self.store.mark_error()

        if not force:
            hours = self.store.hours_until_next(status.last_refresh)
            if hours > 0:
                raise CooldownActive(hours, status.last_refresh)

        if not await self.store.try_claim():
            raise RefreshAlreadyRunning()

        try:
            orchestrator = self.orchestrator_factory()
            self.runner.start(orchestrator)
        except BaseException:
            await self.store.mark_error()
            raise

        logger.info("refresh_requested", run_id=orchestrator.run_id, forced=force)
        return RefreshStarted(run_id=orchestrator.run_id, forced=force)
