"""Refresh service - wires the status store, guard, runner and clients.

One instance per process. The search and extraction clients are built on
first use (so an unconfigured deployment can still serve status) and then
shared by every run.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import date, datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pantry.config import AppConfig
from pantry.integration.extraction_client import PriceExtractor
from pantry.integration.search_client import SearchClient
from pantry.intelligence.rate_limiter import RateLimiter
from pantry.pipeline.guard import RefreshStarted, TriggerGuard
from pantry.pipeline.orchestrator import RefreshOrchestrator
from pantry.pipeline.runner import RefreshRunner
from pantry.pipeline.status_store import RefreshStatusStore, utcnow
from pantry.pipeline.types import RefreshSummary, StatusReport


class RefreshService:
    """Entry point used by the web routes and the CLI."""

    def __init__(
        self,
        config: AppConfig,
        session_factory: async_sessionmaker[AsyncSession],
        search: Optional[SearchClient] = None,
        extractor: Optional[PriceExtractor] = None,
        limiter: Optional[RateLimiter] = None,
        now: Callable[[], datetime] = utcnow,
        today: Callable[[], date] = date.today,
    ):
        self.config = config
        self.session_factory = session_factory
        self._search = search
        self._extractor = extractor
        self._today = today
        self.limiter = limiter or RateLimiter(min_interval=config.refresh.delay_seconds)
        self.store = RefreshStatusStore(
            session_factory, cooldown_hours=config.refresh.cooldown_hours, now=now
        )
        self.runner = RefreshRunner()
        self.guard = TriggerGuard(config, self.store, self.runner, self.build_orchestrator)

    @property
    def search(self) -> SearchClient:
        if self._search is None:
            self._search = SearchClient.from_config(self.config)
        return self._search

    @property
    def extractor(self) -> PriceExtractor:
        if self._extractor is None:
            self._extractor = PriceExtractor.from_config(self.config)
        return self._extractor

    def build_orchestrator(self) -> RefreshOrchestrator:
        return RefreshOrchestrator(
            store=self.store,
            session_factory=self.session_factory,
            search=self.search,
            extractor=self.extractor,
            limiter=self.limiter,
            today=self._today,
        )

    async def request_refresh(self, force: bool = False) -> RefreshStarted:
        return await self.guard.request_refresh(force=force)

    async def status(self) -> StatusReport:
        return await self.store.report()

    async def run_to_completion(self, force: bool = False) -> Optional[RefreshSummary]:
        """Trigger a run and wait for it (CLI use)."""
        await self.request_refresh(force=force)
        return await self.runner.wait()

    async def aclose(self) -> None:
        """Stop any run and close the HTTP clients."""
        await self.runner.shutdown()
        if self._search is not None:
            await self._search.close()
        if self._extractor is not None:
            await self._extractor.close()
