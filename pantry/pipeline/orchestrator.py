"""Refresh orchestrator - prices every (ingredient, vendor) pair.

Runs one pass over the candidate list: pace, search, extract, persist.
Per-pair problems are contained and counted; the run still completes and
reports its counters through the status store.

State transitions owned here:
- running -> done   (normal completion; lastRefresh and summary written)
- running -> error  (anything escaping the per-pair boundary, or cancellation;
                     lastRefresh left as it was so the cooldown does not
                     apply to a failed run)
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import date
from typing import Optional
from uuid import uuid4

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pantry.db.price_queries import replace_automatic_price
from pantry.integration.extraction_client import PriceExtractor
from pantry.integration.search_client import SearchClient
from pantry.intelligence.rate_limiter import RateLimiter
from pantry.pipeline.candidates import enumerate_candidates
from pantry.pipeline.errors import RefreshCancelled
from pantry.pipeline.status_store import RefreshStatusStore
from pantry.pipeline.types import Candidate, PairOutcome, RefreshSummary

logger = structlog.get_logger(__name__)


class RefreshOrchestrator:
    """Drives one refresh run to completion.

    Pairs are processed sequentially so the third-party quotas stay
    predictable. Suspension points per pair: the limiter, the search call,
    the extraction call.
    """

    def __init__(
        self,
        store: RefreshStatusStore,
        session_factory: async_sessionmaker[AsyncSession],
        search: SearchClient,
        extractor: PriceExtractor,
        limiter: RateLimiter,
        today: Callable[[], date] = date.today,
        run_id: str | None = None,
    ):
        self.store = store
        self.search = search
        self.extractor = extractor
        self.limiter = limiter
        self.run_id = run_id or uuid4().hex[:12]
        self._session_factory = session_factory
        self._today = today
        self.log = logger.bind(run_id=self.run_id)

    async def run(self, cancel_event: Optional[asyncio.Event] = None) -> RefreshSummary:
        """Execute a full pass. Status must already be claimed as running.

        Args:
            cancel_event: Checked once per pair; when set the run stops

        Returns:
            Final counters

        Raises:
            RefreshCancelled: If cancel_event was set mid-run
            Exception: Anything escaping the per-pair boundary (status -> error)
        """
        summary = RefreshSummary()

        try:
            async with self._session_factory() as session:
                candidates = await enumerate_candidates(session)
            summary.total = len(candidates)

            self.log.info("refresh_started", total=summary.total)

            for index, candidate in enumerate(candidates, start=1):
                if cancel_event is not None and cancel_event.is_set():
                    raise RefreshCancelled(
                        f"Run {self.run_id} cancelled after {summary.processed} of {summary.total} pairs"
                    )

                await self.limiter.acquire()
                outcome = await self.process_pair(candidate)
                summary.record(outcome)

                self.log.debug(
                    "refresh_pair_done",
                    position=index,
                    total=summary.total,
                    pair=str(candidate),
                    outcome=outcome.value,
                )

            await self.store.mark_done(summary)

        except (RefreshCancelled, asyncio.CancelledError):
            self.log.warning("refresh_cancelled", **summary.to_dict())
            await self.store.mark_error()
            raise

        except Exception:
            self.log.exception("refresh_failed", **summary.to_dict())
            await self.store.mark_error()
            raise

        self.log.info("refresh_completed", **summary.to_dict())
        return summary

    async def process_pair(self, candidate: Candidate) -> PairOutcome:
        """Search, extract and persist one pair.

        No search results or an explicit "no price" is a skip. Any exception
        is a failure for this pair only.
        """
        try:
            snippets = await self.search.snippets_for(candidate)
            if not snippets:
                return PairOutcome.SKIPPED

            extraction = await self.extractor.extract(candidate, snippets)
            if extraction is None:
                return PairOutcome.SKIPPED

            async with self._session_factory() as session:
                async with session.begin():
                    await replace_automatic_price(
                        session, candidate, extraction, self._today()
                    )

            self.log.info(
                "refresh_price_updated",
                ingredient=candidate.ingredient.name,
                vendor=candidate.vendor.name,
                price=str(extraction.price),
                unit=extraction.unit or candidate.ingredient.unit,
            )
            return PairOutcome.UPDATED

        except Exception as e:
            self.log.warning(
                "refresh_pair_failed",
                ingredient=candidate.ingredient.name,
                vendor=candidate.vendor.name,
                error_type=type(e).__name__,
                error=str(e),
            )
            return PairOutcome.FAILED
