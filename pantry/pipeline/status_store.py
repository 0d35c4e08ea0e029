"""Durable refresh status backed by the app_settings table.

The state survives restarts: run status, the timestamp of the last
successful run, the last run's counters, and when the current run was
claimed.
"""

from __future__ import annotations

import json
import math
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from pantry.db.settings import compare_and_set, get_settings, set_setting
from pantry.pipeline.types import (
    RefreshState,
    RefreshStatus,
    RefreshSummary,
    StatusReport,
)

logger = structlog.get_logger(__name__)

STATUS_KEY = "ingredient_price_refresh_status"
LAST_REFRESH_KEY = "ingredient_price_last_refresh"
SUMMARY_KEY = "ingredient_price_refresh_summary"
STARTED_AT_KEY = "ingredient_price_refresh_started_at"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_state(value: Optional[str]) -> RefreshState:
    try:
        return RefreshState(value) if value else RefreshState.IDLE
    except ValueError:
        logger.warning("refresh_status_unknown", value=value)
        return RefreshState.IDLE


def _parse_summary(value: Optional[str]) -> Optional[RefreshSummary]:
    if not value:
        return None
    try:
        return RefreshSummary.from_dict(json.loads(value))
    except (ValueError, TypeError, AttributeError):
        logger.warning("refresh_summary_unreadable", value=value)
        return None


class RefreshStatusStore:
    """Reads and transitions the persisted refresh status.

    Every method runs in its own short transaction so the status is
    visible to pollers while a run is in progress.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        cooldown_hours: float = 24.0,
        now: Callable[[], datetime] = utcnow,
    ):
        self._session_factory = session_factory
        self.cooldown_hours = cooldown_hours
        self._now = now

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        async with self._session_factory() as session:
            async with session.begin():
                yield session

    async def load(self) -> RefreshStatus:
        """Current status. Unset keys read as idle with no history."""
        async with self._transaction() as session:
            values = await get_settings(
                session, [STATUS_KEY, LAST_REFRESH_KEY, SUMMARY_KEY, STARTED_AT_KEY]
            )

        return RefreshStatus(
            state=_parse_state(values[STATUS_KEY]),
            last_refresh=_parse_timestamp(values[LAST_REFRESH_KEY]),
            summary=_parse_summary(values[SUMMARY_KEY]),
            started_at=_parse_timestamp(values[STARTED_AT_KEY]),
        )

    async def try_claim(self) -> bool:
        """Flip status to running unless it already is.

        Returns:
            True if this caller now owns the run.
        """
        # compare_and_set may roll back a lost insert race, so the
        # transaction is committed by hand rather than through begin()
        async with self._session_factory() as session:
            claimed = await compare_and_set(
                session,
                STATUS_KEY,
                RefreshState.RUNNING.value,
                unless=RefreshState.RUNNING.value,
            )
            if claimed:
                await set_setting(session, STARTED_AT_KEY, self._now().isoformat())
            await session.commit()

        logger.info("refresh_status_claim", claimed=claimed)
        return claimed

    async def mark_done(self, summary: RefreshSummary) -> datetime:
        """Record a successful run. Resets the cooldown clock."""
        finished_at = self._now()
        async with self._transaction() as session:
            await set_setting(session, STATUS_KEY, RefreshState.DONE.value)
            await set_setting(session, LAST_REFRESH_KEY, finished_at.isoformat())
            await set_setting(session, SUMMARY_KEY, json.dumps(summary.to_dict()))
        return finished_at

    async def mark_error(self) -> None:
        """Record a failed run. The last successful timestamp stays as it was."""
        async with self._transaction() as session:
            await set_setting(session, STATUS_KEY, RefreshState.ERROR.value)

    def is_stale(self, status: RefreshStatus, max_run_minutes: int) -> bool:
        """True when a running status has outlived any plausible run."""
        if status.state is not RefreshState.RUNNING:
            return False
        if status.started_at is None:
            return True
        return self._now() - status.started_at > timedelta(minutes=max_run_minutes)

    def hours_until_next(self, last_refresh: Optional[datetime]) -> int:
        """Whole hours left in the cooldown window, 0 when a run may start."""
        if last_refresh is None:
            return 0
        hours_since = (self._now() - last_refresh).total_seconds() / 3600
        if hours_since >= self.cooldown_hours:
            return 0
        return math.ceil(self.cooldown_hours - hours_since)

    async def report(self) -> StatusReport:
        """Projection for pollers.

        canRefresh and hoursUntilNext depend only on lastRefresh and the
        cooldown, not on whether a run is in progress.
        """
        status = await self.load()
        hours = self.hours_until_next(status.last_refresh)
        return StatusReport(
            status=status.state,
            last_refresh=status.last_refresh,
            can_refresh=hours == 0,
            hours_until_next=hours,
            summary=status.summary,
        )
