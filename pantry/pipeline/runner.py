"""Supervised background task for refresh runs.

The runner owns the asyncio.Task of the current run, its cancellation
token, and a done-callback that logs how the run ended, so a failed or
cancelled run is always visible in the logs.
"""

from __future__ import annotations

import asyncio
from typing import Optional

import structlog

from pantry.pipeline.errors import RefreshAlreadyRunning, RefreshCancelled
from pantry.pipeline.orchestrator import RefreshOrchestrator
from pantry.pipeline.types import RefreshSummary

logger = structlog.get_logger(__name__)


class RefreshRunner:
    """Holds at most one in-flight refresh task per process."""

    def __init__(self):
        self._task: Optional[asyncio.Task[RefreshSummary]] = None
        self._cancel_event: Optional[asyncio.Event] = None
        self.run_id: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def task(self) -> Optional[asyncio.Task[RefreshSummary]]:
        return self._task

    def start(self, orchestrator: RefreshOrchestrator) -> asyncio.Task[RefreshSummary]:
        """Spawn the orchestrator on the running loop and return immediately."""
        if self.is_active:
            raise RefreshAlreadyRunning()

        self._cancel_event = asyncio.Event()
        self.run_id = orchestrator.run_id
        self._task = asyncio.create_task(
            orchestrator.run(self._cancel_event),
            name=f"ingredient-price-refresh-{orchestrator.run_id}",
        )
        self._task.add_done_callback(self._on_done)

        logger.info("refresh_task_started", run_id=orchestrator.run_id)
        return self._task

    def _on_done(self, task: asyncio.Task[RefreshSummary]) -> None:
        log = logger.bind(run_id=self.run_id)

        if task.cancelled():
            log.warning("refresh_task_cancelled")
            return

        exc = task.exception()
        if isinstance(exc, RefreshCancelled):
            log.warning("refresh_task_cancelled", reason=str(exc))
        elif exc is not None:
            log.error(
                "refresh_task_crashed",
                error_type=type(exc).__name__,
                error=str(exc),
                exc_info=exc,
            )
        else:
            log.info("refresh_task_finished", **task.result().to_dict())

    def cancel(self) -> bool:
        """Ask the current run to stop before its next pair.

        Returns:
            True if a run was active
        """
        if not self.is_active or self._cancel_event is None:
            return False
        self._cancel_event.set()
        return True

    async def wait(self) -> Optional[RefreshSummary]:
        """Await the current run and return its summary (re-raises its error)."""
        if self._task is None:
            return None
        return await self._task

    async def shutdown(self, timeout: float = 5.0) -> None:
        """Stop the current run, hard-cancelling it if it does not stop in time."""
        if not self.is_active or self._task is None:
            return

        self.cancel()
        done, _ = await asyncio.wait({self._task}, timeout=timeout)
        if not done:
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
