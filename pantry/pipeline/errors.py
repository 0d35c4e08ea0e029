"""Exceptions raised by the ingredient price refresh job.

Only the trigger-time errors (configuration, already running, cooldown)
reach callers synchronously. Everything that happens inside a run is
reported through the persisted refresh status.
"""

from __future__ import annotations

from datetime import datetime


class RefreshError(Exception):
    """Base class for refresh job errors."""


class ConfigurationError(RefreshError):
    """Search or extraction credentials are missing."""


class RefreshAlreadyRunning(RefreshError):
    """A refresh run is already in progress."""

    def __init__(self, message: str = "A price refresh is already running"):
        super().__init__(message)


class CooldownActive(RefreshError):
    """The previous successful run finished less than the cooldown ago."""

    def __init__(self, hours_remaining: int, last_refresh: datetime | None):
        self.hours_remaining = hours_remaining
        self.last_refresh = last_refresh
        super().__init__(
            f"Prices were refreshed recently. Try again in {hours_remaining} hour"
            f"{'' if hours_remaining == 1 else 's'}."
        )


class RefreshCancelled(RefreshError):
    """A run was stopped through its cancellation token."""


class ExtractionError(RefreshError):
    """The extraction service answered with something that is not a price payload."""
