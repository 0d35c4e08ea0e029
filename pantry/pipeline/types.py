"""Type definitions for the ingredient price refresh job."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional


class RefreshState(str, Enum):
    """Lifecycle of the refresh job as persisted in settings."""

    IDLE = "idle"
    RUNNING = "running"
    DONE = "done"
    ERROR = "error"


class PairOutcome(str, Enum):
    """What happened to one (ingredient, vendor) pair during a run."""

    UPDATED = "updated"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class IngredientRef:
    id: int
    name: str
    unit: str


@dataclass(frozen=True)
class VendorRef:
    id: int
    name: str


@dataclass(frozen=True)
class Candidate:
    """One (ingredient, vendor) pair to price."""

    ingredient: IngredientRef
    vendor: VendorRef

    def __str__(self) -> str:
        return f"{self.ingredient.name} @ {self.vendor.name}"


@dataclass(frozen=True)
class Extraction:
    """Price read out of search snippets by the extraction service."""

    price: Decimal
    unit: Optional[str] = None


@dataclass
class RefreshSummary:
    """Counters for one run. updated + failed + skipped == total on completion."""

    updated: int = 0
    failed: int = 0
    skipped: int = 0
    total: int = 0

    def record(self, outcome: PairOutcome) -> None:
        if outcome is PairOutcome.UPDATED:
            self.updated += 1
        elif outcome is PairOutcome.SKIPPED:
            self.skipped += 1
        else:
            self.failed += 1

    @property
    def processed(self) -> int:
        return self.updated + self.failed + self.skipped

    def to_dict(self) -> dict[str, int]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> RefreshSummary:
        return cls(
            updated=int(data.get("updated", 0)),
            failed=int(data.get("failed", 0)),
            skipped=int(data.get("skipped", 0)),
            total=int(data.get("total", 0)),
        )


@dataclass
class RefreshStatus:
    """Persisted refresh state."""

    state: RefreshState = RefreshState.IDLE
    last_refresh: Optional[datetime] = None
    summary: Optional[RefreshSummary] = None
    started_at: Optional[datetime] = None


@dataclass
class StatusReport:
    """Read-only projection served to pollers."""

    status: RefreshState
    last_refresh: Optional[datetime]
    can_refresh: bool
    hours_until_next: int
    summary: Optional[RefreshSummary]

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "lastRefresh": self.last_refresh.isoformat() if self.last_refresh else None,
            "canRefresh": self.can_refresh,
            "hoursUntilNext": self.hours_until_next,
            "summary": self.summary.to_dict() if self.summary else None,
        }
