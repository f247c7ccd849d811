"""
Result Schemas.

Explicit three-state result exposed to callers reading the replica, and
the report produced by a reconciliation cycle.
"""

from dataclasses import dataclass, field
from typing import Generic, TypeVar

DataT = TypeVar("DataT")


@dataclass(frozen=True)
class Loading:
    """The first read has not completed yet."""


@dataclass(frozen=True)
class Ready(Generic[DataT]):
    """A completed read."""

    data: DataT


@dataclass(frozen=True)
class Failed:
    """A read that raised."""

    error: Exception


Result = Loading | Ready | Failed


@dataclass
class PushFailure:
    """A record the push phase could not reconcile this cycle."""

    note_id: int
    status: str
    error: str


@dataclass
class CycleReport:
    """Outcome of one reconciliation cycle."""

    had_pending_changes: bool = False
    pushed: int = 0
    push_failures: list[PushFailure] = field(default_factory=list)
    pulled: int = 0
    removed_remotely: int = 0
    pull_skipped: bool = False

    def as_dict(self) -> dict:
        return {
            "had_pending_changes": self.had_pending_changes,
            "pushed": self.pushed,
            "push_failures": len(self.push_failures),
            "pulled": self.pulled,
            "removed_remotely": self.removed_remotely,
            "pull_skipped": self.pull_skipped,
        }
