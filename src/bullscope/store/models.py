"""Snapshot types read from the queue store."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class JobState(str, Enum):
    """Every job state the dashboard tracks counts for."""

    WAITING = "waiting"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"
    DELAYED = "delayed"
    PAUSED = "paused"
    PRIORITIZED = "prioritized"


TRACKED_STATES: tuple[JobState, ...] = tuple(JobState)

# States a job list can be filtered by, in tab order.
STATUS_FILTERS: tuple[JobState, ...] = (
    JobState.ACTIVE,
    JobState.WAITING,
    JobState.FAILED,
    JobState.COMPLETED,
    JobState.DELAYED,
)


class EventKind(str, Enum):
    """Kinds of push notification carried on a queue event stream."""

    WAITING = "waiting"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"
    PROGRESS = "progress"
    STALLED = "stalled"
    REMOVED = "removed"
    DRAINED = "drained"


def empty_counts() -> dict[str, int]:
    return {state.value: 0 for state in TRACKED_STATES}


@dataclass(frozen=True, slots=True)
class QueueInfo:
    """Counts and pause flag for one queue at one poll tick."""

    name: str
    counts: dict[str, int] = field(default_factory=empty_counts)
    is_paused: bool = False

    def count(self, state: JobState | str) -> int:
        key = state.value if isinstance(state, JobState) else state
        return self.counts.get(key, 0)


@dataclass(frozen=True, slots=True)
class JobInfo:
    """Read-only snapshot of one job hash.

    Timestamps are epoch milliseconds as written by the queue engine.
    """

    id: str
    name: str
    data: Any = None
    progress: Any = 0
    attempts_made: int = 0
    timestamp: int | None = None
    processed_on: int | None = None
    finished_on: int | None = None
    failed_reason: str | None = None
    stacktrace: list[str] | None = None
    returnvalue: Any = None
    has_returnvalue: bool = False

    @property
    def has_error(self) -> bool:
        return bool(self.failed_reason) or bool(self.stacktrace)


@dataclass(frozen=True, slots=True)
class JobLogs:
    """Ordered log lines for one job plus the total stored count."""

    logs: list[str]
    count: int


@dataclass(frozen=True, slots=True)
class QueueEvent:
    """Normalized push event; advisory only, never a data source."""

    kind: EventKind
    queue: str
    job_id: str
    timestamp: int
    data: Any = None
