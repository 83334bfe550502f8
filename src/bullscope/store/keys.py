"""BullMQ Redis key layout helpers."""

from __future__ import annotations

from dataclasses import dataclass
import re

from bullscope.store.models import JobState


DEFAULT_PREFIX = "bull"

# Redis type backing each tracked state: lists are pushed on the left, sorted
# sets are scored by time.
LIST_STATES: dict[JobState, str] = {
    JobState.WAITING: "wait",
    JobState.ACTIVE: "active",
    JobState.PAUSED: "paused",
}

ZSET_STATES: dict[JobState, str] = {
    JobState.COMPLETED: "completed",
    JobState.FAILED: "failed",
    JobState.DELAYED: "delayed",
    JobState.PRIORITIZED: "prioritized",
}


@dataclass(frozen=True, slots=True)
class QueueKeys:
    """All keys for one queue rooted at `<prefix>:<queue>`."""

    prefix: str
    queue: str

    @property
    def base(self) -> str:
        return f"{self.prefix}:{self.queue}"

    @property
    def meta(self) -> str:
        return f"{self.base}:meta"

    @property
    def events(self) -> str:
        return f"{self.base}:events"

    def state(self, state: JobState) -> str:
        suffix = LIST_STATES.get(state) or ZSET_STATES[state]
        return f"{self.base}:{suffix}"

    def job(self, job_id: str) -> str:
        return f"{self.base}:{job_id}"

    def logs(self, job_id: str) -> str:
        return f"{self.base}:{job_id}:logs"


def meta_scan_pattern(prefix: str = DEFAULT_PREFIX) -> str:
    """Glob pattern matching every queue's metadata hash."""

    return f"{prefix}:*:meta"


def _meta_regex(prefix: str) -> re.Pattern[str]:
    return re.compile(rf"^{re.escape(prefix)}:(.+):meta$", re.DOTALL)


def queue_name_from_meta_key(key: str, prefix: str = DEFAULT_PREFIX) -> str | None:
    """Extract the queue name embedded in a metadata key.

    Queue names may contain `:` themselves, so the name is everything between
    the anchored prefix and the `:meta` suffix.
    """

    match = _meta_regex(prefix).match(key)
    if match is None:
        return None
    return match.group(1)
