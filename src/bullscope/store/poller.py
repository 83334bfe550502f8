"""Concurrent per-queue metadata polling."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
import logging
from typing import Iterable

from redis.exceptions import RedisError

from bullscope.observability.logging import get_logger, log_event
from bullscope.store.connection import ConnectionManager
from bullscope.store.errors import MonitorError
from bullscope.store.models import QueueInfo


_LOGGER = get_logger("bullscope.poller")

POLL_INTERVAL = 2.0


@dataclass(slots=True)
class PollResult:
    """Snapshots that succeeded plus the error text for each queue that did not."""

    snapshots: dict[str, QueueInfo] = field(default_factory=dict)
    failures: dict[str, str] = field(default_factory=dict)

    @property
    def complete(self) -> bool:
        return not self.failures


async def poll_queues(manager: ConnectionManager, names: Iterable[str]) -> PollResult:
    """Fetch counts and pause state for every queue concurrently.

    A failure for one queue is recorded in `failures` and never fails the
    batch.
    """

    ordered = list(dict.fromkeys(names))
    result = PollResult()
    if not ordered:
        return result

    outcomes = await asyncio.gather(
        *(manager.queue(name).get_info() for name in ordered),
        return_exceptions=True,
    )
    for name, outcome in zip(ordered, outcomes):
        if isinstance(outcome, QueueInfo):
            result.snapshots[name] = outcome
            continue
        if isinstance(outcome, (MonitorError, RedisError, OSError, asyncio.TimeoutError)):
            result.failures[name] = f"{type(outcome).__name__}: {outcome}"
            continue
        if isinstance(outcome, BaseException):
            raise outcome

    if result.failures:
        log_event(
            _LOGGER,
            "queue_poll_partial",
            level=logging.DEBUG,
            ok=len(result.snapshots),
            failed=sorted(result.failures),
        )
    return result
