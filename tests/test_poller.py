"""Tests for concurrent queue metadata polling."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from bullscope.store.models import QueueInfo
from bullscope.store.poller import poll_queues


def _stub_manager(outcomes: dict[str, object]) -> MagicMock:
    handles = {}
    for name, outcome in outcomes.items():
        handle = MagicMock()
        if isinstance(outcome, BaseException):
            handle.get_info = AsyncMock(side_effect=outcome)
        else:
            handle.get_info = AsyncMock(return_value=outcome)
        handles[name] = handle
    manager = MagicMock()
    manager.queue.side_effect = lambda name: handles[name]
    return manager


class TestPollQueues:
    @pytest.mark.asyncio
    async def test_counts_and_pause_flag(self, manager, seed):
        await seed("emails", wait=("1", "2"), active=("3",), failed=("4",), paused=True)
        await seed("payments", completed=("5", "6", "7"))
        await manager.connect()
        try:
            result = await poll_queues(manager, ["emails", "payments"])
        finally:
            await manager.disconnect()

        assert result.complete
        emails = result.snapshots["emails"]
        assert emails.is_paused
        assert emails.count("waiting") == 2
        assert emails.count("active") == 1
        assert emails.count("failed") == 1
        assert emails.count("completed") == 0
        payments = result.snapshots["payments"]
        assert not payments.is_paused
        assert payments.count("completed") == 3
        assert set(payments.counts) == {
            "waiting",
            "active",
            "completed",
            "failed",
            "delayed",
            "paused",
            "prioritized",
        }

    @pytest.mark.asyncio
    async def test_partial_failure_keeps_successes(self):
        ok = QueueInfo(name="a", counts={"active": 1})
        manager = _stub_manager({"a": ok, "b": RedisConnectionError("reset by peer")})

        result = await poll_queues(manager, ["a", "b"])

        assert result.snapshots == {"a": ok}
        assert list(result.failures) == ["b"]
        assert "reset by peer" in result.failures["b"]
        assert not result.complete

    @pytest.mark.asyncio
    async def test_unexpected_error_propagates(self):
        manager = _stub_manager({"a": ValueError("bug")})
        with pytest.raises(ValueError):
            await poll_queues(manager, ["a"])

    @pytest.mark.asyncio
    async def test_no_queues(self):
        result = await poll_queues(MagicMock(), [])
        assert result.snapshots == {}
        assert result.complete

    @pytest.mark.asyncio
    async def test_duplicate_names_polled_once(self):
        ok = QueueInfo(name="a")
        manager = _stub_manager({"a": ok})
        result = await poll_queues(manager, ["a", "a"])
        assert list(result.snapshots) == ["a"]
        assert manager.queue.call_count == 1
