"""Tests for key layout helpers and queue discovery."""

from __future__ import annotations

import pytest

from bullscope.store.keys import QueueKeys, meta_scan_pattern, queue_name_from_meta_key
from bullscope.store.models import JobState
from bullscope.store.registry import discover_queues, queue_names_from_keys


class TestKeyLayout:
    def test_queue_keys(self):
        keys = QueueKeys(prefix="bull", queue="emails")
        assert keys.meta == "bull:emails:meta"
        assert keys.events == "bull:emails:events"
        assert keys.state(JobState.WAITING) == "bull:emails:wait"
        assert keys.state(JobState.COMPLETED) == "bull:emails:completed"
        assert keys.job("42") == "bull:emails:42"
        assert keys.logs("42") == "bull:emails:42:logs"

    def test_meta_scan_pattern(self):
        assert meta_scan_pattern("bull") == "bull:*:meta"

    def test_queue_name_may_contain_separator(self):
        assert queue_name_from_meta_key("bull:tenant:emails:meta") == "tenant:emails"

    def test_foreign_prefix_is_rejected(self):
        assert queue_name_from_meta_key("other:emails:meta", "bull") is None
        assert queue_name_from_meta_key("bull:emails:wait", "bull") is None

    def test_prefix_is_matched_literally(self):
        assert queue_name_from_meta_key("b.ll:q:meta", "b.ll") == "q"
        assert queue_name_from_meta_key("bxll:q:meta", "b.ll") is None


class TestQueueNamesFromKeys:
    def test_sorted_and_deduplicated(self):
        keys = ["bull:b:meta", "bull:a:meta", b"bull:b:meta", "bull:a:wait"]
        assert queue_names_from_keys(keys) == ["a", "b"]

    def test_blank_names_are_skipped(self):
        assert queue_names_from_keys(["bull: :meta", "bull:ok:meta"]) == ["ok"]


class TestDiscoverQueues:
    @pytest.mark.asyncio
    async def test_discovers_only_meta_keys(self, redis_client):
        await redis_client.hset("bull:emails:meta", mapping={"paused": "1"})
        await redis_client.hset("bull:payments:meta", mapping={"opts.maxLenEvents": "10000"})
        await redis_client.lpush("bull:emails:wait", "1")
        await redis_client.set("unrelated", "x")

        assert await discover_queues(redis_client, "bull") == ["emails", "payments"]

    @pytest.mark.asyncio
    async def test_names_with_separator_and_blank_names(self, redis_client):
        for key in ("bull:orders:meta", "bull:orders:with:colon:meta", "bull:  :meta"):
            await redis_client.hset(key, mapping={"v": "1"})

        assert await discover_queues(redis_client, "bull") == ["orders", "orders:with:colon"]

    @pytest.mark.asyncio
    async def test_empty_keyspace(self, redis_client):
        assert await discover_queues(redis_client, "bull") == []

    @pytest.mark.asyncio
    async def test_custom_prefix(self, redis_client):
        await redis_client.hset("jobs:reports:meta", mapping={"v": "1"})
        await redis_client.hset("bull:emails:meta", mapping={"v": "1"})

        assert await discover_queues(redis_client, "jobs") == ["reports"]
