"""Shared fixtures: an in-memory Redis server and a BullMQ-shaped seeder."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Callable

import fakeredis
import fakeredis.aioredis
import pytest

from bullscope.config.schema import RedisConfig
from bullscope.store.connection import ConnectionManager


@pytest.fixture
def fake_server():
    """One fake Redis server shared by every client a test creates."""
    return fakeredis.FakeServer()


@pytest.fixture
def client_factory(fake_server):
    def build():
        return fakeredis.aioredis.FakeRedis(server=fake_server, decode_responses=True)

    return build


@pytest.fixture
def redis_client(client_factory):
    """Client used by tests to seed and mutate queue data."""
    return client_factory()


@pytest.fixture
def manager(client_factory):
    return ConnectionManager(
        RedisConfig(host="fakeredis", port=6379),
        client_factory=client_factory,
        timeout=1.0,
        event_block_ms=10,
    )


@pytest.fixture
def seed(redis_client):
    """Write queues the way BullMQ lays them out.

    Lists are pushed on the left, so the last id given is the newest and is
    read first. Sorted-set members are scored by their position.
    """

    async def _seed(
        queue: str,
        *,
        prefix: str = "bull",
        wait: tuple[str, ...] = (),
        active: tuple[str, ...] = (),
        completed: tuple[str, ...] = (),
        failed: tuple[str, ...] = (),
        delayed: tuple[str, ...] = (),
        paused: bool = False,
        jobs: dict[str, dict[str, Any]] | None = None,
    ) -> None:
        base = f"{prefix}:{queue}"
        meta: dict[str, str] = {"opts.maxLenEvents": "10000"}
        if paused:
            meta["paused"] = "1"
        await redis_client.hset(f"{base}:meta", mapping=meta)
        for list_name, ids in (("wait", wait), ("active", active)):
            for job_id in ids:
                await redis_client.lpush(f"{base}:{list_name}", job_id)
        for zset_name, ids in (("completed", completed), ("failed", failed), ("delayed", delayed)):
            if ids:
                await redis_client.zadd(
                    f"{base}:{zset_name}",
                    {job_id: float(idx) for idx, job_id in enumerate(ids)},
                )
        for job_id, fields in (jobs or {}).items():
            mapping = {
                key: value if isinstance(value, str) else json.dumps(value)
                for key, value in fields.items()
            }
            await redis_client.hset(f"{base}:{job_id}", mapping=mapping)

    return _seed


async def wait_until(predicate: Callable[[], bool], *, timeout: float = 2.0) -> None:
    """Yield to the loop until `predicate()` holds."""

    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached before timeout")
        await asyncio.sleep(0.01)


@pytest.fixture
def eventually():
    return wait_until
