"""Per-queue read handle over the BullMQ key layout."""

from __future__ import annotations

import asyncio

from redis.asyncio import Redis

from bullscope.store.errors import NotConnected
from bullscope.store.jobs import _text, job_from_hash
from bullscope.store.keys import LIST_STATES, QueueKeys
from bullscope.store.models import TRACKED_STATES, JobInfo, JobLogs, JobState, QueueInfo


class QueueHandle:
    """Read-only view of one queue, owned by the connection manager."""

    def __init__(self, name: str, client: Redis, prefix: str) -> None:
        self.name = name
        self.keys = QueueKeys(prefix=prefix, queue=name)
        self._client: Redis | None = client

    @property
    def closed(self) -> bool:
        return self._client is None

    def _redis(self) -> Redis:
        if self._client is None:
            raise NotConnected(f"queue {self.name!r} is closed")
        return self._client

    async def close(self) -> None:
        # The base client is shared and closed by the manager.
        self._client = None

    async def get_counts(self) -> dict[str, int]:
        client = self._redis()
        async with client.pipeline(transaction=False) as pipe:
            for state in TRACKED_STATES:
                key = self.keys.state(state)
                if state in LIST_STATES:
                    pipe.llen(key)
                else:
                    pipe.zcard(key)
            results = await pipe.execute()
        return {
            state.value: int(value or 0)
            for state, value in zip(TRACKED_STATES, results)
        }

    async def is_paused(self) -> bool:
        return bool(await self._redis().hexists(self.keys.meta, "paused"))

    async def get_info(self) -> QueueInfo:
        counts, paused = await asyncio.gather(self.get_counts(), self.is_paused())
        return QueueInfo(name=self.name, counts=counts, is_paused=paused)

    async def _job_ids(self, status: JobState, start: int, end: int) -> list[str]:
        client = self._redis()
        key = self.keys.state(status)
        if status in LIST_STATES:
            raw = await client.lrange(key, start, end)
        else:
            raw = await client.zrevrange(key, start, end)
        ids = [_text(value) for value in raw]
        return [job_id for job_id in ids if job_id]

    async def get_jobs(self, status: JobState, start: int = 0, end: int = 99) -> list[JobInfo]:
        if end < start:
            return []
        ids = await self._job_ids(status, start, end)
        if not ids:
            return []
        client = self._redis()
        async with client.pipeline(transaction=False) as pipe:
            for job_id in ids:
                pipe.hgetall(self.keys.job(job_id))
            payloads = await pipe.execute()

        jobs: list[JobInfo] = []
        for job_id, payload in zip(ids, payloads):
            # Jobs removed between the range read and the hash read.
            if not payload:
                continue
            jobs.append(job_from_hash(job_id, payload))
        return jobs

    async def get_job(self, job_id: str) -> JobInfo | None:
        payload = await self._redis().hgetall(self.keys.job(job_id))
        if not payload:
            return None
        return job_from_hash(job_id, payload)

    async def get_job_logs(self, job_id: str, start: int = 0, end: int = -1) -> JobLogs:
        client = self._redis()
        key = self.keys.logs(job_id)
        async with client.pipeline(transaction=False) as pipe:
            pipe.lrange(key, start, end)
            pipe.llen(key)
            raw_logs, count = await pipe.execute()
        logs = [_text(line) or "" for line in raw_logs]
        return JobLogs(logs=logs, count=int(count or 0))
