"""Queue discovery from metadata keys."""

from __future__ import annotations

from typing import Any, Iterable

from redis.asyncio import Redis

from bullscope.observability.logging import get_logger, log_event
from bullscope.store.keys import DEFAULT_PREFIX, meta_scan_pattern, queue_name_from_meta_key


_LOGGER = get_logger("bullscope.registry")


def _as_text(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def queue_names_from_keys(keys: Iterable[Any], prefix: str = DEFAULT_PREFIX) -> list[str]:
    """Turn raw metadata keys into a sorted, de-duplicated list of names."""

    names: set[str] = set()
    for raw_key in keys:
        name = queue_name_from_meta_key(_as_text(raw_key), prefix)
        if name is None or not name.strip():
            continue
        names.add(name)
    return sorted(names)


async def discover_queues(client: Redis, prefix: str = DEFAULT_PREFIX) -> list[str]:
    """Scan the keyspace for queue metadata and return queue names."""

    keys = [key async for key in client.scan_iter(match=meta_scan_pattern(prefix), count=500)]
    names = queue_names_from_keys(keys, prefix)
    log_event(_LOGGER, "queues_discovered", prefix=prefix, count=len(names))
    return names
