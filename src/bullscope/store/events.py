"""Per-queue push channels over the BullMQ event stream.

Each queue gets at most one channel: a background task tailing
`<prefix>:<queue>:events` on its own connection (XREAD blocks the connection
it runs on). Raw stream entries are normalized into `QueueEvent` and fanned
out to every listener registered for that queue.

Channels are opened lazily on the first subscription and stay open until
`close_all()`; removing the last listener does not close the channel. A
channel that fails is not restarted here. The failure is logged and polling
keeps the view fresh until the next reconnect.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Mapping

from redis.asyncio import Redis
from redis.exceptions import RedisError

from bullscope.observability.logging import get_logger, log_event
from bullscope.store.jobs import _json_value, _text
from bullscope.store.keys import DEFAULT_PREFIX, QueueKeys
from bullscope.store.models import EventKind, QueueEvent


_LOGGER = get_logger("bullscope.events")

Listener = Callable[[QueueEvent], None]
ClientFactory = Callable[[], Redis]


def _now_ms() -> int:
    return int(time.time() * 1000)


def _job_id(fields: Mapping[str, Any]) -> str:
    return _text(fields.get("jobId")) or ""


def _plain(kind: EventKind) -> Callable[[str, Mapping[str, Any], int], QueueEvent]:
    def build(queue: str, fields: Mapping[str, Any], stamp: int) -> QueueEvent:
        return QueueEvent(kind=kind, queue=queue, job_id=_job_id(fields), timestamp=stamp)

    return build


def _completed(queue: str, fields: Mapping[str, Any], stamp: int) -> QueueEvent:
    return QueueEvent(
        kind=EventKind.COMPLETED,
        queue=queue,
        job_id=_job_id(fields),
        timestamp=stamp,
        data=_json_value(fields.get("returnvalue")),
    )


def _failed(queue: str, fields: Mapping[str, Any], stamp: int) -> QueueEvent:
    return QueueEvent(
        kind=EventKind.FAILED,
        queue=queue,
        job_id=_job_id(fields),
        timestamp=stamp,
        data=_text(fields.get("failedReason")),
    )


def _progress(queue: str, fields: Mapping[str, Any], stamp: int) -> QueueEvent:
    return QueueEvent(
        kind=EventKind.PROGRESS,
        queue=queue,
        job_id=_job_id(fields),
        timestamp=stamp,
        data=_json_value(fields.get("data")),
    )


def _drained(queue: str, fields: Mapping[str, Any], stamp: int) -> QueueEvent:
    return QueueEvent(kind=EventKind.DRAINED, queue=queue, job_id="", timestamp=stamp)


_NORMALIZERS: dict[str, Callable[[str, Mapping[str, Any], int], QueueEvent]] = {
    "waiting": _plain(EventKind.WAITING),
    "active": _plain(EventKind.ACTIVE),
    "completed": _completed,
    "failed": _failed,
    "progress": _progress,
    "stalled": _plain(EventKind.STALLED),
    "removed": _plain(EventKind.REMOVED),
    "drained": _drained,
}


def normalize_event(
    queue: str,
    raw: Mapping[Any, Any],
    *,
    timestamp: int | None = None,
) -> QueueEvent | None:
    """Map one raw stream entry to a QueueEvent; unknown kinds give None."""

    fields = {_text(key) or "": value for key, value in raw.items()}
    kind = _text(fields.get("event"))
    builder = _NORMALIZERS.get(kind or "")
    if builder is None:
        return None
    return builder(queue, fields, _now_ms() if timestamp is None else timestamp)


def _stream_entries(response: Any) -> list[tuple[Any, Any]]:
    # RESP2 answers with [[stream, entries]], RESP3 with {stream: [entries]}.
    if not response:
        return []
    if isinstance(response, dict):
        streams = response.items()
    else:
        streams = response
    entries: list[tuple[Any, Any]] = []
    for _stream, stream_entries in streams:
        entries.extend(stream_entries or [])
    return entries


class EventChannel:
    """Background reader for one queue's event stream."""

    def __init__(
        self,
        queue: str,
        client: Redis,
        *,
        prefix: str,
        on_entry: Callable[[str, Mapping[Any, Any]], None],
        block_ms: int = 1000,
        batch_size: int = 100,
    ) -> None:
        self.queue = queue
        self.keys = QueueKeys(prefix=prefix, queue=queue)
        self.block_ms = block_ms
        self.batch_size = batch_size
        self.error: BaseException | None = None
        self._client = client
        self._on_entry = on_entry
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self._task is not None:
            return
        self._task = asyncio.create_task(self._run(), name=f"bullscope-events:{self.queue}")

    async def _latest_id(self) -> str:
        tail = await self._client.xrevrange(self.keys.events, count=1)
        if not tail:
            return "0-0"
        return _text(tail[0][0]) or "0-0"

    async def _run(self) -> None:
        try:
            last_id = await self._latest_id()
            while True:
                response = await self._client.xread(
                    {self.keys.events: last_id},
                    count=self.batch_size,
                    block=self.block_ms,
                )
                for entry_id, fields in _stream_entries(response):
                    last_id = _text(entry_id) or last_id
                    self._on_entry(self.queue, fields or {})
        except (RedisError, OSError) as exc:
            self.error = exc
            log_event(
                _LOGGER,
                "event_channel_failed",
                level=logging.WARNING,
                queue=self.queue,
                error=f"{type(exc).__name__}: {exc}",
            )

    async def close(self) -> None:
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await self._client.aclose()


class EventSubscriber:
    """Lazily opened per-queue channels with listener fan-out."""

    def __init__(
        self,
        client_factory: ClientFactory,
        *,
        prefix: str = DEFAULT_PREFIX,
        block_ms: int = 1000,
    ) -> None:
        self._client_factory = client_factory
        self._prefix = prefix
        self._block_ms = block_ms
        self._channels: dict[str, EventChannel] = {}
        self._listeners: dict[str, set[Listener]] = {}

    @property
    def channels(self) -> list[str]:
        return sorted(self._channels)

    def channel(self, queue: str) -> EventChannel | None:
        return self._channels.get(queue)

    def listener_count(self, queue: str) -> int:
        return len(self._listeners.get(queue, ()))

    def subscribe(self, queue: str, listener: Listener) -> None:
        """Register a listener, opening the queue's channel on first use."""

        if queue not in self._channels:
            channel = EventChannel(
                queue,
                self._client_factory(),
                prefix=self._prefix,
                on_entry=self.dispatch,
                block_ms=self._block_ms,
            )
            self._channels[queue] = channel
            channel.start()
            log_event(_LOGGER, "event_channel_opened", level=logging.DEBUG, queue=queue)
        self._listeners.setdefault(queue, set()).add(listener)

    def unsubscribe(self, queue: str, listener: Listener) -> None:
        self._listeners.get(queue, set()).discard(listener)

    def dispatch(self, queue: str, raw: Mapping[Any, Any]) -> QueueEvent | None:
        """Normalize one raw entry and hand it to the queue's listeners."""

        event = normalize_event(queue, raw)
        if event is None:
            return None
        for listener in list(self._listeners.get(queue, ())):
            try:
                listener(event)
            except Exception:
                _LOGGER.exception("event listener failed", extra={"queue": queue})
        return event

    async def close_all(self) -> None:
        """Close every channel; errors are logged so teardown always finishes."""

        channels, self._channels = self._channels, {}
        self._listeners.clear()
        for queue, channel in channels.items():
            try:
                await channel.close()
            except Exception as exc:
                log_event(
                    _LOGGER,
                    "event_channel_close_failed",
                    level=logging.WARNING,
                    queue=queue,
                    error=f"{type(exc).__name__}: {exc}",
                )
