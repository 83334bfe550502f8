"""Single Redis connection owner with fail-fast connect and ordered teardown."""

from __future__ import annotations

import asyncio
from enum import Enum
import logging
from typing import Callable

from redis.asyncio import Redis
from redis.asyncio.retry import Retry
from redis.backoff import NoBackoff
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from bullscope.config.schema import RedisConfig
from bullscope.observability.logging import get_logger, log_event
from bullscope.store.errors import ConnectionRefused, ConnectionTimeout, NotConnected
from bullscope.store.events import EventSubscriber, Listener
from bullscope.store.keys import DEFAULT_PREFIX
from bullscope.store.queue import QueueHandle


_LOGGER = get_logger("bullscope.connection")

CONNECT_TIMEOUT = 5.0

ClientFactory = Callable[[], Redis]


class ConnectionStatus(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


def redis_client_factory(config: RedisConfig, *, timeout: float = CONNECT_TIMEOUT) -> ClientFactory:
    """Build clients that never retry on their own."""

    def build() -> Redis:
        return Redis(
            host=config.host,
            port=config.port,
            password=config.password,
            db=config.db,
            decode_responses=True,
            socket_connect_timeout=timeout,
            retry=Retry(NoBackoff(), 0),
        )

    return build


class ConnectionManager:
    """Owns the base client, per-queue handles and event channels.

    `connect()` and `disconnect()` are serialized; a reconnect waits for the
    previous teardown to finish before opening anything new.
    """

    def __init__(
        self,
        config: RedisConfig,
        *,
        prefix: str = DEFAULT_PREFIX,
        timeout: float = CONNECT_TIMEOUT,
        client_factory: ClientFactory | None = None,
        event_block_ms: int = 1000,
    ) -> None:
        self.config = config
        self.prefix = prefix
        self.timeout = timeout
        self.status = ConnectionStatus.DISCONNECTED
        self.error: str | None = None
        self._client_factory = client_factory or redis_client_factory(config, timeout=timeout)
        self._event_block_ms = event_block_ms
        self._client: Redis | None = None
        self._queues: dict[str, QueueHandle] = {}
        self._events: EventSubscriber | None = None
        self._lock = asyncio.Lock()

    @property
    def target(self) -> str:
        return f"{self.config.host}:{self.config.port}"

    @property
    def connected(self) -> bool:
        return self.status is ConnectionStatus.CONNECTED and self._client is not None

    @property
    def client(self) -> Redis:
        if not self.connected or self._client is None:
            raise NotConnected("client")
        return self._client

    @property
    def events(self) -> EventSubscriber:
        if not self.connected or self._events is None:
            raise NotConnected("events")
        return self._events

    async def connect(self) -> None:
        """Open and verify the connection, failing fast on any error."""

        async with self._lock:
            await self._teardown()
            self.status = ConnectionStatus.CONNECTING
            self.error = None
            client = self._client_factory()
            try:
                await asyncio.wait_for(client.ping(), timeout=self.timeout)
            except (asyncio.TimeoutError, RedisTimeoutError):
                await self._close_quietly(client)
                exc = ConnectionTimeout(self.config.host, self.config.port, self.timeout)
                self._fail(exc)
                raise exc from None
            except (RedisError, OSError) as err:
                await self._close_quietly(client)
                exc = ConnectionRefused(self.config.host, self.config.port, str(err) or type(err).__name__)
                self._fail(exc)
                raise exc from err

            self._client = client
            self._events = EventSubscriber(
                self._client_factory,
                prefix=self.prefix,
                block_ms=self._event_block_ms,
            )
            self.status = ConnectionStatus.CONNECTED
            log_event(_LOGGER, "redis_connected", target=self.target, db=self.config.db)

    async def disconnect(self) -> None:
        """Close channels, then queue handles, then the base client.

        Safe to call repeatedly; every step tolerates errors.
        """

        async with self._lock:
            await self._teardown()
            self.status = ConnectionStatus.DISCONNECTED
            self.error = None

    def queue(self, name: str) -> QueueHandle:
        """Return the cached handle for a queue, creating it on first use."""

        handle = self._queues.get(name)
        if handle is None:
            handle = QueueHandle(name, self.client, self.prefix)
            self._queues[name] = handle
        return handle

    def subscribe(self, queue: str, listener: Listener) -> None:
        self.events.subscribe(queue, listener)

    def unsubscribe(self, queue: str, listener: Listener) -> None:
        if self._events is not None:
            self._events.unsubscribe(queue, listener)

    def _fail(self, exc: Exception) -> None:
        self.status = ConnectionStatus.ERROR
        self.error = str(exc)
        log_event(
            _LOGGER,
            "redis_connect_failed",
            level=logging.WARNING,
            target=self.target,
            error=self.error,
        )

    async def _teardown(self) -> None:
        events, self._events = self._events, None
        if events is not None:
            try:
                await events.close_all()
            except Exception as exc:
                self._log_teardown_error("events", exc)

        queues, self._queues = self._queues, {}
        for name, handle in queues.items():
            try:
                await handle.close()
            except Exception as exc:
                self._log_teardown_error(f"queue:{name}", exc)

        client, self._client = self._client, None
        if client is not None:
            await self._close_quietly(client)
            log_event(_LOGGER, "redis_disconnected", target=self.target)

    async def _close_quietly(self, client: Redis) -> None:
        try:
            await client.aclose()
        except Exception as exc:
            self._log_teardown_error("client", exc)

    def _log_teardown_error(self, step: str, exc: Exception) -> None:
        log_event(
            _LOGGER,
            "teardown_step_failed",
            level=logging.WARNING,
            step=step,
            error=f"{type(exc).__name__}: {exc}",
        )
