"""Driver that feeds the view state from input, polling and push events.

The controller is the only writer of the ViewStateStore. It runs on the
event loop that hosts the UI, so all writes are serialized. Fetches run as
background tasks and every result is checked against the context that asked
for it (connection generation plus selected queue/status) before it is
applied.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from redis.exceptions import RedisError

from bullscope.monitor.state import (
    CancelQueueFilter,
    ConfirmQueueFilter,
    CycleDetailTab,
    CycleJobStatusFilter,
    GoBack,
    JobDetailLoaded,
    JobsLoaded,
    Screen,
    SelectJob,
    SelectQueue,
    SetConnectionStatus,
    SetQueueFilter,
    SetQueueNames,
    StartQueueFilter,
    UpdateQueues,
    ViewState,
    ViewStateStore,
)
from bullscope.monitor.viewport import Viewport
from bullscope.observability.logging import get_logger, log_event
from bullscope.store.connection import ConnectionManager, ConnectionStatus
from bullscope.store.errors import MonitorError
from bullscope.store.jobs import DEFAULT_PAGE_SIZE, get_job, get_job_logs, list_jobs
from bullscope.store.models import JobState, QueueEvent
from bullscope.store.poller import POLL_INTERVAL, poll_queues
from bullscope.store.registry import discover_queues


_LOGGER = get_logger("bullscope.controller")

# Errors a single fetch may raise without taking the dashboard down.
FETCH_ERRORS = (MonitorError, RedisError, OSError, asyncio.TimeoutError)

# Events for the open queue are coalesced into one refetch after this delay.
EVENT_REFRESH_DELAY = 0.25

_SPECIAL_KEYS = {
    "enter",
    "escape",
    "up",
    "down",
    "left",
    "right",
    "tab",
    "shift+tab",
    "backspace",
    "home",
    "end",
    "pageup",
    "pagedown",
    "ctrl+d",
    "ctrl+u",
    "ctrl+r",
}

_NEXT_TAB = {"L", "]", "tab"}
_PREV_TAB = {"H", "[", "shift+tab"}


def _key_token(key: str, character: str | None) -> str:
    if key in _SPECIAL_KEYS:
        return key
    if character and len(character) == 1 and character.isprintable():
        return character
    return key


JobContext = tuple[int, str, JobState]


class MonitorController:
    """Owns the connection manager and drives the view state store."""

    def __init__(
        self,
        manager: ConnectionManager,
        *,
        store: ViewStateStore | None = None,
        poll_interval: float = POLL_INTERVAL,
        page_size: int = DEFAULT_PAGE_SIZE,
        viewport_size: int = 10,
        on_exit: Callable[[], Any] | None = None,
    ) -> None:
        self.manager = manager
        self.store = store or ViewStateStore()
        self.poll_interval = poll_interval
        self.page_size = page_size
        self.queue_view = Viewport(viewport_size=viewport_size)
        self.job_view = Viewport(viewport_size=viewport_size)
        self._on_exit = on_exit

        self._generation = 0
        self._pending_key: str | None = None
        self._queue_poll_task: asyncio.Task[None] | None = None
        self._job_poll_task: asyncio.Task[None] | None = None
        self._job_context: JobContext | None = None
        self._detail_context: tuple[str, str] | None = None
        self._event_refresh_pending = False
        self._tasks: set[asyncio.Task[Any]] = set()
        self._last_state = self.store.state
        self.queue_view.resize(item_count=len(self._last_state.filtered_queue_names))
        self.job_view.resize(item_count=len(self._last_state.jobs))
        self.store.subscribe(self._on_state_change)

    @property
    def state(self) -> ViewState:
        return self.store.state

    @property
    def generation(self) -> int:
        return self._generation

    def _spawn(self, coro: Awaitable[Any]) -> asyncio.Task[Any]:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def settle(self) -> None:
        """Wait until every one-shot background fetch has finished."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # Connection lifecycle -------------------------------------------------

    def start(self) -> asyncio.Task[Any]:
        return self._spawn(self.connect())

    async def connect(self) -> bool:
        """(Re)connect, discover queues, take a first snapshot, start polling."""

        self._generation += 1
        generation = self._generation
        self._stop_polling()
        self.store.dispatch(SetConnectionStatus(ConnectionStatus.CONNECTING))
        try:
            await self.manager.connect()
        except MonitorError as exc:
            if generation == self._generation:
                self.store.dispatch(SetConnectionStatus(ConnectionStatus.ERROR, str(exc)))
            return False
        if generation != self._generation:
            return False

        self.store.dispatch(SetConnectionStatus(ConnectionStatus.CONNECTED))
        await self.rediscover(generation=generation)
        await self.refresh_queues(generation=generation)
        self._queue_poll_task = asyncio.ensure_future(self._queue_poll_loop(generation))
        self._sync_job_polling(self.state)
        return True

    def reconnect(self) -> asyncio.Task[Any]:
        return self._spawn(self.connect())

    async def shutdown(self) -> None:
        """Stop all loops and close the connection; never raises."""

        self._generation += 1
        self._stop_polling()
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*list(self._tasks), return_exceptions=True)
        try:
            await self.manager.disconnect()
        except Exception:
            _LOGGER.exception("disconnect failed during shutdown")
        self.store.dispatch(SetConnectionStatus(ConnectionStatus.DISCONNECTED))

    def _stop_polling(self) -> None:
        for task in (self._queue_poll_task, self._job_poll_task):
            if task is not None:
                task.cancel()
        self._queue_poll_task = None
        self._job_poll_task = None
        self._job_context = None
        self._detail_context = None

    def _current(self, generation: int) -> bool:
        return generation == self._generation and self.manager.connected

    # Queue metadata -------------------------------------------------------

    async def rediscover(self, *, generation: int | None = None) -> list[str]:
        """Re-scan queue names and attach event listeners to new ones."""

        generation = self._generation if generation is None else generation
        if not self._current(generation):
            return list(self.state.queue_names)
        try:
            names = await discover_queues(self.manager.client, self.manager.prefix)
        except FETCH_ERRORS as exc:
            log_event(
                _LOGGER,
                "discover_failed",
                level=logging.WARNING,
                error=f"{type(exc).__name__}: {exc}",
            )
            return list(self.state.queue_names)
        if not self._current(generation):
            return names

        self.store.dispatch(SetQueueNames(tuple(names)))
        for name in names:
            try:
                self.manager.subscribe(name, self._on_queue_event)
            except MonitorError:
                break
        return names

    async def refresh_queues(self, *, generation: int | None = None) -> None:
        """One metadata poll; failures leave the previous snapshot in place."""

        generation = self._generation if generation is None else generation
        if not self._current(generation):
            return
        names = self.state.queue_names
        if not names:
            return
        try:
            result = await poll_queues(self.manager, names)
        except FETCH_ERRORS as exc:
            log_event(
                _LOGGER,
                "queue_poll_failed",
                level=logging.DEBUG,
                error=f"{type(exc).__name__}: {exc}",
            )
            return
        if not self._current(generation):
            return
        self.store.dispatch(UpdateQueues(tuple(result.snapshots.values())))

    async def _queue_poll_loop(self, generation: int) -> None:
        while self._current(generation):
            await asyncio.sleep(self.poll_interval)
            await self.refresh_queues(generation=generation)

    # Jobs -------------------------------------------------------------------

    async def refresh_jobs(self, context: JobContext) -> None:
        generation, queue, status = context
        if not self._current(generation):
            return
        try:
            jobs = await list_jobs(self.manager, queue, status, 0, self.page_size - 1)
        except FETCH_ERRORS as exc:
            log_event(
                _LOGGER,
                "job_list_failed",
                level=logging.DEBUG,
                queue=queue,
                status=status.value,
                error=f"{type(exc).__name__}: {exc}",
            )
            jobs = []
        if not self._current(generation):
            return
        self.store.dispatch(JobsLoaded(queue=queue, status=status, jobs=tuple(jobs)))

    async def refresh_detail(self, queue: str, job_id: str, *, generation: int | None = None) -> None:
        generation = self._generation if generation is None else generation
        if not self._current(generation):
            return
        try:
            job = await get_job(self.manager, queue, job_id)
            logs = await get_job_logs(self.manager, queue, job_id)
        except FETCH_ERRORS as exc:
            log_event(
                _LOGGER,
                "job_detail_failed",
                level=logging.DEBUG,
                queue=queue,
                job_id=job_id,
                error=f"{type(exc).__name__}: {exc}",
            )
            return
        if not self._current(generation):
            return
        self.store.dispatch(JobDetailLoaded(queue=queue, job_id=job_id, job=job, logs=logs))

    async def _job_poll_loop(self, context: JobContext) -> None:
        while self._job_context == context:
            await self.refresh_jobs(context)
            detail = self._detail_context
            if detail is not None and detail[0] == context[1]:
                await self.refresh_detail(*detail, generation=context[0])
            await asyncio.sleep(self.poll_interval)

    def _sync_job_polling(self, state: ViewState) -> None:
        context: JobContext | None = None
        if state.selected_queue is not None and self.manager.connected:
            context = (self._generation, state.selected_queue, state.job_status_filter)
        if context == self._job_context:
            return
        if self._job_poll_task is not None:
            self._job_poll_task.cancel()
            self._job_poll_task = None
        self._job_context = context
        if context is not None:
            self._job_poll_task = asyncio.ensure_future(self._job_poll_loop(context))

    def refresh(self) -> None:
        """Manual refresh: metadata plus the open job list and job."""

        self._spawn(self.refresh_queues())
        if self._job_context is not None:
            self._spawn(self.refresh_jobs(self._job_context))
        if self._detail_context is not None:
            self._spawn(self.refresh_detail(*self._detail_context))

    # Push events --------------------------------------------------------------

    def _on_queue_event(self, event: QueueEvent) -> None:
        context = self._job_context
        if context is None or event.queue != context[1]:
            return
        if self._event_refresh_pending:
            return
        self._event_refresh_pending = True
        self._spawn(self._refresh_after_event(context))

    async def _refresh_after_event(self, context: JobContext) -> None:
        try:
            await asyncio.sleep(EVENT_REFRESH_DELAY)
        finally:
            self._event_refresh_pending = False
        if self._job_context == context:
            await self.refresh_jobs(context)

    # State observation ----------------------------------------------------

    def _on_state_change(self, state: ViewState) -> None:
        previous, self._last_state = self._last_state, state

        if state.queue_filter != previous.queue_filter:
            self.queue_view.go_to_top()
        self.queue_view.resize(item_count=len(state.filtered_queue_names))

        if (
            state.selected_queue != previous.selected_queue
            or state.job_status_filter != previous.job_status_filter
        ):
            self.job_view.go_to_top()
        self.job_view.resize(item_count=len(state.jobs))

        self._sync_job_polling(state)

        detail: tuple[str, str] | None = None
        if state.selected_queue is not None and state.selected_job is not None:
            detail = (state.selected_queue, state.selected_job.id)
        if detail != self._detail_context:
            self._detail_context = detail
            if detail is not None:
                self._spawn(self.refresh_detail(*detail))

    def set_viewport_sizes(self, *, queues: int, jobs: int) -> None:
        self.queue_view.resize(viewport_size=queues)
        self.job_view.resize(viewport_size=jobs)

    # Input --------------------------------------------------------------------

    def handle_key(self, key: str, character: str | None = None) -> bool:
        """Translate one key press into actions; returns True when consumed."""

        state = self.state
        token = _key_token(key, character)

        if state.is_filtering_queues:
            return self._handle_filter_key(state, token)

        pending, self._pending_key = self._pending_key, None

        if state.connection_status is ConnectionStatus.ERROR and token == "enter":
            self.reconnect()
            return True
        if token in {"r", "ctrl+r"}:
            self.refresh()
            return True

        if state.screen is Screen.QUEUES:
            return self._handle_queue_key(state, token, pending)
        if state.screen is Screen.JOBS:
            return self._handle_job_key(state, token, pending)
        return self._handle_detail_key(token)

    def _handle_filter_key(self, state: ViewState, token: str) -> bool:
        if token == "escape":
            self.store.dispatch(CancelQueueFilter())
        elif token == "enter":
            self.store.dispatch(ConfirmQueueFilter())
        elif token == "backspace":
            self.store.dispatch(SetQueueFilter(state.queue_filter[:-1]))
        elif len(token) == 1:
            self.store.dispatch(SetQueueFilter(state.queue_filter + token))
        return True

    def _handle_list_motion(self, view: Viewport, token: str, pending: str | None) -> bool:
        if token in {"up", "k"}:
            view.move_up()
        elif token in {"down", "j"}:
            view.move_down()
        elif token in {"G", "end"}:
            view.go_to_bottom()
        elif token == "home":
            view.go_to_top()
        elif token == "g":
            if pending == "g":
                view.go_to_top()
            else:
                self._pending_key = "g"
        elif token in {"ctrl+d", "pagedown"}:
            view.page_down()
        elif token in {"ctrl+u", "pageup"}:
            view.page_up()
        else:
            return False
        return True

    def _handle_queue_key(self, state: ViewState, token: str, pending: str | None) -> bool:
        if self._handle_list_motion(self.queue_view, token, pending):
            return True
        if token == "/":
            self.store.dispatch(StartQueueFilter())
        elif token == "escape":
            if state.queue_filter:
                self.store.dispatch(SetQueueFilter(""))
        elif token in {"enter", "l", "right"}:
            names = state.filtered_queue_names
            if names:
                self.store.dispatch(SelectQueue(names[self.queue_view.cursor]))
        elif token == "R":
            self._spawn(self.rediscover())
        elif token == "q":
            if self._on_exit is not None:
                self._on_exit()
        else:
            return False
        return True

    def _handle_job_key(self, state: ViewState, token: str, pending: str | None) -> bool:
        if self._handle_list_motion(self.job_view, token, pending):
            return True
        if token in {"enter", "l", "right"}:
            if state.jobs:
                self.store.dispatch(SelectJob(state.jobs[self.job_view.cursor]))
        elif token in {"escape", "q", "h", "left", "backspace"}:
            self.store.dispatch(GoBack())
        elif token in _NEXT_TAB:
            self.store.dispatch(CycleJobStatusFilter(1))
        elif token in _PREV_TAB:
            self.store.dispatch(CycleJobStatusFilter(-1))
        else:
            return False
        return True

    def _handle_detail_key(self, token: str) -> bool:
        if token in {"escape", "q", "h", "left", "backspace"}:
            self.store.dispatch(GoBack())
        elif token in _NEXT_TAB:
            self.store.dispatch(CycleDetailTab(1))
        elif token in _PREV_TAB:
            self.store.dispatch(CycleDetailTab(-1))
        else:
            return False
        return True
