"""Tests for the monitor driver: fetch orchestration and key handling."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from bullscope.config.schema import RedisConfig
from bullscope.monitor.controller import MonitorController
from bullscope.monitor.state import (
    DetailTab,
    JobsLoaded,
    Screen,
    SelectQueue,
    SetConnectionStatus,
    SetJobStatusFilter,
    ViewState,
    ViewStateStore,
)
from bullscope.store.connection import ConnectionManager, ConnectionStatus
from bullscope.store.models import JobInfo, JobState


def _controller(manager, **kwargs) -> MonitorController:
    kwargs.setdefault("poll_interval", 60.0)
    return MonitorController(manager, **kwargs)


class TestConnectLifecycle:
    @pytest.mark.asyncio
    async def test_connect_discovers_and_polls(self, manager, seed):
        await seed("emails", wait=("1", "2"), paused=True)
        await seed("payments", completed=("3",))
        controller = _controller(manager)

        assert await controller.connect()
        try:
            state = controller.state
            assert state.connection_status is ConnectionStatus.CONNECTED
            assert state.queue_names == ("emails", "payments")
            assert state.queues["emails"].count(JobState.WAITING) == 2
            assert state.queues["emails"].is_paused
            assert state.queues["payments"].count(JobState.COMPLETED) == 1
            assert manager.events.channels == ["emails", "payments"]
        finally:
            await controller.shutdown()

        assert controller.state.connection_status is ConnectionStatus.DISCONNECTED
        assert manager.status is ConnectionStatus.DISCONNECTED

    @pytest.mark.asyncio
    async def test_connect_failure_sets_error_state(self):
        client = AsyncMock()
        client.ping.side_effect = RedisConnectionError("Connection refused")
        manager = ConnectionManager(RedisConfig(host="localhost", port=1), client_factory=lambda: client)
        controller = _controller(manager)

        assert not await controller.connect()
        assert controller.state.connection_status is ConnectionStatus.ERROR
        assert "Connection refused" in controller.state.connection_error
        await controller.shutdown()

    @pytest.mark.asyncio
    async def test_shutdown_twice_is_harmless(self, manager, seed):
        await seed("emails")
        controller = _controller(manager)
        await controller.connect()
        await controller.shutdown()
        await controller.shutdown()
        assert manager.status is ConnectionStatus.DISCONNECTED


class TestQueuePolling:
    @pytest.mark.asyncio
    async def test_refresh_picks_up_new_counts(self, manager, seed, redis_client):
        await seed("emails", wait=("1",))
        controller = _controller(manager)
        await controller.connect()
        try:
            await redis_client.lpush("bull:emails:wait", "2", "3")
            await controller.refresh_queues()
            assert controller.state.queues["emails"].count(JobState.WAITING) == 3
        finally:
            await controller.shutdown()

    @pytest.mark.asyncio
    async def test_failed_queue_keeps_previous_snapshot(self, manager, seed, redis_client):
        await seed("emails", wait=("1",))
        await seed("payments", wait=("2",))
        await seed("reports", wait=("5",))
        controller = _controller(manager)
        await controller.connect()
        try:
            before = controller.state.queues["payments"]
            manager.queue("payments").get_info = AsyncMock(side_effect=RedisConnectionError("reset"))
            for queue, job_id in (("emails", "3"), ("payments", "4"), ("reports", "6")):
                await redis_client.lpush(f"bull:{queue}:wait", job_id)

            await controller.refresh_queues()

            assert controller.state.queues["emails"].count(JobState.WAITING) == 2
            assert controller.state.queues["reports"].count(JobState.WAITING) == 2
            assert controller.state.queues["payments"] is before
        finally:
            await controller.shutdown()

    @pytest.mark.asyncio
    async def test_results_after_shutdown_are_ignored(self, manager, seed):
        await seed("emails")
        controller = _controller(manager)
        await controller.connect()
        generation = controller.generation
        await controller.shutdown()

        state = controller.state
        await controller.refresh_queues(generation=generation)
        assert controller.state is state

    @pytest.mark.asyncio
    async def test_rediscover_finds_new_queue(self, manager, seed):
        await seed("emails")
        controller = _controller(manager)
        await controller.connect()
        try:
            await seed("reports")
            names = await controller.rediscover()
            assert names == ["emails", "reports"]
            assert controller.state.queue_names == ("emails", "reports")
            assert "reports" in manager.events.channels
        finally:
            await controller.shutdown()


class TestJobFetching:
    @pytest.mark.asyncio
    async def test_selecting_queue_loads_jobs(self, manager, seed, eventually):
        await seed("emails", wait=("1", "2"), jobs={"1": {"name": "a"}, "2": {"name": "b"}})
        controller = _controller(manager)
        await controller.connect()
        try:
            controller.store.dispatch(SelectQueue("emails"))
            controller.store.dispatch(SetJobStatusFilter(JobState.WAITING))
            await eventually(lambda: not controller.state.jobs_loading)
            assert [job.id for job in controller.state.jobs] == ["2", "1"]
        finally:
            await controller.shutdown()

    @pytest.mark.asyncio
    async def test_late_result_for_previous_queue_is_discarded(self, manager, seed, eventually):
        await seed("X", active=("x1",), jobs={"x1": {"name": "from-x"}})
        await seed("Y", active=("y1",), jobs={"y1": {"name": "from-y"}})
        controller = _controller(manager)
        await controller.connect()
        try:
            controller.store.dispatch(SelectQueue("X"))
            controller.store.dispatch(SelectQueue("Y"))
            await eventually(lambda: not controller.state.jobs_loading)

            # A fetch issued while X was open completes after the switch.
            await controller.refresh_jobs((controller.generation, "X", JobState.ACTIVE))

            assert controller.state.selected_queue == "Y"
            assert [job.id for job in controller.state.jobs] == ["y1"]
        finally:
            await controller.shutdown()

    @pytest.mark.asyncio
    async def test_clearing_queue_with_fetch_in_flight(self, manager, seed):
        await seed("X", active=("x1",), jobs={"x1": {"name": "from-x"}})
        controller = _controller(manager)
        await controller.connect()
        try:
            controller.store.dispatch(SelectQueue("X"))
            controller.store.dispatch(SelectQueue(None))
            await controller.refresh_jobs((controller.generation, "X", JobState.ACTIVE))

            state = controller.state
            assert state.screen is Screen.QUEUES
            assert state.jobs == ()
            assert state.selected_job is None
        finally:
            await controller.shutdown()

    @pytest.mark.asyncio
    async def test_event_on_open_queue_triggers_refetch(self, manager, seed, redis_client, eventually):
        await seed("emails", wait=("1",), jobs={"1": {"name": "a"}})
        controller = _controller(manager)
        await controller.connect()
        try:
            controller.store.dispatch(SelectQueue("emails"))
            controller.store.dispatch(SetJobStatusFilter(JobState.WAITING))
            await eventually(lambda: not controller.state.jobs_loading)

            await redis_client.hset("bull:emails:2", mapping={"name": "b"})
            await redis_client.lpush("bull:emails:wait", "2")
            manager.events.dispatch("emails", {"event": "waiting", "jobId": "2"})
            await controller.settle()

            assert [job.id for job in controller.state.jobs] == ["2", "1"]
        finally:
            await controller.shutdown()

    @pytest.mark.asyncio
    async def test_opening_job_loads_detail_and_logs(self, manager, seed, redis_client, eventually):
        await seed("emails", active=("1",), jobs={"1": {"name": "a", "progress": 10}})
        await redis_client.rpush("bull:emails:1:logs", "step one")
        controller = _controller(manager)
        await controller.connect()
        try:
            controller.store.dispatch(SelectQueue("emails"))
            await eventually(lambda: bool(controller.state.jobs))
            await redis_client.hset("bull:emails:1", "progress", "80")

            assert controller.handle_key("enter")
            await controller.settle()

            state = controller.state
            assert state.screen is Screen.JOB_DETAIL
            assert state.selected_job.progress == 80
            assert state.job_logs.logs == ["step one"]
        finally:
            await controller.shutdown()


def _offline_controller(manager, names=("alpha", "beta", "gamma"), **kwargs) -> MonitorController:
    store = ViewStateStore(ViewState(queue_names=tuple(names)))
    return _controller(manager, store=store, **kwargs)


def _load_jobs(controller: MonitorController, queue: str, ids: list[str]) -> None:
    jobs = tuple(JobInfo(id=job_id, name="job") for job_id in ids)
    controller.store.dispatch(JobsLoaded(queue, controller.state.job_status_filter, jobs))


class TestQueueListKeys:
    @pytest.mark.asyncio
    async def test_move_and_select(self, manager):
        controller = _offline_controller(manager)
        controller.handle_key("j")
        controller.handle_key("down")
        controller.handle_key("k")
        assert controller.queue_view.cursor == 1

        assert controller.handle_key("enter")
        assert controller.state.selected_queue == "beta"
        assert controller.state.screen is Screen.JOBS

    @pytest.mark.asyncio
    async def test_gg_and_G(self, manager):
        controller = _offline_controller(manager)
        controller.handle_key("G", "G")
        assert controller.queue_view.cursor == 2

        controller.handle_key("g", "g")
        assert controller.queue_view.cursor == 2
        controller.handle_key("g", "g")
        assert controller.queue_view.cursor == 0

    @pytest.mark.asyncio
    async def test_single_g_then_other_key_does_not_jump(self, manager):
        controller = _offline_controller(manager)
        controller.handle_key("G", "G")
        controller.handle_key("g", "g")
        controller.handle_key("k", "k")
        controller.handle_key("g", "g")
        assert controller.queue_view.cursor == 1

    @pytest.mark.asyncio
    async def test_filter_mode_typing(self, manager):
        controller = _offline_controller(manager)
        controller.handle_key("j")
        controller.handle_key("j")

        controller.handle_key("slash", "/")
        assert controller.state.is_filtering_queues
        for char in "gax":
            controller.handle_key(char, char)
        controller.handle_key("backspace")
        assert controller.state.queue_filter == "ga"
        assert controller.state.filtered_queue_names == ("gamma",)
        assert controller.queue_view.cursor == 0

        # Navigation keys are text while filtering.
        controller.handle_key("j", "j")
        assert controller.state.queue_filter == "gaj"
        controller.handle_key("backspace")

        controller.handle_key("enter")
        assert not controller.state.is_filtering_queues
        assert controller.state.queue_filter == "ga"

        controller.handle_key("escape")
        assert controller.state.queue_filter == ""

    @pytest.mark.asyncio
    async def test_escape_while_filtering_cancels(self, manager):
        controller = _offline_controller(manager)
        controller.handle_key("slash", "/")
        controller.handle_key("b", "b")
        controller.handle_key("escape")
        assert not controller.state.is_filtering_queues
        assert controller.state.queue_filter == ""

    @pytest.mark.asyncio
    async def test_quit_calls_exit_hook(self, manager):
        calls = []
        controller = _offline_controller(manager, on_exit=lambda: calls.append("exit"))
        assert controller.handle_key("q", "q")
        assert calls == ["exit"]

    @pytest.mark.asyncio
    async def test_unknown_key_not_consumed(self, manager):
        controller = _offline_controller(manager)
        assert not controller.handle_key("x", "x")

    @pytest.mark.asyncio
    async def test_paging(self, manager):
        names = [f"q{n:02d}" for n in range(30)]
        controller = _offline_controller(manager, names=names, viewport_size=10)
        controller.handle_key("ctrl+d")
        assert controller.queue_view.cursor == 10
        controller.handle_key("ctrl+u")
        assert controller.queue_view.cursor == 0


class TestJobListKeys:
    @pytest.mark.asyncio
    async def test_status_tabs_cycle(self, manager):
        controller = _offline_controller(manager)
        controller.handle_key("enter")
        controller.handle_key("L", "L")
        assert controller.state.job_status_filter is JobState.WAITING
        controller.handle_key("tab")
        assert controller.state.job_status_filter is JobState.FAILED
        controller.handle_key("H", "H")
        controller.handle_key("shift+tab")
        assert controller.state.job_status_filter is JobState.ACTIVE

    @pytest.mark.asyncio
    async def test_back_keys(self, manager):
        controller = _offline_controller(manager)
        for key, char in (("escape", None), ("q", "q"), ("h", "h")):
            controller.handle_key("enter")
            assert controller.state.screen is Screen.JOBS
            controller.handle_key(key, char)
            assert controller.state.screen is Screen.QUEUES

    @pytest.mark.asyncio
    async def test_open_job_and_detail_tabs(self, manager):
        controller = _offline_controller(manager)
        controller.handle_key("enter")
        _load_jobs(controller, "alpha", ["1", "2", "3"])
        controller.handle_key("j", "j")
        controller.handle_key("l", "l")

        state = controller.state
        assert state.screen is Screen.JOB_DETAIL
        assert state.selected_job.id == "2"

        controller.handle_key("right_square_bracket", "]")
        assert controller.state.detail_tab is DetailTab.DATA
        controller.handle_key("H", "H")
        controller.handle_key("H", "H")
        assert controller.state.detail_tab is DetailTab.LOGS

        controller.handle_key("backspace")
        assert controller.state.screen is Screen.JOBS
        await controller.settle()

    @pytest.mark.asyncio
    async def test_cursor_resets_on_status_change(self, manager):
        controller = _offline_controller(manager)
        controller.handle_key("enter")
        _load_jobs(controller, "alpha", ["1", "2", "3"])
        controller.handle_key("G", "G")
        assert controller.job_view.cursor == 2
        controller.handle_key("L", "L")
        assert controller.job_view.cursor == 0


class TestErrorStateKeys:
    @pytest.mark.asyncio
    async def test_enter_retries_connection(self, manager, seed):
        await seed("emails")
        controller = _offline_controller(manager)
        controller.store.dispatch(SetConnectionStatus(ConnectionStatus.ERROR, "boom"))

        assert controller.handle_key("enter")
        await controller.settle()
        try:
            assert controller.state.connection_status is ConnectionStatus.CONNECTED
            assert controller.state.queue_names == ("emails",)
        finally:
            await controller.shutdown()
