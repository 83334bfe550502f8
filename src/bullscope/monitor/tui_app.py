"""Main Textual app for the queue monitor."""

from __future__ import annotations

from typing import Callable

from textual import events
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.screen import ModalScreen
from textual.widgets import Static

from bullscope.config.loader import with_redis
from bullscope.config.schema import MonitorConfig, RedisConfig
from bullscope.monitor.controller import MonitorController
from bullscope.observability.logging import get_logger, log_event
from bullscope.store.connection import ConnectionManager

from .tui_render import render_header, render_main, render_status_bar
from .tui_screens import ConnectionSetupScreen


_LOGGER = get_logger("bullscope.tui")

# Rows taken by header, status bar and list chrome (filter line, column
# header, scroll markers, "showing" footer).
QUEUE_LIST_CHROME = 9
JOB_LIST_CHROME = 11
DETAIL_CHROME = 6


class MonitorTextualApp(App[None]):
    """Textual application for browsing queues, jobs and job details."""

    CSS = """
    Screen {
        layout: vertical;
    }

    #header_bar {
        height: 1;
        padding: 0 1;
        background: $surface-darken-1;
    }

    #main_panel {
        height: 1fr;
        margin: 0 1;
        border: round $panel;
        padding: 0 1;
    }

    #status_bar {
        height: 1;
        padding: 0 1;
        color: $text-muted;
    }
    """

    # Tab is claimed by focus navigation unless bound with priority.
    BINDINGS = [
        Binding("tab", "forward_key('tab')", "Next Tab", show=False, priority=True),
        Binding("shift+tab", "forward_key('shift+tab')", "Prev Tab", show=False, priority=True),
    ]

    def __init__(self, *, config: MonitorConfig, needs_setup: bool = False) -> None:
        super().__init__()
        self.config = config
        self.needs_setup = needs_setup
        self.controller: MonitorController | None = None
        self._unsubscribe: Callable[[], None] | None = None

    def compose(self) -> ComposeResult:
        yield Static(id="header_bar")
        yield Static(id="main_panel")
        yield Static(id="status_bar")

    def on_mount(self) -> None:
        if self.needs_setup:
            self.push_screen(
                ConnectionSetupScreen(host="", port=self.config.redis.port, db=self.config.redis.db),
                callback=self._on_setup_done,
            )
            return
        self._start()

    def _on_setup_done(self, redis: RedisConfig | None) -> None:
        if redis is None:
            self.exit()
            return
        self.config = with_redis(self.config, redis)
        self._start()

    def _start(self) -> None:
        manager = ConnectionManager(
            self.config.redis,
            prefix=self.config.prefix,
            timeout=self.config.connect_timeout,
        )
        self.controller = MonitorController(
            manager,
            poll_interval=self.config.poll_interval,
            page_size=self.config.page_size,
            on_exit=self.exit,
        )
        self._unsubscribe = self.controller.store.subscribe(lambda _state: self._render_all())
        self._apply_viewport_sizes()
        log_event(
            _LOGGER,
            "tui_started",
            target=manager.target,
            prefix=self.config.prefix,
            poll_interval=self.config.poll_interval,
        )
        self.controller.start()
        self._render_all()
        # Ages in the job list are relative to now.
        self.set_interval(1.0, self._render_all)

    async def on_unmount(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self.controller is not None:
            await self.controller.shutdown()

    def on_resize(self, event: events.Resize) -> None:
        self._apply_viewport_sizes()
        self._render_all()

    def _apply_viewport_sizes(self) -> None:
        if self.controller is None:
            return
        height = self.size.height
        self.controller.set_viewport_sizes(
            queues=max(1, height - QUEUE_LIST_CHROME),
            jobs=max(1, height - JOB_LIST_CHROME),
        )

    def on_key(self, event: events.Key) -> None:
        if self.controller is None or isinstance(self.screen, ModalScreen):
            return
        if self.controller.handle_key(event.key, event.character):
            event.stop()
            event.prevent_default()
            self._render_all()

    def action_forward_key(self, key: str) -> None:
        if isinstance(self.screen, ModalScreen):
            if key == "tab":
                self.screen.focus_next()
            else:
                self.screen.focus_previous()
            return
        if self.controller is not None and self.controller.handle_key(key):
            self._render_all()

    def _render_all(self) -> None:
        controller = self.controller
        if controller is None:
            return
        state = controller.state
        self.query_one("#header_bar", Static).update(render_header(state))
        self.query_one("#main_panel", Static).update(
            render_main(
                state,
                controller.queue_view,
                controller.job_view,
                height=max(1, self.size.height - DETAIL_CHROME),
            )
        )
        self.query_one("#status_bar", Static).update(render_status_bar(state))
