"""Pure render functions from view state to rich renderables."""

from __future__ import annotations

from rich.console import Group, RenderableType
from rich.table import Table
from rich.text import Text

from bullscope.monitor.state import DETAIL_TABS, DetailTab, Screen, ViewState
from bullscope.monitor.viewport import Viewport
from bullscope.store.connection import ConnectionStatus
from bullscope.store.models import STATUS_FILTERS, JobInfo, JobState

from .tui_utils import (
    _clip,
    _format_age,
    _format_count,
    _format_date,
    _format_duration,
    _format_json,
    _format_progress,
)


STATUS_TAB_LABELS: dict[JobState, tuple[str, str]] = {
    JobState.ACTIVE: ("Active", "yellow"),
    JobState.WAITING: ("Waiting", "cyan"),
    JobState.FAILED: ("Failed", "red"),
    JobState.COMPLETED: ("Done", "green"),
    JobState.DELAYED: ("Delayed", "magenta"),
}

DETAIL_TAB_LABELS: dict[DetailTab, str] = {
    DetailTab.INFO: "Info",
    DetailTab.DATA: "Data",
    DetailTab.ERROR: "Error",
    DetailTab.RESULT: "Result",
    DetailTab.LOGS: "Logs",
}

MAX_NAME_WIDTH = 35
_SEPARATOR = " · "


def connection_indicator(state: ViewState, *, verbose: bool = False) -> Text:
    status = state.connection_status
    if status is ConnectionStatus.CONNECTED:
        return Text("● Connected", style="green")
    if status is ConnectionStatus.CONNECTING:
        return Text("◐ Connecting...", style="yellow")
    if status is ConnectionStatus.ERROR:
        detail = _clip(state.connection_error or "Error", 30) if verbose else "Error"
        return Text(f"✕ {detail}", style="red")
    return Text("○ Disconnected", style="dim")


def render_header(state: ViewState) -> Table:
    crumbs = Text()
    crumbs.append("BullMQ", style="bold cyan")
    if state.screen is Screen.QUEUES:
        crumbs.append(" › ", style="dim")
        crumbs.append("Queues")
        if state.queue_filter:
            crumbs.append(" (filtered)", style="dim")
    elif state.selected_queue is not None:
        crumbs.append(" › ", style="dim")
        crumbs.append("Queues", style="dim")
        crumbs.append(" › ", style="dim")
        if state.screen is Screen.JOBS:
            crumbs.append(state.selected_queue)
        else:
            crumbs.append(state.selected_queue, style="dim")
            crumbs.append(" › ", style="dim")
            crumbs.append("Job Details")

    grid = Table.grid(expand=True)
    grid.add_column(ratio=1)
    grid.add_column(justify="right")
    grid.add_row(crumbs, connection_indicator(state))
    return grid


def _more_line(count: int, arrow: str) -> Text:
    return Text(f"   {arrow} {count} more", style="cyan")


def _count_cell(value: int, color: str, *, selected: bool) -> Text:
    style = "bold" if selected else (f"bold {color}" if value > 0 else "dim")
    return Text(_format_count(value), style=style)


def render_queue_list(state: ViewState, view: Viewport) -> RenderableType:
    status = state.connection_status
    if status is ConnectionStatus.CONNECTING:
        return Text(" Connecting to Redis...", style="magenta")
    if status is ConnectionStatus.ERROR:
        message = Text()
        message.append(" Connection failed", style="bold red")
        message.append(" - check your Redis settings (Enter to retry)")
        return message
    if not state.queue_names:
        return Text(" No queues found in this Redis instance", style="dim")

    parts: list[RenderableType] = []
    names = state.filtered_queue_names
    if state.is_filtering_queues:
        line = Text()
        line.append(" / ", style="yellow")
        line.append(state.queue_filter or "type to filter...", style="" if state.queue_filter else "dim")
        line.append("▏", style="yellow")
        parts.append(line)
    elif state.queue_filter:
        line = Text()
        line.append(" filter: ")
        line.append(state.queue_filter, style="bold yellow")
        line.append(f" ({len(names)}/{len(state.queue_names)} matching)", style="dim")
        parts.append(line)

    name_width = min(MAX_NAME_WIDTH, max(len(name) for name in state.queue_names))
    table = Table(box=None, expand=False, padding=(0, 1), header_style="bold")
    table.add_column("", width=1)
    table.add_column("Name", width=name_width, no_wrap=True)
    table.add_column("", width=1)
    table.add_column("Active", justify="right", width=7)
    table.add_column("Wait", justify="right", width=7)
    table.add_column("Fail", justify="right", width=7)
    table.add_column("Done", justify="right", width=9)

    for offset, name in enumerate(view.visible_items(names)):
        selected = view.viewport_start + offset == view.cursor
        info = state.queues.get(name)
        counts = info.counts if info is not None else {}
        table.add_row(
            Text("▸" if selected else " ", style="bold magenta"),
            Text(_clip(name, name_width), style="bold" if selected else ""),
            Text("⏸", style="bold yellow") if info is not None and info.is_paused else Text(""),
            _count_cell(counts.get(JobState.ACTIVE.value, 0), "yellow", selected=selected),
            _count_cell(counts.get(JobState.WAITING.value, 0), "cyan", selected=selected),
            _count_cell(counts.get(JobState.FAILED.value, 0), "red", selected=selected),
            _count_cell(counts.get(JobState.COMPLETED.value, 0), "green", selected=selected),
            style="on magenta" if selected else None,
        )

    info = view.scroll_info()
    if info.can_scroll_up:
        parts.append(_more_line(info.hidden_above, "↑"))
    if not names and state.queue_filter:
        parts.append(Text(f'  No queues match "{state.queue_filter}"'))
    else:
        parts.append(table)
    if info.can_scroll_down:
        parts.append(_more_line(info.hidden_below, "↓"))
    parts.append(Text(f" showing {info.showing}", style="dim"))
    return Group(*parts)


def render_status_tabs(state: ViewState) -> Text:
    queue = state.selected_queue_info
    line = Text()
    for idx, status in enumerate(STATUS_FILTERS):
        label, color = STATUS_TAB_LABELS[status]
        count = queue.count(status) if queue is not None else 0
        if status == state.job_status_filter:
            line.append(f" {label} {count} ", style=f"bold black on {color}")
        elif count > 0:
            line.append(label, style=f"bold {color}")
            line.append(f" {count}")
        else:
            line.append(label, style="dim")
        if idx < len(STATUS_FILTERS) - 1:
            line.append(_SEPARATOR, style="dim")
    return line


def render_job_list(state: ViewState, view: Viewport, *, now_ms: int | None = None) -> RenderableType:
    parts: list[RenderableType] = [render_status_tabs(state), Text("")]
    if state.jobs_loading and state.connection_status is ConnectionStatus.CONNECTED:
        parts.append(Text(" Loading jobs...", style="magenta"))
        return Group(*parts)
    if not state.jobs:
        parts.append(Text(f" No {state.job_status_filter.value} jobs in this queue", style="dim"))
        return Group(*parts)

    table = Table(box=None, expand=False, padding=(0, 1), header_style="bold")
    table.add_column("", width=1)
    table.add_column("ID", width=12, no_wrap=True)
    table.add_column("Name", width=20, no_wrap=True)
    table.add_column("Att", justify="right", width=3)
    table.add_column("Progress", width=10, no_wrap=True)
    table.add_column("Age", width=6)
    for offset, job in enumerate(view.visible_items(state.jobs)):
        selected = view.viewport_start + offset == view.cursor
        row_style = "on magenta" if selected else ("red" if job.failed_reason else None)
        table.add_row(
            Text("▸" if selected else " ", style="bold magenta"),
            _clip(job.id, 12),
            _clip(job.name or "default", 20),
            str(job.attempts_made),
            _format_progress(job.progress),
            _format_age(job.timestamp, now_ms=now_ms),
            style=row_style,
        )

    info = view.scroll_info()
    if info.can_scroll_up:
        parts.append(_more_line(info.hidden_above, "↑"))
    parts.append(table)
    if info.can_scroll_down:
        parts.append(_more_line(info.hidden_below, "↓"))
    parts.append(Text(f" showing {info.showing}", style="dim"))
    return Group(*parts)


def render_detail_tabs(state: ViewState, job: JobInfo) -> Text:
    line = Text()
    for idx, tab in enumerate(DETAIL_TABS):
        label = DETAIL_TAB_LABELS[tab]
        flagged = (tab is DetailTab.ERROR and job.has_error) or (
            tab is DetailTab.RESULT and job.has_returnvalue
        )
        color = "red" if tab is DetailTab.ERROR and flagged else "green" if flagged else "magenta"
        if tab is state.detail_tab:
            line.append(f" {label} ", style=f"bold white on {color}")
        elif flagged:
            line.append(label, style=f"bold {color}")
            line.append(" !" if tab is DetailTab.ERROR else " *", style=f"bold {color}")
        else:
            line.append(label, style="dim")
        if idx < len(DETAIL_TABS) - 1:
            line.append(_SEPARATOR, style="dim")
    return line


def _info_rows(job: JobInfo) -> Table:
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold magenta", width=10)
    table.add_column()
    progress = job.progress
    if isinstance(progress, (int, float)) and not isinstance(progress, bool):
        progress_text = f"{progress}%"
    else:
        progress_text = _format_json(progress)
    table.add_row("Name", job.name or "default")
    table.add_row("ID", job.id)
    table.add_row("Attempts", str(job.attempts_made))
    table.add_row("Progress", Text(progress_text, style="bold cyan"))
    table.add_row("Created", _format_date(job.timestamp))
    table.add_row("Started", _format_date(job.processed_on))
    table.add_row("Finished", _format_date(job.finished_on))
    table.add_row("Duration", Text(_format_duration(job.processed_on, job.finished_on), style="bold yellow"))
    if job.has_error:
        table.add_row("Status", Text("Failed", style="bold red"))
    return table


def _error_body(job: JobInfo, height: int) -> RenderableType:
    if not job.has_error:
        return Text("No error information available", style="dim")
    parts: list[RenderableType] = [Text("Error", style="bold red")]
    if job.failed_reason:
        parts.append(Text(job.failed_reason, style="red"))
    if job.stacktrace:
        parts.append(Text(""))
        parts.append(Text("Stacktrace", style="bold yellow"))
        for line in job.stacktrace[: max(1, height - 6)]:
            parts.append(Text(line, style="dim", no_wrap=True, overflow="ellipsis"))
    return Group(*parts)


def _logs_body(state: ViewState, height: int) -> RenderableType:
    logs = state.job_logs
    if logs is None:
        return Text("Loading logs...", style="magenta")
    if not logs.logs:
        return Text("No logs for this job", style="dim")
    shown = logs.logs[-max(1, height - 2):]
    parts: list[RenderableType] = [Text(f"{len(shown)} of {logs.count} lines", style="dim")]
    parts.extend(Text(line, no_wrap=True, overflow="ellipsis") for line in shown)
    return Group(*parts)


def render_job_detail(state: ViewState, *, height: int = 20) -> RenderableType:
    job = state.selected_job
    if job is None:
        return Text(" No job selected", style="dim")

    tab = state.detail_tab
    if tab is DetailTab.INFO:
        body: RenderableType = _info_rows(job)
    elif tab is DetailTab.DATA:
        body = Text(_format_json(job.data), style="cyan")
    elif tab is DetailTab.ERROR:
        body = _error_body(job, height)
    elif tab is DetailTab.RESULT:
        if job.has_returnvalue:
            body = Text(_format_json(job.returnvalue), style="bold green")
        else:
            body = Text("No return value", style="dim")
    else:
        body = _logs_body(state, height)
    return Group(render_detail_tabs(state, job), Text(""), body)


def render_main(state: ViewState, queue_view: Viewport, job_view: Viewport, *, height: int = 20) -> RenderableType:
    if state.screen is Screen.JOB_DETAIL:
        return render_job_detail(state, height=height)
    if state.screen is Screen.JOBS:
        return render_job_list(state, job_view)
    return render_queue_list(state, queue_view)


_HELP: dict[Screen, tuple[tuple[str, str], ...]] = {
    Screen.QUEUES: (("j/k", "nav"), ("l", "select"), ("/", "filter"), ("r", "refresh"), ("q", "quit")),
    Screen.JOBS: (("j/k", "nav"), ("H/L", "tab"), ("l", "view"), ("h", "back"), ("r", "refresh")),
    Screen.JOB_DETAIL: (("H/L", "tab"), ("h", "back"), ("r", "refresh")),
}


def render_status_bar(state: ViewState) -> Table:
    help_text = Text()
    if state.is_filtering_queues:
        pairs: tuple[tuple[str, str], ...] = (("Enter", "confirm"), ("Esc", "cancel"))
        key_style = "yellow"
    elif state.connection_status is ConnectionStatus.ERROR:
        pairs = (("Enter", "retry"), ("q", "quit"))
        key_style = "yellow"
    else:
        pairs = _HELP[state.screen]
        key_style = "cyan"
    for key, label in pairs:
        help_text.append(key, style=key_style)
        help_text.append(f" {label}  ", style="dim")

    grid = Table.grid(expand=True)
    grid.add_column(ratio=1)
    grid.add_column(justify="right")
    grid.add_row(help_text, connection_indicator(state, verbose=True))
    return grid
