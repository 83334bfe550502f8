"""`bullscope tui` and `bullscope queues` commands."""

from __future__ import annotations

import asyncio
from dataclasses import asdict, dataclass
import json
from pathlib import Path
from typing import Annotated, Any

from rich.console import Console
from rich.table import Table
import tyro

from bullscope.config.loader import ConfigOverrides, load_config, missing_config_fields
from bullscope.config.schema import MonitorConfig
from bullscope.monitor.tui import run_monitor_tui
from bullscope.observability.logging import configure_logging
from bullscope.store.connection import ConnectionManager
from bullscope.store.errors import MonitorError
from bullscope.store.models import JobState, QueueInfo
from bullscope.store.poller import poll_queues
from bullscope.store.registry import discover_queues


@dataclass(slots=True)
class MonitorTuiCommand:
    """Run the interactive queue dashboard."""

    redis_host: Annotated[str | None, tyro.conf.arg(prefix_name=False)] = None
    redis_port: Annotated[int | None, tyro.conf.arg(prefix_name=False)] = None
    redis_password: Annotated[str | None, tyro.conf.arg(prefix_name=False)] = None
    redis_db: Annotated[int | None, tyro.conf.arg(prefix_name=False)] = None
    prefix: Annotated[str | None, tyro.conf.arg(prefix_name=False)] = None
    poll_interval: Annotated[float | None, tyro.conf.arg(prefix_name=False)] = None
    page_size: Annotated[int | None, tyro.conf.arg(prefix_name=False)] = None
    log_file: Annotated[Path | None, tyro.conf.arg(prefix_name=False)] = None
    log_level: Annotated[str | None, tyro.conf.arg(prefix_name=False)] = None


@dataclass(slots=True)
class QueuesCommand:
    """Print a one-shot snapshot of every queue."""

    redis_host: Annotated[str | None, tyro.conf.arg(prefix_name=False)] = None
    redis_port: Annotated[int | None, tyro.conf.arg(prefix_name=False)] = None
    redis_password: Annotated[str | None, tyro.conf.arg(prefix_name=False)] = None
    redis_db: Annotated[int | None, tyro.conf.arg(prefix_name=False)] = None
    prefix: Annotated[str | None, tyro.conf.arg(prefix_name=False)] = None
    json: Annotated[bool, tyro.conf.arg(prefix_name=False)] = False


def overrides_from(command: Any) -> ConfigOverrides:
    """Copy connection flags present on a command into ConfigOverrides."""

    return ConfigOverrides(
        redis_host=getattr(command, "redis_host", None),
        redis_port=getattr(command, "redis_port", None),
        redis_password=getattr(command, "redis_password", None),
        redis_db=getattr(command, "redis_db", None),
        prefix=getattr(command, "prefix", None),
        poll_interval=getattr(command, "poll_interval", None),
        page_size=getattr(command, "page_size", None),
        log_file=getattr(command, "log_file", None),
        log_level=getattr(command, "log_level", None),
    )


def manager_for(config: MonitorConfig) -> ConnectionManager:
    return ConnectionManager(
        config.redis,
        prefix=config.prefix,
        timeout=config.connect_timeout,
    )


async def collect_queue_snapshot(manager: ConnectionManager) -> tuple[list[str], dict[str, QueueInfo]]:
    await manager.connect()
    try:
        names = await discover_queues(manager.client, manager.prefix)
        result = await poll_queues(manager, names)
        return names, result.snapshots
    finally:
        await manager.disconnect()


def _queue_table(names: list[str], snapshots: dict[str, QueueInfo]) -> Table:
    table = Table(title="Queues")
    table.add_column("Name")
    table.add_column("Paused")
    for state in (JobState.ACTIVE, JobState.WAITING, JobState.FAILED, JobState.COMPLETED, JobState.DELAYED):
        table.add_column(state.value.capitalize(), justify="right")
    for name in names:
        info = snapshots.get(name)
        if info is None:
            table.add_row(name, "?", "-", "-", "-", "-", "-")
            continue
        table.add_row(
            name,
            "yes" if info.is_paused else "",
            str(info.count(JobState.ACTIVE)),
            str(info.count(JobState.WAITING)),
            str(info.count(JobState.FAILED)),
            str(info.count(JobState.COMPLETED)),
            str(info.count(JobState.DELAYED)),
        )
    return table


def execute_tui(command: MonitorTuiCommand) -> None:
    overrides = overrides_from(command)
    config = load_config(overrides)
    run_monitor_tui(config, needs_setup=bool(missing_config_fields(overrides)))


def execute_queues(command: QueuesCommand) -> None:
    config = load_config(overrides_from(command))
    configure_logging(config.log_level, log_file=config.log_file, quiet=True)
    try:
        names, snapshots = asyncio.run(collect_queue_snapshot(manager_for(config)))
    except MonitorError as exc:
        raise SystemExit(str(exc)) from exc

    if command.json:
        payload = {name: asdict(snapshots[name]) for name in names if name in snapshots}
        print(json.dumps(payload, indent=2, sort_keys=True))
        return
    Console().print(_queue_table(names, snapshots))
