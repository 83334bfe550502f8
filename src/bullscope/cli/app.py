"""Tyro CLI application entrypoint."""

from __future__ import annotations

from typing import Annotated

import tyro

from bullscope.cli import commands_inspect, commands_monitor


TopLevelCommand = Annotated[
    commands_monitor.MonitorTuiCommand,
    tyro.conf.subcommand(name="tui"),
] | Annotated[
    commands_monitor.QueuesCommand,
    tyro.conf.subcommand(name="queues"),
] | Annotated[
    commands_inspect.InspectJobCommand,
    tyro.conf.subcommand(name="job"),
]


def dispatch(command: TopLevelCommand) -> None:
    """Dispatch parsed top-level command object."""

    if isinstance(command, commands_monitor.MonitorTuiCommand):
        commands_monitor.execute_tui(command)
        return
    if isinstance(command, commands_monitor.QueuesCommand):
        commands_monitor.execute_queues(command)
        return
    if isinstance(command, commands_inspect.InspectJobCommand):
        commands_inspect.execute(command)
        return
    raise TypeError(f"Unsupported command type: {type(command).__name__}")


def main(argv: list[str] | None = None) -> None:
    """Parse CLI arguments and run requested command."""

    command = tyro.cli(TopLevelCommand, args=argv)
    dispatch(command)
