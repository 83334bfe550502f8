"""Entry point for the interactive queue monitor."""

from __future__ import annotations

import sys

from bullscope.config.schema import MonitorConfig
from bullscope.observability.logging import configure_logging

from .tui_app import MonitorTextualApp


def run_monitor_tui(config: MonitorConfig, *, needs_setup: bool = False) -> None:
    """Run the monitor TUI until the user quits."""

    if not sys.stdin.isatty() or not sys.stdout.isatty():
        raise SystemExit("bullscope tui requires an interactive terminal")

    configure_logging(config.log_level, log_file=config.log_file, quiet=True)
    app = MonitorTextualApp(config=config, needs_setup=needs_setup)
    app.run()
