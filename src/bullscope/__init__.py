"""Bullscope package entrypoint."""

from bullscope.cli.app import main as _cli_main


def main() -> None:
    """Run the Bullscope CLI."""
    _cli_main()
