"""Modal screens used by the monitor TUI."""

from __future__ import annotations

from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Input, Static

from bullscope.config.schema import RedisConfig


def parse_connection_answers(host: str, port: str, password: str, *, db: int = 0) -> RedisConfig:
    """Blank answers fall back to localhost:6379 without a password.

    The prompt does not ask for a database, so `db` comes from the loaded config.
    """

    try:
        port_value = int(port.strip()) if port.strip() else 6379
    except ValueError:
        port_value = 6379
    return RedisConfig(
        host=host.strip() or "localhost",
        port=port_value if port_value > 0 else 6379,
        password=password or None,
        db=db,
    )


class ConnectionSetupScreen(ModalScreen[RedisConfig | None]):
    """Ask for Redis host, port and password before the first connect."""

    CSS = """
    ConnectionSetupScreen {
        align: center middle;
    }
    #setup_box {
        width: 64;
        height: auto;
        padding: 1 2;
        border: solid $accent;
        background: $surface;
    }
    #setup_box Input {
        margin-bottom: 1;
    }
    #setup_actions {
        height: auto;
    }
    """

    def __init__(self, *, host: str = "", port: int = 6379, db: int = 0) -> None:
        super().__init__()
        self.default_host = host
        self.default_port = port
        self.db = db

    def compose(self) -> ComposeResult:
        with Vertical(id="setup_box"):
            yield Static("[b]BullMQ - Redis Connection Setup[/b]")
            yield Static("Redis Host")
            yield Input(value=self.default_host, placeholder="localhost", id="setup_host")
            yield Static("Redis Port")
            yield Input(value=str(self.default_port), placeholder="6379", id="setup_port")
            yield Static("Redis Password")
            yield Input(placeholder="(empty for none)", password=True, id="setup_password")
            with Horizontal(id="setup_actions"):
                yield Button("Connect", variant="primary", id="setup_ok")
                yield Button("Quit", id="setup_cancel")

    def on_mount(self) -> None:
        self.query_one("#setup_host", Input).focus()

    def _answers(self) -> RedisConfig:
        return parse_connection_answers(
            self.query_one("#setup_host", Input).value,
            self.query_one("#setup_port", Input).value,
            self.query_one("#setup_password", Input).value,
            db=self.db,
        )

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "setup_ok":
            self.dismiss(self._answers())
            return
        self.dismiss(None)

    def on_input_submitted(self, event: Input.Submitted) -> None:
        order = ["setup_host", "setup_port", "setup_password"]
        current = event.input.id or ""
        if current in order[:-1]:
            self.query_one(f"#{order[order.index(current) + 1]}", Input).focus()
            return
        self.dismiss(self._answers())
