"""Cursor and sliding window over a list of rows."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, TypeVar


T = TypeVar("T")


@dataclass(slots=True)
class ScrollInfo:
    showing: str
    can_scroll_up: bool
    can_scroll_down: bool
    hidden_above: int
    hidden_below: int


@dataclass(slots=True)
class Viewport:
    """Keeps `viewport_start <= cursor < viewport_start + viewport_size`.

    The cursor is clamped to `[0, item_count - 1]`, or 0 for an empty list.
    Paging moves by one viewport height and never wraps.
    """

    item_count: int = 0
    viewport_size: int = 10
    cursor: int = 0
    viewport_start: int = 0

    def __post_init__(self) -> None:
        self.item_count = max(0, self.item_count)
        self.viewport_size = max(1, self.viewport_size)
        self._settle()

    @property
    def viewport_end(self) -> int:
        return min(self.viewport_start + self.viewport_size, self.item_count)

    @property
    def can_scroll_up(self) -> bool:
        return self.viewport_start > 0

    @property
    def can_scroll_down(self) -> bool:
        return self.viewport_end < self.item_count

    def _max_start(self) -> int:
        return max(0, self.item_count - self.viewport_size)

    def _settle(self) -> None:
        self.cursor = max(0, min(self.cursor, self.item_count - 1))
        self.viewport_start = max(0, min(self.viewport_start, self._max_start()))
        if self.cursor < self.viewport_start:
            self.viewport_start = self.cursor
        elif self.cursor >= self.viewport_start + self.viewport_size:
            self.viewport_start = self.cursor - self.viewport_size + 1

    def resize(self, item_count: int | None = None, viewport_size: int | None = None) -> None:
        """Adopt a new row count and/or window height, keeping the cursor valid."""

        if item_count is not None:
            self.item_count = max(0, item_count)
        if viewport_size is not None:
            self.viewport_size = max(1, viewport_size)
        self._settle()

    def set_cursor(self, index: int) -> None:
        self.cursor = index
        self._settle()

    def move_up(self) -> None:
        self.set_cursor(self.cursor - 1)

    def move_down(self) -> None:
        self.set_cursor(self.cursor + 1)

    def go_to_top(self) -> None:
        self.cursor = 0
        self.viewport_start = 0
        self._settle()

    def go_to_bottom(self) -> None:
        self.cursor = self.item_count - 1
        self.viewport_start = self._max_start()
        self._settle()

    def page_up(self) -> None:
        self.cursor -= self.viewport_size
        self.viewport_start -= self.viewport_size
        self._settle()

    def page_down(self) -> None:
        self.cursor += self.viewport_size
        self.viewport_start += self.viewport_size
        self._settle()

    def visible_items(self, items: Sequence[T]) -> list[T]:
        return list(items[self.viewport_start : self.viewport_end])

    def scroll_info(self) -> ScrollInfo:
        if self.item_count == 0:
            return ScrollInfo("0 items", False, False, 0, 0)
        return ScrollInfo(
            showing=f"{self.viewport_start + 1}-{self.viewport_end} of {self.item_count}",
            can_scroll_up=self.can_scroll_up,
            can_scroll_down=self.can_scroll_down,
            hidden_above=self.viewport_start,
            hidden_below=self.item_count - self.viewport_end,
        )
