"""Formatting helpers shared by the monitor renderers."""

from __future__ import annotations

from datetime import datetime, timezone
import json
import time
from typing import Any


def _now_ms() -> int:
    return int(time.time() * 1000)


def _clip(value: str, width: int) -> str:
    if width <= 0:
        return ""
    if len(value) <= width:
        return value
    if width <= 3:
        return value[:width]
    return f"{value[: width - 3]}..."


def _format_count(value: int) -> str:
    if value >= 1_000_000:
        return f"{value / 1_000_000:.1f}M"
    if value >= 1_000:
        return f"{value / 1_000:.1f}K"
    return str(value)


def _format_age(stamp_ms: int | None, *, now_ms: int | None = None) -> str:
    if not stamp_ms:
        return "-"
    now_ms = _now_ms() if now_ms is None else now_ms
    diff = now_ms - stamp_ms
    if diff < 1000:
        return "now"
    seconds = diff // 1000
    if seconds < 60:
        return f"{seconds}s"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes}m"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h"
    return f"{hours // 24}d"


def _format_date(stamp_ms: int | None) -> str:
    if not stamp_ms:
        return "-"
    stamp = datetime.fromtimestamp(stamp_ms / 1000, tz=timezone.utc)
    return stamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _format_duration(start_ms: int | None, end_ms: int | None) -> str:
    if not start_ms or not end_ms:
        return "-"
    elapsed = end_ms - start_ms
    if elapsed < 1000:
        return f"{elapsed}ms"
    if elapsed < 60_000:
        return f"{elapsed / 1000:.2f}s"
    return f"{elapsed / 60_000:.2f}m"


def _format_progress(progress: Any) -> str:
    if isinstance(progress, bool):
        return "-"
    if isinstance(progress, (int, float)):
        return f"{progress}%"
    if isinstance(progress, (dict, list)) and progress:
        return json.dumps(progress, separators=(",", ":"))[:10]
    return "-"


def _format_json(value: Any, *, indent: int = 2) -> str:
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value, indent=indent, sort_keys=True, default=str)
    except (TypeError, ValueError):
        return str(value)
