"""Dataclass-based configuration schema for bullscope."""

from dataclasses import dataclass, field
from pathlib import Path


@dataclass(slots=True)
class RedisConfig:
    """Redis connection options."""

    host: str = "localhost"
    port: int = 6379
    password: str | None = None
    db: int = 0


@dataclass(slots=True)
class MonitorConfig:
    """Top-level monitor configuration."""

    redis: RedisConfig = field(default_factory=RedisConfig)
    prefix: str = "bull"
    poll_interval: float = 2.0
    connect_timeout: float = 5.0
    page_size: int = 100
    log_file: Path | None = None
    log_level: str = "INFO"
