"""Build a MonitorConfig from CLI overrides and environment variables."""

from __future__ import annotations

from dataclasses import dataclass, replace
import os
from pathlib import Path
from typing import Any, Mapping

from bullscope.config.schema import MonitorConfig, RedisConfig


ENV_PREFIX = "BULLSCOPE_"


@dataclass(slots=True)
class ConfigOverrides:
    """Values given on the command line; None means "not given"."""

    redis_host: str | None = None
    redis_port: int | None = None
    redis_password: str | None = None
    redis_db: int | None = None
    prefix: str | None = None
    poll_interval: float | None = None
    page_size: int | None = None
    log_file: Path | None = None
    log_level: str | None = None


def _env(environ: Mapping[str, str], name: str) -> str | None:
    value = environ.get(f"{ENV_PREFIX}{name}")
    if value is None or not value.strip():
        return None
    return value.strip()


def _coerce_int(field_name: str, value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{field_name} must be an integer, got {value!r}") from None


def _coerce_float(field_name: str, value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{field_name} must be a number, got {value!r}") from None


def _pick(override: Any, environ: Mapping[str, str], env_name: str) -> Any:
    if override is not None:
        return override
    return _env(environ, env_name)


def load_config(
    overrides: ConfigOverrides | None = None,
    environ: Mapping[str, str] | None = None,
) -> MonitorConfig:
    """Resolve CLI overrides over `BULLSCOPE_*` variables over defaults."""

    overrides = overrides or ConfigOverrides()
    env = os.environ if environ is None else environ
    defaults = MonitorConfig()

    host = _pick(overrides.redis_host, env, "REDIS_HOST")
    port = _pick(overrides.redis_port, env, "REDIS_PORT")
    password = _pick(overrides.redis_password, env, "REDIS_PASSWORD")
    db = _pick(overrides.redis_db, env, "REDIS_DB")

    redis = RedisConfig(
        host=host or defaults.redis.host,
        port=_coerce_int("redis port", port) if port is not None else defaults.redis.port,
        password=password,
        db=_coerce_int("redis db", db) if db is not None else defaults.redis.db,
    )

    poll_interval = _pick(overrides.poll_interval, env, "POLL_INTERVAL")
    page_size = _pick(overrides.page_size, env, "PAGE_SIZE")
    log_file = _pick(overrides.log_file, env, "LOG_FILE")

    config = MonitorConfig(
        redis=redis,
        prefix=_pick(overrides.prefix, env, "PREFIX") or defaults.prefix,
        poll_interval=(
            _coerce_float("poll interval", poll_interval)
            if poll_interval is not None
            else defaults.poll_interval
        ),
        page_size=(
            _coerce_int("page size", page_size) if page_size is not None else defaults.page_size
        ),
        log_file=Path(log_file) if log_file is not None else None,
        log_level=_pick(overrides.log_level, env, "LOG_LEVEL") or defaults.log_level,
    )
    if config.poll_interval <= 0:
        raise ValueError(f"poll interval must be > 0, got {config.poll_interval}")
    if config.page_size <= 0:
        raise ValueError(f"page size must be > 0, got {config.page_size}")
    return config


def missing_config_fields(
    overrides: ConfigOverrides | None = None,
    environ: Mapping[str, str] | None = None,
) -> list[str]:
    """List required settings that neither CLI nor environment provided."""

    overrides = overrides or ConfigOverrides()
    env = os.environ if environ is None else environ
    missing: list[str] = []
    if _pick(overrides.redis_host, env, "REDIS_HOST") is None:
        missing.append("redis.host")
    return missing


def with_redis(config: MonitorConfig, redis: RedisConfig) -> MonitorConfig:
    """Return a copy of `config` bound to different connection settings."""

    return replace(config, redis=redis)
