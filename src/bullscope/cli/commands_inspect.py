"""`bullscope job` command."""

from __future__ import annotations

import asyncio
from dataclasses import asdict, dataclass
import json
from typing import Annotated, Any

import tyro

from bullscope.cli.commands_monitor import manager_for, overrides_from
from bullscope.config.loader import load_config
from bullscope.observability.logging import configure_logging
from bullscope.store.connection import ConnectionManager
from bullscope.store.errors import JobNotFound, MonitorError
from bullscope.store.jobs import get_job, get_job_logs


@dataclass(slots=True)
class InspectJobCommand:
    """Print one job from a queue as JSON."""

    queue: Annotated[str, tyro.conf.arg(prefix_name=False)]
    id: Annotated[str, tyro.conf.arg(prefix_name=False)]
    logs: Annotated[bool, tyro.conf.arg(prefix_name=False)] = False
    redis_host: Annotated[str | None, tyro.conf.arg(prefix_name=False)] = None
    redis_port: Annotated[int | None, tyro.conf.arg(prefix_name=False)] = None
    redis_password: Annotated[str | None, tyro.conf.arg(prefix_name=False)] = None
    redis_db: Annotated[int | None, tyro.conf.arg(prefix_name=False)] = None
    prefix: Annotated[str | None, tyro.conf.arg(prefix_name=False)] = None


async def fetch_job_payload(
    manager: ConnectionManager,
    queue: str,
    job_id: str,
    *,
    with_logs: bool = False,
) -> dict[str, Any]:
    await manager.connect()
    try:
        job = await get_job(manager, queue, job_id)
        if job is None:
            raise JobNotFound(queue, job_id)
        payload: dict[str, Any] = {"queue": queue, "job": asdict(job)}
        if with_logs:
            logs = await get_job_logs(manager, queue, job_id)
            payload["logs"] = {"count": logs.count, "lines": list(logs.logs)}
        return payload
    finally:
        await manager.disconnect()


def execute(command: InspectJobCommand) -> None:
    config = load_config(overrides_from(command))
    configure_logging(config.log_level, log_file=config.log_file, quiet=True)
    try:
        payload = asyncio.run(
            fetch_job_payload(
                manager_for(config),
                command.queue,
                command.id,
                with_logs=command.logs,
            )
        )
    except MonitorError as exc:
        raise SystemExit(str(exc)) from exc
    print(json.dumps(payload, indent=2, sort_keys=True, default=str))
