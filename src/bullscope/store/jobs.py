"""Job hash parsing and on-demand job reads."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, Mapping

from bullscope.store.models import JobInfo, JobLogs, JobState

if TYPE_CHECKING:
    from bullscope.store.connection import ConnectionManager


DEFAULT_PAGE_SIZE = 100


def _text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


def _json_value(value: Any) -> Any:
    text = _text(value)
    if text is None:
        return None
    try:
        return json.loads(text)
    except ValueError:
        return text


def _optional_int(value: Any) -> int | None:
    text = _text(value)
    if not text:
        return None
    try:
        return int(float(text))
    except ValueError:
        return None


def _stacktrace(value: Any) -> list[str] | None:
    parsed = _json_value(value)
    if parsed is None:
        return None
    if isinstance(parsed, list):
        lines = [str(line) for line in parsed if line is not None]
        return lines or None
    return [str(parsed)]


def job_from_hash(job_id: str, payload: Mapping[Any, Any]) -> JobInfo:
    """Build a JobInfo from the raw fields of a job hash."""

    fields = {_text(key): value for key, value in payload.items()}
    attempts = _optional_int(fields.get("attemptsMade"))
    if attempts is None:
        attempts = _optional_int(fields.get("atm")) or 0
    progress = _json_value(fields.get("progress"))

    return JobInfo(
        id=job_id,
        name=_text(fields.get("name")) or "",
        data=_json_value(fields.get("data")),
        progress=0 if progress is None else progress,
        attempts_made=attempts,
        timestamp=_optional_int(fields.get("timestamp")),
        processed_on=_optional_int(fields.get("processedOn")),
        finished_on=_optional_int(fields.get("finishedOn")),
        failed_reason=_text(fields.get("failedReason")) or None,
        stacktrace=_stacktrace(fields.get("stacktrace")),
        returnvalue=_json_value(fields.get("returnvalue")),
        has_returnvalue="returnvalue" in fields,
    )


async def list_jobs(
    manager: "ConnectionManager",
    queue: str,
    status: JobState,
    start: int = 0,
    end: int = DEFAULT_PAGE_SIZE - 1,
) -> list[JobInfo]:
    """Return up to `end - start + 1` jobs of one status in store order."""

    return await manager.queue(queue).get_jobs(status, start, end)


async def get_job(manager: "ConnectionManager", queue: str, job_id: str) -> JobInfo | None:
    """Return one job, or None when it does not exist."""

    return await manager.queue(queue).get_job(job_id)


async def get_job_logs(
    manager: "ConnectionManager",
    queue: str,
    job_id: str,
    start: int = 0,
    end: int = -1,
) -> JobLogs:
    """Return the job's log lines (oldest first) and total line count."""

    return await manager.queue(queue).get_job_logs(job_id, start, end)
