"""Error taxonomy for the Redis boundary."""

from __future__ import annotations


class MonitorError(Exception):
    """Base class for all bullscope store errors."""


class ConnectionTimeout(MonitorError):
    """Connection could not be established within the allowed time."""

    def __init__(self, host: str, port: int, timeout: float) -> None:
        super().__init__(
            f"Connection timeout: could not connect to {host}:{port} "
            f"within {timeout:g}s"
        )
        self.host = host
        self.port = port
        self.timeout = timeout


class ConnectionRefused(MonitorError):
    """Transport-level failure while connecting."""

    def __init__(self, host: str, port: int, reason: str) -> None:
        super().__init__(f"Could not connect to {host}:{port}: {reason}")
        self.host = host
        self.port = port
        self.reason = reason


class NotConnected(MonitorError):
    """An operation needed a live connection but none was established."""

    def __init__(self, operation: str = "operation") -> None:
        super().__init__(f"Not connected to Redis ({operation})")
        self.operation = operation


class JobNotFound(MonitorError):
    """A single-job lookup came back empty."""

    def __init__(self, queue: str, job_id: str) -> None:
        super().__init__(f"Job {job_id!r} not found in queue {queue!r}")
        self.queue = queue
        self.job_id = job_id
