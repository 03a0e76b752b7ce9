"""Dispatch boundary between the engine and whatever actually runs jobs."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol

from venture.core.models.jobs import Delay, delay_until
from venture.core.models.queues import QueueRef


@dataclass(frozen=True)
class DispatchRequest:
    workflow_id: str
    job_id: str
    payload: Any = field(repr=False)
    queue: QueueRef | None = None
    delay: Delay | None = None

    def seconds_until_due(self, now: datetime | None = None) -> float:
        now = now or datetime.now(timezone.utc)
        due = delay_until(self.delay, now)
        if due is None:
            return 0.0
        return max(0.0, (due - now).total_seconds())


class JobReporter(Protocol):
    """Callback surface executors use to report job outcomes."""

    def on_job_finished(self, workflow_id: str, job_id: str) -> None: ...

    def on_job_failed(self, workflow_id: str, job_id: str, error: BaseException) -> None: ...


class JobExecutor(Protocol):
    def dispatch(self, request: DispatchRequest, reporter: JobReporter) -> None: ...


def run_payload(payload: Any) -> Any:
    """Execute a job payload: ``payload.handle()`` if defined, else ``payload()``."""
    handle = getattr(payload, 'handle', None)
    if callable(handle):
        return handle()
    if callable(payload):
        return payload()
    raise TypeError(
        f'job payload of type {type(payload).__name__} is neither callable '
        'nor defines a handle() method'
    )


def execute(request: DispatchRequest, reporter: JobReporter) -> None:
    """Run one job and translate its outcome into a reporter callback."""
    try:
        run_payload(request.payload)
    except Exception as exc:
        reporter.on_job_failed(request.workflow_id, request.job_id, exc)
    else:
        reporter.on_job_finished(request.workflow_id, request.job_id)
