"""Run-time records: one WorkflowInstance per started workflow, one JobRunState per job."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from venture.core.types.status import JobStatus


@dataclass
class WorkflowInstance:
    """
    Persisted state of a single workflow run.

    ``jobs_processed`` counts successfully finished jobs, ``jobs_failed`` counts
    failed ones; their sum never exceeds ``job_count``.
    """

    id: str
    name: str
    job_count: int
    jobs_processed: int = 0
    jobs_failed: int = 0
    finished_job_ids: list[str] = field(default_factory=lambda: [])
    created_at: datetime | None = None
    finished_at: datetime | None = None
    cancelled_at: datetime | None = None
    entity_type: str | None = None
    entity_id: str | None = None

    @property
    def all_jobs_finished(self) -> bool:
        return self.jobs_processed == self.job_count

    @property
    def has_ran(self) -> bool:
        """Every job resolved, successfully or not."""
        return self.jobs_processed + self.jobs_failed == self.job_count

    @property
    def is_finished(self) -> bool:
        return self.finished_at is not None

    @property
    def is_cancelled(self) -> bool:
        return self.cancelled_at is not None

    def progress(self) -> float:
        """Percentage of jobs finished successfully."""
        if self.job_count == 0:
            return 100.0
        return round(self.jobs_processed / self.job_count * 100, 2)


@dataclass
class JobRunState:
    """Persisted state of one job within one workflow run."""

    job_id: str
    name: str
    job_type: str
    position: int = 0
    dependencies: list[str] = field(default_factory=lambda: [])
    gated: bool = False
    queue: str | None = None
    connection: str | None = None
    delay: Any = None
    status: JobStatus = JobStatus.PENDING
    started_at: datetime | None = None
    gated_at: datetime | None = None
    finished_at: datetime | None = None
    failed_at: datetime | None = None
    exception: dict[str, Any] | None = None

    @property
    def is_pending(self) -> bool:
        return self.status is JobStatus.PENDING

    @property
    def is_gated(self) -> bool:
        return self.status is JobStatus.GATED

    @property
    def is_processing(self) -> bool:
        return self.status is JobStatus.PROCESSING

    @property
    def is_finished(self) -> bool:
        return self.status is JobStatus.FINISHED

    @property
    def is_failed(self) -> bool:
        return self.status is JobStatus.FAILED
