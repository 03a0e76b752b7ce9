"""WorkflowHandle: read-back and control surface for one workflow run."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from venture.core.errors import ErrorCode, WorkflowNotFoundError
from venture.core.models.workflow import JobRunState, WorkflowInstance
from venture.core.types.status import JobStatus

if TYPE_CHECKING:
    from venture.core.engine import WorkflowEngine


class WorkflowHandle:
    """
    Handle for tracking a started workflow.

    All reads go through the engine's store, so a handle reflects what has
    been persisted and keeps working after the run is no longer in memory.
    """

    def __init__(
        self,
        engine: WorkflowEngine,
        workflow_id: str,
        initial_jobs: Sequence[str] = (),
    ) -> None:
        self.engine = engine
        self.workflow_id = workflow_id
        self.initial_jobs: list[str] = list(initial_jobs)
        """Jobs without dependencies at start time (dispatched, or held if gated)."""

    def __repr__(self) -> str:
        return f'WorkflowHandle(workflow_id={self.workflow_id!r})'

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def workflow(self) -> WorkflowInstance:
        workflow = self.engine.store.get_workflow(self.workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(
                message=f"workflow '{self.workflow_id}' does not exist",
                code=ErrorCode.WORKFLOW_NOT_FOUND,
                context={'workflow': self.workflow_id},
            )
        return workflow

    def jobs(self) -> list[JobRunState]:
        return self.engine.store.get_jobs(self.workflow_id)

    def job(self, job_id: str) -> JobRunState | None:
        for record in self.jobs():
            if record.job_id == job_id:
                return record
        return None

    def _with_status(self, status: JobStatus) -> list[JobRunState]:
        return [record for record in self.jobs() if record.status is status]

    def pending_jobs(self) -> list[JobRunState]:
        return self._with_status(JobStatus.PENDING)

    def gated_jobs(self) -> list[JobRunState]:
        return self._with_status(JobStatus.GATED)

    def processing_jobs(self) -> list[JobRunState]:
        return self._with_status(JobStatus.PROCESSING)

    def finished_jobs(self) -> list[JobRunState]:
        return self._with_status(JobStatus.FINISHED)

    def failed_jobs(self) -> list[JobRunState]:
        return self._with_status(JobStatus.FAILED)

    def blocked_jobs(self) -> list[JobRunState]:
        """Pending jobs that can never run because something upstream failed."""
        records = self.jobs()
        blocked: set[str] = {record.job_id for record in records if record.is_failed}
        # Conditional dependencies may point at later records, so repeat until stable
        grew = True
        while grew:
            grew = False
            for record in records:
                if record.job_id in blocked or not record.is_pending:
                    continue
                if any(dep in blocked for dep in record.dependencies):
                    blocked.add(record.job_id)
                    grew = True
        return [record for record in records if record.is_pending and record.job_id in blocked]

    # ------------------------------------------------------------------
    # Derived predicates
    # ------------------------------------------------------------------

    def progress(self) -> float:
        return self.workflow().progress()

    def is_finished(self) -> bool:
        return self.workflow().is_finished

    def has_ran(self) -> bool:
        return self.workflow().has_ran

    def is_cancelled(self) -> bool:
        return self.workflow().is_cancelled

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def cancel(self) -> bool:
        return self.engine.cancel(self.workflow_id)

    def start_gated_job(self, job_id: str) -> None:
        self.engine.start_gated_job(self.workflow_id, job_id)

    def as_adjacency_list(self) -> dict[str, dict[str, Any]]:
        """``{job_id: {'name', 'dependencies', 'gated', 'status'}}`` in graph order."""
        return {
            record.job_id: {
                'name': record.name,
                'dependencies': list(record.dependencies),
                'gated': record.gated,
                'status': record.status.value,
            }
            for record in self.jobs()
        }
