"""Job and workflow state machines.

Both state objects are thin wrappers constructed with explicit references to
the records they govern; they never touch persistence or the executor.
"""

from __future__ import annotations

from collections.abc import Collection
from datetime import datetime, timezone

from venture.core.codec.serde import exception_to_json
from venture.core.errors import ErrorCode, InvalidStateTransitionError
from venture.core.models.jobs import JobNode
from venture.core.models.workflow import JobRunState, WorkflowInstance
from venture.core.types.status import JobStatus


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _invalid(job_id: str, action: str, status: JobStatus) -> InvalidStateTransitionError:
    return InvalidStateTransitionError(
        message=f"cannot {action} job '{job_id}' in state {status.value}",
        code=ErrorCode.JOB_INVALID_TRANSITION,
        context={'job': job_id},
    )


class JobState:
    """
    Transition rules for one job:

        pending --[deps finished, not gated]--> processing
        pending --[deps finished, gated]------> gated
        gated   --[start]---------------------> processing
        processing --[success]----------------> finished
        processing --[exception]--------------> failed
    """

    def __init__(self, node: JobNode, record: JobRunState) -> None:
        self.node = node
        self.record = record

    @property
    def status(self) -> JobStatus:
        return self.record.status

    def dependencies_finished(self, finished_job_ids: Collection[str]) -> bool:
        return self.node.dependencies.issubset(finished_job_ids)

    def can_run(self, finished_job_ids: Collection[str]) -> bool:
        """Dispatch predicate for the runnable frontier."""
        return (
            self.record.is_pending
            and not self.node.gated
            and self.dependencies_finished(finished_job_ids)
        )

    def transition(self, finished_job_ids: Collection[str]) -> JobStatus | None:
        """
        Re-evaluate a pending job after one of its dependencies finished.

        Returns the new status, or None if nothing changed. Safe to call
        repeatedly.
        """
        if not self.record.is_pending or not self.dependencies_finished(finished_job_ids):
            return None
        if self.node.gated:
            self.mark_gated()
        else:
            self.mark_processing()
        return self.record.status

    def mark_processing(self) -> None:
        if not self.record.is_pending:
            raise _invalid(self.node.id, 'dispatch', self.status)
        self.record.status = JobStatus.PROCESSING
        self.record.started_at = _now()

    def mark_gated(self) -> None:
        if not self.node.gated:
            raise InvalidStateTransitionError(
                message=f"job '{self.node.id}' is not a gated job",
                code=ErrorCode.JOB_INVALID_TRANSITION,
                help_text='only jobs added with add_gated_job() can be gated',
            )
        if not self.record.is_pending:
            raise _invalid(self.node.id, 'gate', self.status)
        self.record.status = JobStatus.GATED
        self.record.gated_at = _now()

    def start(self) -> None:
        """Release a gated job for dispatch."""
        if not self.record.is_gated:
            raise InvalidStateTransitionError(
                message=f"cannot start job '{self.node.id}' in state {self.status.value}",
                code=ErrorCode.JOB_INVALID_TRANSITION,
                notes=['only gated jobs whose dependencies have finished can be started'],
            )
        self.record.status = JobStatus.PROCESSING
        self.record.started_at = _now()

    def mark_finished(self) -> None:
        if not self.record.is_processing:
            raise _invalid(self.node.id, 'finish', self.status)
        self.record.status = JobStatus.FINISHED
        self.record.finished_at = _now()

    def mark_failed(self, exception: BaseException) -> None:
        if not self.record.is_processing:
            raise _invalid(self.node.id, 'fail', self.status)
        self.record.status = JobStatus.FAILED
        self.record.failed_at = _now()
        self.record.exception = exception_to_json(exception)


class WorkflowState:
    """Counter and timestamp bookkeeping for one workflow run."""

    def __init__(self, workflow: WorkflowInstance) -> None:
        self.workflow = workflow

    def record_job_finished(self, job_id: str) -> None:
        self.workflow.jobs_processed += 1
        self.workflow.finished_job_ids.append(job_id)

    def record_job_failed(self) -> None:
        self.workflow.jobs_failed += 1

    def mark_finished(self) -> bool:
        """Set ``finished_at`` once all jobs finished. Returns True on the first call only."""
        if self.workflow.is_finished or not self.workflow.all_jobs_finished:
            return False
        self.workflow.finished_at = _now()
        return True

    def cancel(self) -> bool:
        """Set ``cancelled_at`` if unset. Returns True if this call cancelled the workflow."""
        if self.workflow.is_cancelled:
            return False
        self.workflow.cancelled_at = _now()
        return True

    def accepts_dispatch(self) -> bool:
        """False once cancelled: nothing new may be dispatched or started."""
        return not self.workflow.is_cancelled
