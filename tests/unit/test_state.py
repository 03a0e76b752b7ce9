"""Unit tests for JobState and WorkflowState transitions."""

from __future__ import annotations

import pytest

from venture.core.errors import ErrorCode, InvalidStateTransitionError
from venture.core.models.jobs import JobNode
from venture.core.models.workflow import JobRunState, WorkflowInstance
from venture.core.state import JobState, WorkflowState
from venture.core.types.status import JobStatus

pytestmark = pytest.mark.unit


def _state(*deps: str, gated: bool = False) -> JobState:
    node = JobNode(id='job', payload=None, dependencies=frozenset(deps), gated=gated)
    return JobState(node, JobRunState(job_id='job', name='job', job_type='test.Job'))


class TestJobStateTransitions:
    def test_can_run_requires_all_dependencies(self) -> None:
        state = _state('a', 'b')
        assert not state.can_run(['a'])
        assert state.can_run(['a', 'b'])

    def test_gated_job_never_runnable(self) -> None:
        state = _state('a', gated=True)
        assert state.dependencies_finished(['a'])
        assert not state.can_run(['a'])

    def test_transition_to_processing(self) -> None:
        state = _state('a')
        assert state.transition([]) is None
        assert state.status is JobStatus.PENDING

        assert state.transition(['a']) is JobStatus.PROCESSING
        assert state.record.started_at is not None
        # Repeated evaluation is a no-op
        assert state.transition(['a']) is None

    def test_transition_to_gated_then_start(self) -> None:
        state = _state('a', gated=True)
        assert state.transition(['a']) is JobStatus.GATED
        assert state.record.gated_at is not None

        state.start()
        assert state.status is JobStatus.PROCESSING

    def test_start_requires_gated_state(self) -> None:
        state = _state(gated=True)
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            state.start()
        assert exc_info.value.code == ErrorCode.JOB_INVALID_TRANSITION

    def test_mark_gated_rejects_ungated_job(self) -> None:
        with pytest.raises(InvalidStateTransitionError):
            _state().mark_gated()

    def test_finish_and_fail_require_processing(self) -> None:
        state = _state()
        with pytest.raises(InvalidStateTransitionError):
            state.mark_finished()
        with pytest.raises(InvalidStateTransitionError):
            state.mark_failed(RuntimeError('x'))

    def test_mark_finished(self) -> None:
        state = _state()
        state.mark_processing()
        state.mark_finished()
        assert state.record.is_finished
        assert state.record.finished_at is not None
        with pytest.raises(InvalidStateTransitionError):
            state.mark_processing()

    def test_mark_failed_records_exception(self) -> None:
        state = _state()
        state.mark_processing()
        state.mark_failed(ValueError('bad input'))
        assert state.record.is_failed
        assert state.record.exception is not None
        assert state.record.exception['type'] == 'ValueError'
        assert state.record.exception['message'] == 'bad input'
        assert state.status.is_terminal


class TestWorkflowState:
    def _workflow(self, job_count: int = 2) -> WorkflowInstance:
        return WorkflowInstance(id='wf', name='test', job_count=job_count)

    def test_counters(self) -> None:
        workflow = self._workflow()
        state = WorkflowState(workflow)
        state.record_job_finished('a')
        state.record_job_failed()
        assert workflow.jobs_processed == 1
        assert workflow.jobs_failed == 1
        assert workflow.finished_job_ids == ['a']
        assert workflow.has_ran
        assert not workflow.all_jobs_finished

    def test_mark_finished_only_once_all_jobs_finished(self) -> None:
        workflow = self._workflow()
        state = WorkflowState(workflow)
        state.record_job_finished('a')
        assert state.mark_finished() is False
        state.record_job_finished('b')
        assert state.mark_finished() is True
        assert workflow.is_finished
        assert state.mark_finished() is False

    def test_cancel_is_idempotent(self) -> None:
        workflow = self._workflow()
        state = WorkflowState(workflow)
        assert state.accepts_dispatch()
        assert state.cancel() is True
        first = workflow.cancelled_at
        assert state.cancel() is False
        assert workflow.cancelled_at == first
        assert not state.accepts_dispatch()

    @pytest.mark.parametrize(
        ('processed', 'total', 'expected'),
        [(0, 0, 100.0), (0, 3, 0.0), (1, 3, 33.33), (2, 3, 66.67), (3, 3, 100.0)],
    )
    def test_progress(self, processed: int, total: int, expected: float) -> None:
        workflow = WorkflowInstance(id='wf', name='p', job_count=total, jobs_processed=processed)
        assert workflow.progress() == expected
