"""Workflow execution engine: persistence, frontier computation and dispatch."""

from __future__ import annotations

import threading
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from venture.core.codec.serde import to_jsonable
from venture.core.errors import (
    ErrorCode,
    InvalidStateTransitionError,
    WorkflowNotFoundError,
)
from venture.core.events import (
    EventBus,
    JobCreated,
    JobCreating,
    JobFailed,
    JobFinished,
    JobGated,
    JobProcessing,
    Plugin,
    WorkflowCancelled,
    WorkflowCreated,
    WorkflowCreating,
    WorkflowFinished,
    WorkflowStarted,
)
from venture.core.executors.base import DispatchRequest, JobExecutor
from venture.core.executors.inline import InlineExecutor
from venture.core.handle import WorkflowHandle
from venture.core.logging import get_logger
from venture.core.models.config import VentureConfig
from venture.core.models.definition import WorkflowDefinition
from venture.core.models.graph import Graph
from venture.core.models.jobs import JobNode, TypeIdentity, default_type_identity
from venture.core.models.workflow import JobRunState, WorkflowInstance
from venture.core.state import JobState, WorkflowState
from venture.core.stores.memory import InMemoryWorkflowStore
from venture.core.types.status import JobStatus

if TYPE_CHECKING:
    from venture.core.stores.base import WorkflowStore

logger = get_logger('engine')


def _cancelled(workflow_id: str, job_id: str) -> InvalidStateTransitionError:
    return InvalidStateTransitionError(
        message=f"cannot start job '{job_id}': the workflow was cancelled",
        code=ErrorCode.JOB_INVALID_TRANSITION,
        context={'workflow': workflow_id, 'job': job_id},
    )


@dataclass
class _Run:
    """In-memory state of a workflow that can still make progress."""

    definition: WorkflowDefinition
    graph: Graph
    workflow: WorkflowInstance
    jobs: dict[str, JobRunState]
    lock: threading.RLock = field(default_factory=threading.RLock)

    def job_state(self, job_id: str) -> JobState:
        return JobState(self.graph.get(job_id), self.jobs[job_id])

    @property
    def is_settled(self) -> bool:
        """No job is in flight and nothing can be started any more."""
        statuses = {record.status for record in self.jobs.values()}
        if JobStatus.PROCESSING in statuses:
            return False
        return self.workflow.is_cancelled or JobStatus.GATED not in statuses


class WorkflowEngine:
    """
    Starts workflows and drives them to completion.

    The engine persists a workflow when it starts, dispatches its root jobs,
    and reacts to ``on_job_finished`` / ``on_job_failed`` reports from the
    executor by dispatching every job whose dependencies have all finished.
    Bookkeeping for a workflow is serialised by a per-workflow lock; the
    executor is called after the lock is released.

    Example:
        ```python
        engine = WorkflowEngine(executor=ThreadPoolJobExecutor(max_workers=8))
        definition = engine.define('nightly import')
        fetch = definition.add_job(FetchFeed(), id='fetch')
        definition.add_job(ImportFeed(), [fetch], id='import')
        handle = engine.start(definition)
        ```
    """

    def __init__(
        self,
        store: WorkflowStore | None = None,
        executor: JobExecutor | None = None,
        *,
        bus: EventBus | None = None,
        config: VentureConfig | None = None,
        plugins: Iterable[Plugin] = (),
        type_identity: TypeIdentity = default_type_identity,
    ) -> None:
        self.config = config or VentureConfig()
        self.store: WorkflowStore = store or self._default_store()
        self.executor: JobExecutor = executor or InlineExecutor()
        self.bus = bus or EventBus()
        self.type_identity = type_identity
        self._runs: dict[str, _Run] = {}
        self._runs_lock = threading.Lock()

        for plugin in plugins:
            plugin.install(self.bus)
            logger.debug(f'installed plugin {type(plugin).__name__}')

    def _default_store(self) -> WorkflowStore:
        if self.config.store is None:
            return InMemoryWorkflowStore()
        from venture.core.stores.sql import SqlAlchemyWorkflowStore

        store = SqlAlchemyWorkflowStore(self.config.store)
        store.ensure_schema()
        return store

    # ------------------------------------------------------------------
    # Definition and start
    # ------------------------------------------------------------------

    def define(self, name: str = '') -> WorkflowDefinition:
        """Create a definition wired to this engine's event bus and config."""
        return WorkflowDefinition(
            name,
            bus=self.bus,
            config=self.config,
            type_identity=self.type_identity,
        )

    def _job_record(self, definition: WorkflowDefinition, graph: Graph, position: int, node: JobNode) -> JobRunState:
        return JobRunState(
            job_id=node.id,
            name=node.name,
            job_type=definition.type_identity(node.payload),
            position=position,
            dependencies=[dep for dep in graph.ids() if dep in node.dependencies],
            gated=node.gated,
            queue=node.queue.queue if node.queue else None,
            connection=node.queue.connection if node.queue else None,
            delay=to_jsonable(node.delay),
        )

    def start(
        self,
        definition: WorkflowDefinition,
        workflow_id: str | None = None,
    ) -> WorkflowHandle:
        """
        Build, persist and start a workflow.

        Definition errors are raised before anything is persisted. Every job
        without dependencies is dispatched (or held, if gated) immediately.

        Returns:
            WorkflowHandle for tracking the run.
        """
        graph = definition.build()

        workflow = WorkflowInstance(
            id=workflow_id or str(uuid.uuid4()),
            name=definition.name,
            job_count=len(graph),
            created_at=datetime.now(timezone.utc),
        )
        self.bus.publish(WorkflowCreating(definition=definition, workflow=workflow))

        records: list[JobRunState] = []
        for position, node in enumerate(graph):
            record = self._job_record(definition, graph, position, node)
            self.bus.publish(JobCreating(workflow=workflow, job=record))
            records.append(record)

        self.store.create(workflow, records)
        self.bus.publish(WorkflowCreated(definition=definition, workflow=workflow))
        for record in records:
            self.bus.publish(JobCreated(workflow=workflow, job=record))

        run = _Run(
            definition=definition,
            graph=graph,
            workflow=workflow,
            jobs={record.job_id: record for record in records},
        )
        with self._runs_lock:
            self._runs[workflow.id] = run

        roots = graph.roots()
        with run.lock:
            to_dispatch = self._advance(run, roots)
            logger.info(
                f"started workflow '{workflow.name}' with {workflow.job_count} jobs, {len(roots)} roots",
                extra={'workflow_id': workflow.id},
            )
            self.bus.publish(WorkflowStarted(workflow=workflow, initial_jobs=tuple(to_dispatch)))
            finished = self._finish_if_complete(run)
            self._forget_if_settled(run)

        self._dispatch(run, to_dispatch)
        if finished:
            self._run_then_callbacks(run)
        return WorkflowHandle(self, workflow.id, initial_jobs=[node.id for node in roots])

    # ------------------------------------------------------------------
    # Executor callbacks
    # ------------------------------------------------------------------

    def on_job_finished(self, workflow_id: str, job_id: str) -> None:
        """Record a successful job and dispatch whatever became runnable."""
        run = self._get_run(workflow_id)
        with run.lock:
            state = run.job_state(job_id)
            state.mark_finished()
            WorkflowState(run.workflow).record_job_finished(job_id)
            self.store.save_job(workflow_id, state.record)
            self.bus.publish(JobFinished(workflow=run.workflow, job=state.node))

            to_dispatch: list[JobNode] = []
            if not WorkflowState(run.workflow).accepts_dispatch():
                logger.debug(
                    f'cancelled, not dispatching dependents of {job_id}',
                    extra={'workflow_id': workflow_id},
                )
            else:
                to_dispatch = self._advance(run, run.graph.dependents(job_id))

            self.store.save_workflow(run.workflow)
            finished = self._finish_if_complete(run)
            self._forget_if_settled(run)

        self._dispatch(run, to_dispatch)
        if finished:
            self._run_then_callbacks(run)

    def on_job_failed(self, workflow_id: str, job_id: str, error: BaseException) -> None:
        """
        Record a failed job.

        Nothing that depends on the job, directly or transitively, will ever
        run in this workflow. Independent branches are unaffected.
        """
        run = self._get_run(workflow_id)
        with run.lock:
            state = run.job_state(job_id)
            state.mark_failed(error)
            WorkflowState(run.workflow).record_job_failed()
            self.store.save_job(workflow_id, state.record)
            self.store.save_workflow(run.workflow)

            logger.warning(
                f'job {job_id} failed: {type(error).__name__}: {error}',
                extra={'workflow_id': workflow_id},
            )
            self.bus.publish(JobFailed(workflow=run.workflow, job=state.node, exception=error))
            self._forget_if_settled(run)

        for callback in run.definition.catch_callbacks:
            self._call_user_callback(run, callback, run.workflow, state.node, error)

    # ------------------------------------------------------------------
    # Administrative actions
    # ------------------------------------------------------------------

    def cancel(self, workflow_id: str) -> bool:
        """
        Stop dispatching new jobs for a workflow.

        Jobs already handed to the executor keep running and are still
        recorded. Returns False if the workflow was already cancelled.
        """
        run = self._find_run(workflow_id)
        if run is None:
            return self._cancel_settled(workflow_id)

        with run.lock:
            if not WorkflowState(run.workflow).cancel():
                return False
            self.store.save_workflow(run.workflow)
            logger.info(f"cancelled workflow '{run.workflow.name}'", extra={'workflow_id': workflow_id})
            self.bus.publish(WorkflowCancelled(workflow=run.workflow))
            self._forget_if_settled(run)
        return True

    def _cancel_settled(self, workflow_id: str) -> bool:
        workflow = self.store.get_workflow(workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(
                message=f"workflow '{workflow_id}' does not exist",
                code=ErrorCode.WORKFLOW_NOT_FOUND,
                context={'workflow': workflow_id},
            )
        if not WorkflowState(workflow).cancel():
            return False
        self.store.save_workflow(workflow)
        logger.info(f"cancelled workflow '{workflow.name}'", extra={'workflow_id': workflow_id})
        self.bus.publish(WorkflowCancelled(workflow=workflow))
        return True

    def start_gated_job(self, workflow_id: str, job_id: str) -> None:
        """
        Dispatch a gated job whose dependencies have finished.

        Raises:
            InvalidStateTransitionError: The job is not gated (yet), was
                already started, or the workflow was cancelled.
        """
        run = self._find_run(workflow_id)
        if run is None:
            workflow = self.store.get_workflow(workflow_id)
            if workflow is not None and not WorkflowState(workflow).accepts_dispatch():
                raise _cancelled(workflow_id, job_id)
            run = self._get_run(workflow_id)
        with run.lock:
            if not WorkflowState(run.workflow).accepts_dispatch():
                raise _cancelled(workflow_id, job_id)
            state = run.job_state(job_id)
            state.start()
            self.store.save_job(workflow_id, state.record)
            logger.info(f'started gated job {job_id}', extra={'workflow_id': workflow_id})
            self.bus.publish(JobProcessing(workflow=run.workflow, job=state.node))

        self._dispatch(run, [state.node])

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def handle(self, workflow_id: str) -> WorkflowHandle:
        return WorkflowHandle(self, workflow_id)

    def active_workflow_ids(self) -> list[str]:
        with self._runs_lock:
            return list(self._runs)

    def runnable_jobs(self, workflow_id: str) -> list[str]:
        """Ids of pending jobs that would be dispatched right now (the frontier)."""
        run = self._find_run(workflow_id)
        if run is None or not WorkflowState(run.workflow).accepts_dispatch():
            return []
        with run.lock:
            finished = set(run.workflow.finished_job_ids)
            return [
                node.id
                for node in run.graph
                if run.job_state(node.id).can_run(finished)
            ]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _find_run(self, workflow_id: str) -> _Run | None:
        with self._runs_lock:
            return self._runs.get(workflow_id)

    def _get_run(self, workflow_id: str) -> _Run:
        run = self._find_run(workflow_id)
        if run is None:
            raise WorkflowNotFoundError(
                message=f"workflow '{workflow_id}' is not running on this engine",
                code=ErrorCode.WORKFLOW_NOT_FOUND,
                notes=['the workflow is unknown, or it can no longer make progress'],
                context={'workflow': workflow_id},
            )
        return run

    def _advance(self, run: _Run, candidates: Iterable[JobNode]) -> list[JobNode]:
        """Transition candidates whose dependencies finished. Caller holds run.lock."""
        finished = set(run.workflow.finished_job_ids)
        to_dispatch: list[JobNode] = []
        for node in candidates:
            state = run.job_state(node.id)
            new_status = state.transition(finished)
            if new_status is None:
                continue
            self.store.save_job(run.workflow.id, state.record)
            if new_status is JobStatus.GATED:
                logger.info(f'job {node.id} is gated', extra={'workflow_id': run.workflow.id})
                self.bus.publish(JobGated(workflow=run.workflow, job=node))
            else:
                self.bus.publish(JobProcessing(workflow=run.workflow, job=node))
                to_dispatch.append(node)
        return to_dispatch

    def _finish_if_complete(self, run: _Run) -> bool:
        if not WorkflowState(run.workflow).mark_finished():
            return False
        self.store.save_workflow(run.workflow)
        logger.info(f"workflow '{run.workflow.name}' finished", extra={'workflow_id': run.workflow.id})
        self.bus.publish(WorkflowFinished(workflow=run.workflow))
        return True

    def _run_then_callbacks(self, run: _Run) -> None:
        for callback in run.definition.then_callbacks:
            self._call_user_callback(run, callback, run.workflow)

    def _call_user_callback(self, run: _Run, callback: Callable[..., Any], *args: Any) -> None:
        """Run a then/catch callback outside the lock; its errors are logged, not raised."""
        try:
            callback(*args)
        except Exception:
            logger.exception(
                f'callback {getattr(callback, "__qualname__", callback)!r} raised',
                extra={'workflow_id': run.workflow.id},
            )

    def _forget_if_settled(self, run: _Run) -> None:
        if not run.is_settled:
            return
        with self._runs_lock:
            self._runs.pop(run.workflow.id, None)

    def _dispatch(self, run: _Run, nodes: list[JobNode]) -> None:
        for node in nodes:
            request = DispatchRequest(
                workflow_id=run.workflow.id,
                job_id=node.id,
                payload=node.payload,
                queue=node.queue,
                delay=node.delay,
            )
            logger.debug(f'dispatching {node.id}', extra={'workflow_id': run.workflow.id})
            self.executor.dispatch(request, self)
