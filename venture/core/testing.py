"""Helpers for testing code that defines and starts workflows."""

from __future__ import annotations

import uuid
from typing import Any, Callable

from venture.core.events import EventBus
from venture.core.executors.base import DispatchRequest, JobReporter
from venture.core.models.config import VentureConfig
from venture.core.models.definition import WorkflowDefinition
from venture.core.models.jobs import TypeIdentity, default_type_identity


class WorkflowFake:
    """
    Stand-in for WorkflowEngine that records started workflows.

    Definitions are still built (so definition errors surface) but nothing is
    persisted or dispatched.
    """

    def __init__(
        self,
        *,
        config: VentureConfig | None = None,
        type_identity: TypeIdentity = default_type_identity,
    ) -> None:
        self.config = config or VentureConfig()
        self.bus = EventBus()
        self.type_identity = type_identity
        self.started: list[WorkflowDefinition] = []

    def define(self, name: str = '') -> WorkflowDefinition:
        return WorkflowDefinition(
            name, bus=self.bus, config=self.config, type_identity=self.type_identity
        )

    def start(self, definition: WorkflowDefinition, workflow_id: str | None = None) -> str:
        definition.build()
        self.started.append(definition)
        return workflow_id or str(uuid.uuid4())

    def _matching(
        self,
        name: str,
        predicate: Callable[[WorkflowDefinition], bool] | None,
    ) -> list[WorkflowDefinition]:
        return [
            definition
            for definition in self.started
            if definition.name == name and (predicate is None or predicate(definition))
        ]

    def assert_started(
        self,
        name: str,
        predicate: Callable[[WorkflowDefinition], bool] | None = None,
    ) -> None:
        if not self._matching(name, predicate):
            started = [definition.name for definition in self.started]
            raise AssertionError(
                f"expected workflow '{name}' to be started"
                + (' matching the given predicate' if predicate else '')
                + f'; started: {started}'
            )

    def assert_not_started(
        self,
        name: str,
        predicate: Callable[[WorkflowDefinition], bool] | None = None,
    ) -> None:
        if self._matching(name, predicate):
            raise AssertionError(f"workflow '{name}' was started unexpectedly")

    def assert_nothing_started(self) -> None:
        if self.started:
            raise AssertionError(
                f'expected no workflows to be started; started: {[d.name for d in self.started]}'
            )


class ManualExecutor:
    """
    Executor that only records dispatches.

    Tests decide when and how each job completes via ``finish`` / ``fail``.
    """

    def __init__(self) -> None:
        self.dispatched: list[DispatchRequest] = []
        self._reporters: dict[tuple[str, str], JobReporter] = {}

    def dispatch(self, request: DispatchRequest, reporter: JobReporter) -> None:
        self.dispatched.append(request)
        self._reporters[(request.workflow_id, request.job_id)] = reporter

    def dispatched_ids(self, workflow_id: str | None = None) -> list[str]:
        return [
            request.job_id
            for request in self.dispatched
            if workflow_id is None or request.workflow_id == workflow_id
        ]

    def _request(self, job_id: str, workflow_id: str | None) -> DispatchRequest:
        for request in self.dispatched:
            if request.job_id == job_id and (workflow_id is None or request.workflow_id == workflow_id):
                return request
        raise AssertionError(f"job '{job_id}' was never dispatched")

    def finish(self, job_id: str, workflow_id: str | None = None) -> None:
        request = self._request(job_id, workflow_id)
        self._reporters[(request.workflow_id, job_id)].on_job_finished(request.workflow_id, job_id)

    def fail(
        self,
        job_id: str,
        error: BaseException | None = None,
        workflow_id: str | None = None,
    ) -> None:
        request = self._request(job_id, workflow_id)
        self._reporters[(request.workflow_id, job_id)].on_job_failed(
            request.workflow_id, job_id, error or RuntimeError(f'{job_id} failed')
        )

    def payload(self, job_id: str, workflow_id: str | None = None) -> Any:
        return self._request(job_id, workflow_id).payload
