"""Persistence boundary for workflow runs."""

from __future__ import annotations

from typing import Protocol

from venture.core.models.workflow import JobRunState, WorkflowInstance


class WorkflowStore(Protocol):
    """
    Durable record of WorkflowInstances and their JobRunStates, keyed by workflow id.

    Implementations must return what was last saved (read-back consistency)
    and must not hand out objects that alias the engine's own copies.
    """

    def create(self, workflow: WorkflowInstance, jobs: list[JobRunState]) -> None: ...

    def save_workflow(self, workflow: WorkflowInstance) -> None: ...

    def save_job(self, workflow_id: str, job: JobRunState) -> None: ...

    def get_workflow(self, workflow_id: str) -> WorkflowInstance | None: ...

    def get_jobs(self, workflow_id: str) -> list[JobRunState]: ...

    def find_by_entity(self, entity_type: str, entity_id: str) -> list[WorkflowInstance]: ...
