"""Dict-backed WorkflowStore for tests and single-process use."""

from __future__ import annotations

import copy
import threading

from venture.core.models.workflow import JobRunState, WorkflowInstance


class InMemoryWorkflowStore:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._workflows: dict[str, WorkflowInstance] = {}
        self._jobs: dict[str, dict[str, JobRunState]] = {}

    def create(self, workflow: WorkflowInstance, jobs: list[JobRunState]) -> None:
        with self._lock:
            self._workflows[workflow.id] = copy.deepcopy(workflow)
            self._jobs[workflow.id] = {job.job_id: copy.deepcopy(job) for job in jobs}

    def save_workflow(self, workflow: WorkflowInstance) -> None:
        with self._lock:
            self._workflows[workflow.id] = copy.deepcopy(workflow)

    def save_job(self, workflow_id: str, job: JobRunState) -> None:
        with self._lock:
            self._jobs.setdefault(workflow_id, {})[job.job_id] = copy.deepcopy(job)

    def get_workflow(self, workflow_id: str) -> WorkflowInstance | None:
        with self._lock:
            workflow = self._workflows.get(workflow_id)
            return copy.deepcopy(workflow) if workflow is not None else None

    def get_jobs(self, workflow_id: str) -> list[JobRunState]:
        with self._lock:
            return [copy.deepcopy(job) for job in self._jobs.get(workflow_id, {}).values()]

    def find_by_entity(self, entity_type: str, entity_id: str) -> list[WorkflowInstance]:
        with self._lock:
            return [
                copy.deepcopy(workflow)
                for workflow in self._workflows.values()
                if workflow.entity_type == entity_type and workflow.entity_id == entity_id
            ]
