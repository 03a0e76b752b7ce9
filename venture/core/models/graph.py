"""Graph: ordered job DAG with nested-workflow groups."""

from __future__ import annotations

import dataclasses
from collections import deque
from collections.abc import Iterable, Iterator

from venture.core.defaults import MAX_JOB_ID_LENGTH, NESTED_ID_SEPARATOR
from venture.core.errors import (
    CycleDetectedError,
    DefinitionSealedError,
    DuplicateJobError,
    ErrorCode,
    InvalidJobIdError,
    JobNotFoundError,
    UnresolvableDependencyError,
)

from .jobs import JobNode


class Graph:
    """
    Directed acyclic graph of JobNodes.

    Insertion order is preserved and used as the tie-break order for dispatch.
    Nested workflows are recorded as groups: a group id resolves to the
    terminal nodes of the nested graph whenever it is used as a dependency.
    """

    def __init__(self) -> None:
        self._nodes: dict[str, JobNode] = {}
        self._groups: dict[str, frozenset[str]] = {}
        self._frozen = False

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def __contains__(self, job_id: object) -> bool:
        return job_id in self._nodes

    def __iter__(self) -> Iterator[JobNode]:
        return iter(list(self._nodes.values()))

    def __len__(self) -> int:
        return len(self._nodes)

    @property
    def is_frozen(self) -> bool:
        return self._frozen

    @property
    def groups(self) -> dict[str, frozenset[str]]:
        return dict(self._groups)

    def ids(self) -> list[str]:
        return list(self._nodes)

    def get(self, job_id: str) -> JobNode:
        node = self._nodes.get(job_id)
        if node is None:
            raise JobNotFoundError(
                message=f"job '{job_id}' is not part of this workflow",
                code=ErrorCode.JOB_NOT_FOUND,
            )
        return node

    def has(self, ref: str) -> bool:
        """True if ``ref`` names a job or a nested workflow."""
        return ref in self._nodes or ref in self._groups

    def resolve(self, ref: str) -> frozenset[str]:
        """Expand a dependency reference into concrete job ids."""
        if ref in self._groups:
            return self._groups[ref]
        if ref in self._nodes:
            return frozenset({ref})
        raise UnresolvableDependencyError(
            message=f"dependency '{ref}' does not exist in the workflow",
            code=ErrorCode.WORKFLOW_UNRESOLVABLE_DEPENDENCY,
            notes=[f'known ids: {sorted(self._nodes) + sorted(self._groups)}'],
            help_text='add dependencies to the workflow before the jobs that depend on them',
        )

    def roots(self) -> list[JobNode]:
        """Nodes with no dependencies, in insertion order."""
        return [node for node in self._nodes.values() if node.is_root]

    def dependents(self, job_id: str) -> list[JobNode]:
        """Direct dependents of ``job_id``, in insertion order."""
        return [node for node in self._nodes.values() if job_id in node.dependencies]

    def terminals(self) -> list[JobNode]:
        """Nodes nothing else depends on, in insertion order."""
        depended_on: set[str] = set()
        for node in self._nodes.values():
            depended_on.update(node.dependencies)
        return [node for node in self._nodes.values() if node.id not in depended_on]

    def descendants(self, job_id: str) -> set[str]:
        """All transitive dependents of ``job_id``."""
        self.get(job_id)
        seen: set[str] = set()
        queue = deque([job_id])
        while queue:
            current = queue.popleft()
            for node in self.dependents(current):
                if node.id not in seen:
                    seen.add(node.id)
                    queue.append(node.id)
        return seen

    def ancestors(self, job_id: str) -> set[str]:
        """All transitive dependencies of ``job_id``."""
        seen: set[str] = set()
        stack = list(self.get(job_id).dependencies)
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            stack.extend(self._nodes[current].dependencies)
        return seen

    def topological_order(self) -> list[str]:
        """Kahn's algorithm; ties are broken by insertion order."""
        order, remaining = self._kahn()
        if remaining:
            raise CycleDetectedError(
                message='cycle detected in workflow graph',
                code=ErrorCode.WORKFLOW_CYCLE_DETECTED,
                notes=[
                    f'jobs involved: {remaining}',
                    'workflows must be acyclic directed graphs (DAG)',
                ],
                help_text='remove circular dependencies between jobs',
            )
        return order

    def _kahn(self) -> tuple[list[str], list[str]]:
        in_degree = {
            node.id: len([d for d in node.dependencies if d in self._nodes])
            for node in self._nodes.values()
        }
        queue = deque(job_id for job_id, degree in in_degree.items() if degree == 0)
        order: list[str] = []
        while queue:
            job_id = queue.popleft()
            order.append(job_id)
            for node in self.dependents(job_id):
                in_degree[node.id] -= 1
                if in_degree[node.id] == 0:
                    queue.append(node.id)
        remaining = [job_id for job_id, degree in in_degree.items() if degree > 0]
        return order, remaining

    # ------------------------------------------------------------------
    # Mutation (only before freeze)
    # ------------------------------------------------------------------

    def _ensure_mutable(self) -> None:
        if self._frozen:
            raise DefinitionSealedError(
                message='workflow graph is frozen',
                code=ErrorCode.WORKFLOW_DEFINITION_SEALED,
                notes=['structural changes are not allowed once a workflow has been built'],
                help_text='create a new definition instead of modifying a built one',
            )

    def _ensure_free(self, job_id: str) -> None:
        if not job_id or not job_id.strip():
            raise InvalidJobIdError(
                message='job id must be a non-empty string',
                code=ErrorCode.WORKFLOW_INVALID_JOB_ID,
            )
        if len(job_id) > MAX_JOB_ID_LENGTH:
            raise InvalidJobIdError(
                message=f'job id exceeds {MAX_JOB_ID_LENGTH} characters',
                code=ErrorCode.WORKFLOW_INVALID_JOB_ID,
                notes=[f"job id '{job_id[:40]}...' has {len(job_id)} characters"],
            )
        if self.has(job_id):
            raise DuplicateJobError(
                message=f"duplicate job id '{job_id}'",
                code=ErrorCode.WORKFLOW_DUPLICATE_JOB_ID,
                notes=['ids default to the job type, so adding the same job type twice collides'],
                help_text='pass an explicit id to add_job for repeated job types',
            )

    def add(self, node: JobNode) -> JobNode:
        """Append a node whose dependencies are already concrete job ids in the graph."""
        self._ensure_mutable()
        self._ensure_free(node.id)
        for dep in node.dependencies:
            if dep not in self._nodes:
                self.resolve(dep)  # raises for unknown ids
                raise UnresolvableDependencyError(
                    message=f"dependency '{dep}' is a nested workflow, not a job",
                    code=ErrorCode.WORKFLOW_UNRESOLVABLE_DEPENDENCY,
                    help_text='resolve nested workflow ids with Graph.resolve() first',
                )
        self._nodes[node.id] = node
        return node

    def extend_dependencies(self, job_id: str, dependencies: Iterable[str]) -> JobNode:
        """Add concrete dependencies to an existing node (used for deferred resolution)."""
        self._ensure_mutable()
        node = self.get(job_id)
        extra = frozenset(dependencies)
        for dep in extra:
            if dep not in self._nodes:
                raise UnresolvableDependencyError(
                    message=f"dependency '{dep}' does not exist in the workflow",
                    code=ErrorCode.WORKFLOW_UNRESOLVABLE_DEPENDENCY,
                )
        updated = dataclasses.replace(node, dependencies=node.dependencies | extra)
        self._nodes[job_id] = updated
        return updated

    def merge(
        self,
        child: Graph,
        prefix: str,
        dependencies: Iterable[str] = (),
    ) -> frozenset[str]:
        """
        Embed ``child`` under ``prefix``.

        Child ids (and child groups) are namespaced as ``prefix.id``; child roots
        gain ``dependencies``; ``prefix`` becomes a group resolving to the child's
        terminal nodes. Returns that terminal set.
        """
        self._ensure_mutable()
        self._ensure_free(prefix)
        parent_deps = frozenset(dependencies)
        for dep in parent_deps:
            if dep not in self._nodes:
                raise UnresolvableDependencyError(
                    message=f"dependency '{dep}' does not exist in the workflow",
                    code=ErrorCode.WORKFLOW_UNRESOLVABLE_DEPENDENCY,
                )

        def scoped(job_id: str) -> str:
            return f'{prefix}{NESTED_ID_SEPARATOR}{job_id}'

        renamed = [
            dataclasses.replace(
                node,
                id=scoped(node.id),
                name=node.name,
                dependencies=frozenset(scoped(d) for d in node.dependencies) or parent_deps,
            )
            for node in child
        ]
        for node in renamed:
            self._ensure_free(node.id)
        for group_id in child.groups:
            self._ensure_free(scoped(group_id))

        for node in renamed:
            self._nodes[node.id] = node
        for group_id, members in child.groups.items():
            self._groups[scoped(group_id)] = frozenset(scoped(m) for m in members)

        terminals = frozenset(scoped(node.id) for node in child.terminals())
        self._groups[prefix] = terminals
        return terminals

    def freeze(self, check_cycles: bool = True) -> Graph:
        if not self._frozen:
            if check_cycles:
                self.topological_order()
            self._frozen = True
        return self
