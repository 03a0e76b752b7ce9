"""WorkflowDefinition: fluent builder for workflow graphs."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Union

from venture.core.defaults import DEFAULT_QUEUE_NAME, NESTED_ID_SEPARATOR
from venture.core.errors import DefinitionSealedError, ErrorCode
from venture.core.events import (
    EventBus,
    JobAdded,
    JobAdding,
    WorkflowAdded,
    WorkflowAdding,
)

from .graph import Graph
from .jobs import Delay, JobNode, TypeIdentity, default_type_identity
from .queues import QueueRef

if TYPE_CHECKING:
    from venture.core.models.config import VentureConfig
    from venture.core.models.workflow import WorkflowInstance


ThenCallback = Callable[['WorkflowInstance'], None]
CatchCallback = Callable[['WorkflowInstance', JobNode, BaseException], None]


@dataclass(frozen=True)
class ConditionalDependency:
    """
    A dependency decided when the definition is built.

    Resolves to ``primary`` if a job or nested workflow with that id exists in
    the final graph, otherwise to ``fallback``, otherwise to nothing.
    """

    primary: str
    fallback: str | None = None

    def resolve(self, graph: Graph) -> frozenset[str]:
        if graph.has(self.primary):
            return graph.resolve(self.primary)
        if self.fallback is not None:
            return graph.resolve(self.fallback)
        return frozenset()


DependencyRef = Union[str, ConditionalDependency]


def conditional_dependency(primary: str, fallback: str | None = None) -> ConditionalDependency:
    return ConditionalDependency(primary, fallback)


class WorkflowDefinition:
    """
    Accumulates jobs, nested workflows and dependency edges into a Graph.

    Dependencies must be added before their dependents. Job ids default to
    the payload's type identity, so adding the same job type twice requires
    an explicit ``id``.

    Example:
        ```python
        definition = engine.define("publish podcast")
        process = definition.add_job(ProcessPodcast(), id="process")
        optimize = definition.add_job(OptimizePodcast(), [process], id="optimize")
        definition.add_gated_job(ReleaseOnApple(), [optimize], id="release")
        definition.then(lambda workflow: notify(workflow.id))
        ```
    """

    def __init__(
        self,
        name: str = '',
        *,
        bus: EventBus | None = None,
        config: VentureConfig | None = None,
        type_identity: TypeIdentity = default_type_identity,
    ) -> None:
        self.name = name or type(self).__name__
        self.bus = bus or EventBus()
        self.config = config
        self.type_identity = type_identity
        self.graph = Graph()
        self.entity: Any = None
        self._deferred: dict[str, list[ConditionalDependency]] = {}
        self._nested: dict[str, frozenset[str]] = {}
        self._then: list[ThenCallback] = []
        self._catch: list[CatchCallback] = []
        self._built = False

    def __repr__(self) -> str:
        return f'WorkflowDefinition(name={self.name!r}, jobs={len(self.graph)})'

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------

    def _ensure_open(self) -> None:
        if self._built:
            raise DefinitionSealedError(
                message=f"workflow definition '{self.name}' has already been built",
                code=ErrorCode.WORKFLOW_DEFINITION_SEALED,
                help_text='create a new definition instead of modifying a started one',
            )

    def _split_dependencies(
        self, dependencies: Iterable[DependencyRef]
    ) -> tuple[frozenset[str], list[ConditionalDependency]]:
        concrete: set[str] = set()
        deferred: list[ConditionalDependency] = []
        for dep in dependencies:
            if isinstance(dep, ConditionalDependency):
                deferred.append(dep)
            else:
                concrete.update(self.graph.resolve(dep))
        return frozenset(concrete), deferred

    def _queue_for(self, payload: Any, queue: str | None, connection: str | None) -> QueueRef:
        queue = queue or getattr(payload, 'queue', None)
        connection = connection or getattr(payload, 'connection', None)
        if self.config is not None:
            return self.config.resolve_queue(queue, connection)
        return QueueRef(queue or DEFAULT_QUEUE_NAME, connection)

    def add_job(
        self,
        payload: Any,
        dependencies: Iterable[DependencyRef] = (),
        name: str | None = None,
        delay: Delay | None = None,
        id: str | None = None,
        *,
        gated: bool = False,
        queue: str | None = None,
        connection: str | None = None,
    ) -> str:
        """
        Add a job to the workflow and return its id.

        Args:
            payload: The unit of work; opaque to the engine.
            dependencies: Ids of jobs or nested workflows that must finish first,
                or ConditionalDependency references resolved at build time.
            name: Display name (defaults to the id).
            delay: Hold the job this long (or until this moment) once runnable.
            id: Job id, defaults to the payload's type identity.

        Raises:
            UnresolvableDependencyError: A dependency id is not in the graph yet.
            DuplicateJobError: The id is already taken.
        """
        self._ensure_open()
        event = self.bus.publish(
            JobAdding(
                definition=self,
                payload=payload,
                job_id=id or self.type_identity(payload),
                name=name,
                delay=delay,
            )
        )
        concrete, deferred = self._split_dependencies(dependencies)
        node = self.graph.add(
            JobNode(
                id=event.job_id,
                payload=payload,
                dependencies=concrete,
                name=event.name or '',
                delay=event.delay,
                queue=self._queue_for(payload, queue, connection),
                gated=gated,
            )
        )
        if deferred:
            self._deferred[node.id] = deferred
        self.bus.publish(JobAdded(definition=self, job=node))
        return node.id

    def add_gated_job(
        self,
        payload: Any,
        dependencies: Iterable[DependencyRef] = (),
        name: str | None = None,
        delay: Delay | None = None,
        id: str | None = None,
        **options: Any,
    ) -> str:
        """Add a job that waits for a manual start once its dependencies finish."""
        return self.add_job(payload, dependencies, name, delay, id, gated=True, **options)

    def add_workflow(
        self,
        workflow: WorkflowDefinition,
        dependencies: Iterable[DependencyRef] = (),
        id: str | None = None,
    ) -> str:
        """
        Embed another definition as a nested workflow.

        Its job ids are prefixed with ``id + '.'``, its root jobs wait for
        ``dependencies``, and depending on ``id`` later means depending on all
        of its terminal jobs. Callbacks registered on the nested definition
        are not carried over.
        """
        self._ensure_open()
        event = self.bus.publish(
            WorkflowAdding(
                definition=self,
                nested=workflow,
                workflow_id=id or workflow.name,
                dependencies=list(dependencies),
            )
        )
        concrete, deferred = self._split_dependencies(event.dependencies)
        child = workflow.build(check_cycles=self._check_cycles)
        self.graph.merge(child, event.workflow_id, concrete)

        prefix = f'{event.workflow_id}{NESTED_ID_SEPARATOR}'
        roots = frozenset(prefix + node.id for node in child.roots())
        self._nested[event.workflow_id] = roots
        if deferred:
            for root_id in roots:
                self._deferred[root_id] = list(deferred)
        self.bus.publish(
            WorkflowAdded(definition=self, nested=workflow, workflow_id=event.workflow_id)
        )
        return event.workflow_id

    def conditional_dependency(
        self, primary: str, fallback: str | None = None
    ) -> ConditionalDependency:
        return ConditionalDependency(primary, fallback)

    # ------------------------------------------------------------------
    # Conditionals and callbacks
    # ------------------------------------------------------------------

    def when(
        self,
        condition: bool | Callable[[], bool],
        callback: Callable[[WorkflowDefinition], Any],
        default: Callable[[WorkflowDefinition], Any] | None = None,
    ) -> WorkflowDefinition:
        """Apply ``callback`` to this definition if ``condition`` holds, else ``default``."""
        value = condition() if callable(condition) else condition
        if value:
            callback(self)
        elif default is not None:
            default(self)
        return self

    def unless(
        self,
        condition: bool | Callable[[], bool],
        callback: Callable[[WorkflowDefinition], Any],
        default: Callable[[WorkflowDefinition], Any] | None = None,
    ) -> WorkflowDefinition:
        value = condition() if callable(condition) else condition
        return self.when(not value, callback, default)

    def then(self, callback: ThenCallback) -> WorkflowDefinition:
        """Run ``callback`` once every job of the workflow has finished."""
        self._then.append(callback)
        return self

    def catch(self, callback: CatchCallback) -> WorkflowDefinition:
        """Run ``callback`` for every job that fails."""
        self._catch.append(callback)
        return self

    def for_entity(self, entity: Any) -> WorkflowDefinition:
        """Associate the workflow with a domain object (see EntityAwareWorkflows)."""
        self.entity = entity
        return self

    @property
    def then_callbacks(self) -> list[ThenCallback]:
        return list(self._then)

    @property
    def catch_callbacks(self) -> list[CatchCallback]:
        return list(self._catch)

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    @property
    def _check_cycles(self) -> bool:
        return self.config.detect_cycles if self.config is not None else True

    @property
    def is_built(self) -> bool:
        return self._built

    def _resolved_deferred(self, job_id: str) -> frozenset[str]:
        resolved: set[str] = set()
        for condition in self._deferred.get(job_id, []):
            resolved.update(condition.resolve(self.graph))
        return frozenset(resolved)

    def build(self, check_cycles: bool | None = None) -> Graph:
        """
        Resolve conditional dependencies and freeze the graph.

        Idempotent: later calls return the same frozen graph.

        Raises:
            UnresolvableDependencyError: A conditional fallback does not exist.
            CycleDetectedError: Resolved dependencies form a cycle.
        """
        if self._built:
            return self.graph
        for job_id in list(self._deferred):
            self.graph.extend_dependencies(job_id, self._resolved_deferred(job_id))
        self.graph.freeze(self._check_cycles if check_cycles is None else check_cycles)
        self._deferred.clear()
        self._built = True
        return self.graph

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def job_ids(self) -> list[str]:
        return self.graph.ids()

    def _effective_dependencies(self, job_id: str) -> frozenset[str]:
        return self.graph.get(job_id).dependencies | self._resolved_deferred(job_id)

    def _expand(self, dependencies: Iterable[DependencyRef]) -> frozenset[str]:
        expanded: set[str] = set()
        for dep in dependencies:
            if isinstance(dep, ConditionalDependency):
                expanded.update(dep.resolve(self.graph))
            else:
                expanded.update(self.graph.resolve(dep))
        return frozenset(expanded)

    def has_job(
        self,
        job_id: str,
        dependencies: Iterable[DependencyRef] | None = None,
        delay: Delay | None = None,
    ) -> bool:
        """True if the job exists (with exactly these dependencies / this delay, when given)."""
        if job_id not in self.graph:
            return False
        if dependencies is not None:
            if self._effective_dependencies(job_id) != self._expand(dependencies):
                return False
        if delay is not None and self.graph.get(job_id).delay != delay:
            return False
        return True

    def has_workflow(
        self,
        workflow_id: str,
        dependencies: Iterable[DependencyRef] | None = None,
    ) -> bool:
        """True if a nested workflow was added under ``workflow_id`` (with these dependencies, when given)."""
        roots = self._nested.get(workflow_id)
        if roots is None:
            return False
        if dependencies is None:
            return True
        expected = self._expand(dependencies)
        return all(self._effective_dependencies(root) == expected for root in roots)
