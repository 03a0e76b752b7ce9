"""Lifecycle events and the synchronous event bus that delivers them.

Events ending in ``-ing`` are published before the change is committed; their
payloads are mutable and a subscriber that raises aborts the operation.
All other events are published after the fact and are frozen.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Protocol, TypeVar

from venture.core.logging import get_logger

if TYPE_CHECKING:
    from venture.core.models.definition import WorkflowDefinition
    from venture.core.models.jobs import Delay, JobNode
    from venture.core.models.workflow import JobRunState, WorkflowInstance

logger = get_logger('events')

E = TypeVar('E')


# =============================================================================
# Definition-time events
# =============================================================================


@dataclass
class JobAdding:
    """A job is about to be added to a definition. ``job_id``, ``name`` and ``delay`` may be changed."""

    definition: WorkflowDefinition
    payload: Any
    job_id: str
    name: str | None = None
    delay: Delay | None = None


@dataclass(frozen=True)
class JobAdded:
    definition: WorkflowDefinition
    job: JobNode


@dataclass
class WorkflowAdding:
    """A nested workflow is about to be embedded. ``workflow_id`` and ``dependencies`` may be changed."""

    definition: WorkflowDefinition
    nested: WorkflowDefinition
    workflow_id: str
    dependencies: list[Any] = field(default_factory=lambda: [])


@dataclass(frozen=True)
class WorkflowAdded:
    definition: WorkflowDefinition
    nested: WorkflowDefinition
    workflow_id: str


# =============================================================================
# Persistence events
# =============================================================================


@dataclass
class WorkflowCreating:
    """The workflow record is about to be persisted; its fields may be changed."""

    definition: WorkflowDefinition
    workflow: WorkflowInstance


@dataclass(frozen=True)
class WorkflowCreated:
    definition: WorkflowDefinition
    workflow: WorkflowInstance


@dataclass
class JobCreating:
    """A job record is about to be persisted; its fields may be changed."""

    workflow: WorkflowInstance
    job: JobRunState


@dataclass(frozen=True)
class JobCreated:
    workflow: WorkflowInstance
    job: JobRunState


# =============================================================================
# Run-time events
# =============================================================================


@dataclass(frozen=True)
class WorkflowStarted:
    """``initial_jobs`` are the roots dispatched on start; gated roots are held and left out."""

    workflow: WorkflowInstance
    initial_jobs: tuple[JobNode, ...]


@dataclass(frozen=True)
class JobProcessing:
    workflow: WorkflowInstance
    job: JobNode


@dataclass(frozen=True)
class JobGated:
    workflow: WorkflowInstance
    job: JobNode


@dataclass(frozen=True)
class JobFinished:
    workflow: WorkflowInstance
    job: JobNode


@dataclass(frozen=True)
class JobFailed:
    workflow: WorkflowInstance
    job: JobNode
    exception: BaseException


@dataclass(frozen=True)
class WorkflowFinished:
    workflow: WorkflowInstance


@dataclass(frozen=True)
class WorkflowCancelled:
    workflow: WorkflowInstance


# =============================================================================
# Bus
# =============================================================================


class EventBus:
    """
    Synchronous, ordered event dispatch.

    Subscribers run in registration order on the publishing thread. Exceptions
    raised by a subscriber propagate to the publisher.
    """

    def __init__(self) -> None:
        self._listeners: dict[type[Any], list[Callable[[Any], None]]] = defaultdict(list)

    def subscribe(self, event_type: type[E], listener: Callable[[E], None]) -> Callable[[E], None]:
        self._listeners[event_type].append(listener)
        return listener

    def on(self, event_type: type[E]) -> Callable[[Callable[[E], None]], Callable[[E], None]]:
        """Decorator form of subscribe()."""

        def decorator(listener: Callable[[E], None]) -> Callable[[E], None]:
            return self.subscribe(event_type, listener)

        return decorator

    def unsubscribe(self, event_type: type[E], listener: Callable[[E], None]) -> None:
        listeners = self._listeners.get(event_type, [])
        if listener in listeners:
            listeners.remove(listener)

    def listeners(self, event_type: type[Any]) -> list[Callable[[Any], None]]:
        return list(self._listeners.get(event_type, []))

    def publish(self, event: E) -> E:
        """Deliver ``event`` to its subscribers and return it (mutations included)."""
        for listener in self.listeners(type(event)):
            listener(event)
        logger.debug(f'published {type(event).__name__}')
        return event


class Plugin(Protocol):
    """Anything that wires itself into an EventBus."""

    def install(self, bus: EventBus) -> None: ...
