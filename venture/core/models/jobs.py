"""Job nodes: the vertices of a workflow graph."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Union

from .queues import QueueRef

Delay = Union[datetime, timedelta, int, float]
"""
- datetime: dispatch no earlier than this moment
- timedelta / int / float: dispatch this long after the job becomes runnable
"""

TypeIdentity = Callable[[Any], str]
"""Maps a job payload to the stable string used as its default id."""


def default_type_identity(payload: Any) -> str:
    """Fully qualified type name of the payload (function name for plain callables)."""
    target = payload if callable(payload) and hasattr(payload, '__qualname__') else type(payload)
    return f'{target.__module__}.{target.__qualname__}'


def delay_until(delay: Delay | None, now: datetime | None = None) -> datetime | None:
    """Resolve a delay into the absolute moment a job may run."""
    if delay is None:
        return None
    if isinstance(delay, datetime):
        return delay
    now = now or datetime.now(timezone.utc)
    if isinstance(delay, timedelta):
        return now + delay
    return now + timedelta(seconds=delay)


@dataclass(frozen=True)
class JobNode:
    """
    A node in the workflow graph.

    Example:
        ```python
        node = JobNode(
            id='send-invoice',
            payload=SendInvoice(order_id=7),
            dependencies=frozenset({'charge-card'}),
        )
        ```
    """

    id: str
    payload: Any = field(repr=False, compare=False)
    dependencies: frozenset[str] = field(default_factory=lambda: frozenset[str]())
    """
    - Direct predecessors only; transitive dependencies are derived by the Graph
    """
    name: str = ''
    """
    - Display name, defaults to the id
    """
    delay: Delay | None = None
    queue: QueueRef | None = None
    gated: bool = False
    """
    - If True, the job is held once its dependencies finish until started manually
    """

    def __post_init__(self) -> None:
        if not self.name:
            object.__setattr__(self, 'name', self.id)

    @property
    def is_root(self) -> bool:
        return not self.dependencies
