"""Workflow persistence backends."""

from venture.core.stores.base import WorkflowStore
from venture.core.stores.memory import InMemoryWorkflowStore
from venture.core.stores.sql import SqlAlchemyWorkflowStore

__all__ = [
    'WorkflowStore',
    'InMemoryWorkflowStore',
    'SqlAlchemyWorkflowStore',
]
