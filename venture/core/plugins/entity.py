"""Associate workflows with the domain object they operate on."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from venture.core.events import EventBus, WorkflowCreating

if TYPE_CHECKING:
    from venture.core.engine import WorkflowEngine
    from venture.core.handle import WorkflowHandle


def entity_key(entity: Any) -> tuple[str, str]:
    """``(type name, id)`` for an entity; the entity must expose an ``id`` attribute."""
    entity_id = getattr(entity, 'id', None)
    if entity_id is None:
        raise ValueError(
            f'{type(entity).__name__} cannot own a workflow: it has no id attribute'
        )
    return type(entity).__name__, str(entity_id)


class EntityAwareWorkflows:
    """
    Records ``definition.entity`` on the workflow when it is created.

    Example:
        ```python
        engine = WorkflowEngine(plugins=[EntityAwareWorkflows()])
        definition = engine.define('onboard user').for_entity(user)
        ...
        EntityAwareWorkflows.workflows_for(engine, user)
        ```
    """

    def install(self, bus: EventBus) -> None:
        bus.subscribe(WorkflowCreating, self._on_workflow_creating)

    def _on_workflow_creating(self, event: WorkflowCreating) -> None:
        if event.definition.entity is None:
            return
        event.workflow.entity_type, event.workflow.entity_id = entity_key(
            event.definition.entity
        )

    @staticmethod
    def workflows_for(engine: WorkflowEngine, entity: Any) -> list[WorkflowHandle]:
        from venture.core.handle import WorkflowHandle

        entity_type, entity_id = entity_key(entity)
        return [
            WorkflowHandle(engine, workflow.id)
            for workflow in engine.store.find_by_entity(entity_type, entity_id)
        ]
