"""Bundled plugins."""

from venture.core.plugins.entity import EntityAwareWorkflows, entity_key

__all__ = ['EntityAwareWorkflows', 'entity_key']
