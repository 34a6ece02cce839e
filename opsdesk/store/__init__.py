"""Entity store package."""

from opsdesk.store.entity_store import EntityStore

__all__ = ["EntityStore"]
