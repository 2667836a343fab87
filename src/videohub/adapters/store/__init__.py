"""Entity store adapters."""

from videohub.adapters.store.base import (
    TEXT,
    UNIQUE_INDEXES,
    Contains,
    EntityStore,
    Filters,
    In,
    Increment,
    Search,
    Sort,
)
from videohub.adapters.store.memory import InMemoryEntityStore
from videohub.adapters.store.sql import SqlEntityStore
from videohub.config import settings


def get_entity_store() -> EntityStore:
    """Get the configured entity store."""
    backend = getattr(settings, "store_backend", "sql").lower()

    if backend == "memory":
        return InMemoryEntityStore()
    else:
        from videohub.db.session import get_engine

        return SqlEntityStore(get_engine())


__all__ = [
    "EntityStore",
    "Filters",
    "Sort",
    "TEXT",
    "UNIQUE_INDEXES",
    "Contains",
    "In",
    "Increment",
    "Search",
    "InMemoryEntityStore",
    "SqlEntityStore",
    "get_entity_store",
]
