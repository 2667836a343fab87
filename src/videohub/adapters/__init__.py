"""Adapters for the entity store and blob store."""

from videohub.adapters.blob.base import BlobStore
from videohub.adapters.store.base import EntityStore

__all__ = [
    "BlobStore",
    "EntityStore",
]
