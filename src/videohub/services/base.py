"""Shared plumbing for services that talk to the entity and blob stores."""

from collections.abc import Awaitable
from typing import Any, TypeVar

from videohub.adapters.blob.base import BlobStore
from videohub.adapters.store.base import EntityStore, Filters, In
from videohub.config import settings
from videohub.domain.enums import Collection
from videohub.errors import NotFound, Unauthorized
from videohub.utils.async_utils import guarded

T = TypeVar("T")


class StoreBackedService:
    """Base for services holding explicit store handles.

    Every store and blob call goes through ``_store``/``_blob`` so it runs
    under the configured timeout and fails as a named ``UpstreamFailure``.
    """

    def __init__(
        self,
        store: EntityStore,
        blobs: BlobStore | None = None,
        store_timeout: float | None = None,
        blob_timeout: float | None = None,
    ) -> None:
        self.store = store
        self.blobs = blobs
        self.store_timeout = store_timeout or settings.store_timeout_seconds
        self.blob_timeout = blob_timeout or settings.blob_timeout_seconds

    async def _store(self, step: str, awaitable: Awaitable[T]) -> T:
        return await guarded(step, awaitable, self.store_timeout)

    async def _blob(self, step: str, awaitable: Awaitable[T]) -> T:
        return await guarded(step, awaitable, self.blob_timeout)

    async def _get(self, collection: Collection, doc_id: str, label: str) -> dict[str, Any]:
        """Fetch a document or raise ``NotFound``."""
        doc = await self._store(f"load_{label}", self.store.find_by_id(collection, doc_id))
        if doc is None:
            raise NotFound(f"{label.capitalize()} {doc_id} not found")
        return doc

    async def _ids(self, step: str, collection: Collection, filters: Filters) -> list[str]:
        """Capture the ids of every document matching ``filters``."""
        docs = await self._store(step, self.store.find_many(collection, filters))
        return [d["id"] for d in docs]

    async def _by_id(self, step: str, collection: Collection, ids: set[str]) -> dict[str, dict[str, Any]]:
        """Batch-fetch documents by id into an id -> document map."""
        if not ids:
            return {}
        docs = await self._store(step, self.store.find_many(collection, {"id": In(ids)}))
        return {d["id"]: d for d in docs}

    @staticmethod
    def _check_owner(doc: dict[str, Any], actor_id: str | None, what: str) -> None:
        if actor_id is not None and doc.get("owner_id") != actor_id:
            raise Unauthorized(f"Only the owner can modify this {what}")
