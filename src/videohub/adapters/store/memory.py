"""In-memory entity store for tests and local runs."""

import asyncio
import copy
from collections.abc import Mapping
from datetime import datetime, timedelta
from typing import Any

from videohub.adapters.store.base import (
    UNIQUE_INDEXES,
    Contains,
    EntityStore,
    Filters,
    In,
    Increment,
    Search,
    Sort,
    check_sort,
    utcnow,
)
from videohub.domain.enums import Collection, SortDirection
from videohub.domain.ids import new_id
from videohub.errors import DuplicateKeyError


def matches(doc: Mapping[str, Any], filters: Filters | None) -> bool:
    """Evaluate a structural filter against one document."""
    for key, expected in (filters or {}).items():
        if isinstance(expected, Search):
            term = expected.term.lower()
            if not any(term in str(doc.get(f) or "").lower() for f in expected.fields):
                return False
            continue

        value = doc.get(key)
        if isinstance(expected, In):
            if value not in expected.values:
                return False
        elif isinstance(expected, Contains):
            if expected.value not in (value or []):
                return False
        elif value != expected:
            return False
    return True


def _sort_key(value: Any) -> tuple[int, Any]:
    # None sorts before any real value
    return (0, "") if value is None else (1, value)


def sort_documents(docs: list[dict[str, Any]], sort: Sort | None) -> list[dict[str, Any]]:
    """Order documents by ``sort`` with ``id`` ascending as the tie-break."""
    ordered = sorted(docs, key=lambda d: d["id"])
    for field, direction in reversed(list(sort or [])):
        ordered.sort(
            key=lambda d, f=field: _sort_key(d.get(f)),
            reverse=SortDirection(direction) == SortDirection.DESC,
        )
    return ordered


class InMemoryEntityStore(EntityStore):
    """Dict-backed store honouring the same contract as the SQL store.

    Every call yields to the event loop once before touching data, so
    concurrent operations interleave the way they would against a remote
    store, while each single-document write stays atomic.
    """

    def __init__(self) -> None:
        self._collections: dict[Collection, dict[str, dict[str, Any]]] = {
            collection: {} for collection in Collection
        }
        self._last_timestamp: datetime | None = None

    @property
    def name(self) -> str:
        return "memory"

    def _now(self) -> datetime:
        # Strictly increasing so creation order is always observable
        now = utcnow()
        if self._last_timestamp is not None and now <= self._last_timestamp:
            now = self._last_timestamp + timedelta(microseconds=1)
        self._last_timestamp = now
        return now

    def _check_unique(
        self,
        collection: Collection,
        candidate: Mapping[str, Any],
        exclude_id: str | None = None,
    ) -> None:
        for index in UNIQUE_INDEXES.get(collection, []):
            key = tuple(candidate.get(f) for f in index)
            for doc in self._collections[collection].values():
                if doc["id"] == exclude_id:
                    continue
                if tuple(doc.get(f) for f in index) == key:
                    raise DuplicateKeyError(str(collection), dict(zip(index, key)))

    async def insert(self, collection: Collection, document: Mapping[str, Any]) -> str:
        await asyncio.sleep(0)
        docs = self._collections[collection]
        doc = copy.deepcopy(dict(document))
        doc_id = doc.get("id") or new_id()
        if doc_id in docs:
            raise DuplicateKeyError(str(collection), {"id": doc_id})
        self._check_unique(collection, doc)

        now = self._now()
        doc.update(id=doc_id, created_at=now, updated_at=now)
        docs[doc_id] = doc
        return doc_id

    async def find_by_id(self, collection: Collection, doc_id: str) -> dict[str, Any] | None:
        await asyncio.sleep(0)
        doc = self._collections[collection].get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def find_many(
        self,
        collection: Collection,
        filters: Filters | None = None,
        sort: Sort | None = None,
        skip: int = 0,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        check_sort(collection, sort)
        await asyncio.sleep(0)
        found = [d for d in self._collections[collection].values() if matches(d, filters)]
        found = sort_documents(found, sort)
        end = None if limit is None else skip + limit
        return copy.deepcopy(found[skip:end])

    async def count(self, collection: Collection, filters: Filters | None = None) -> int:
        await asyncio.sleep(0)
        return sum(1 for d in self._collections[collection].values() if matches(d, filters))

    async def update_by_id(
        self,
        collection: Collection,
        doc_id: str,
        patch: Mapping[str, Any],
    ) -> dict[str, Any] | None:
        await asyncio.sleep(0)
        doc = self._collections[collection].get(doc_id)
        if doc is None:
            return None

        updated = copy.deepcopy(doc)
        for field, value in patch.items():
            if field in ("id", "created_at"):
                continue
            if isinstance(value, Increment):
                updated[field] = (updated.get(field) or 0) + value.amount
            else:
                updated[field] = copy.deepcopy(value)
        self._check_unique(collection, updated, exclude_id=doc_id)

        updated["updated_at"] = self._now()
        self._collections[collection][doc_id] = updated
        return copy.deepcopy(updated)

    async def delete_by_id(self, collection: Collection, doc_id: str) -> bool:
        await asyncio.sleep(0)
        return self._collections[collection].pop(doc_id, None) is not None

    async def delete_many(self, collection: Collection, filters: Filters) -> int:
        await asyncio.sleep(0)
        docs = self._collections[collection]
        doomed = [doc_id for doc_id, d in docs.items() if matches(d, filters)]
        for doc_id in doomed:
            del docs[doc_id]
        return len(doomed)

    async def add_to_set(
        self,
        collection: Collection,
        doc_id: str,
        field: str,
        value: Any,
        move_to_end: bool = False,
    ) -> dict[str, Any] | None:
        await asyncio.sleep(0)
        doc = self._collections[collection].get(doc_id)
        if doc is None:
            return None

        items = list(doc.get(field) or [])
        if value in items:
            if move_to_end:
                items = [v for v in items if v != value] + [value]
        else:
            items.append(value)
        doc[field] = items
        doc["updated_at"] = self._now()
        return copy.deepcopy(doc)

    async def pull(
        self,
        collection: Collection,
        doc_id: str,
        field: str,
        value: Any,
    ) -> dict[str, Any] | None:
        await asyncio.sleep(0)
        doc = self._collections[collection].get(doc_id)
        if doc is None:
            return None

        items = list(doc.get(field) or [])
        if value in items:
            doc[field] = [v for v in items if v != value]
            doc["updated_at"] = self._now()
        return copy.deepcopy(doc)

    async def pull_all(self, collection: Collection, field: str, value: Any) -> int:
        await asyncio.sleep(0)
        changed = 0
        for doc in self._collections[collection].values():
            items = doc.get(field) or []
            if value in items:
                doc[field] = [v for v in items if v != value]
                doc["updated_at"] = self._now()
                changed += 1
        return changed
