"""Base interface for entity store adapters."""

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from videohub.domain.enums import Collection, SortDirection
from videohub.errors import InvalidOperation


@dataclass(frozen=True)
class In:
    """Filter predicate: field value is one of ``values``.

    An empty set matches nothing.
    """

    values: frozenset[Any]

    def __init__(self, values: Iterable[Any]) -> None:
        object.__setattr__(self, "values", frozenset(values))


@dataclass(frozen=True)
class Contains:
    """Filter predicate: list field holds ``value``."""

    value: Any


@dataclass(frozen=True)
class Search:
    """Filter predicate: any of ``fields`` contains ``term``, case-insensitively.

    The filter key a Search is stored under is not a field name; use ``TEXT``.
    """

    term: str
    fields: tuple[str, ...]


@dataclass(frozen=True)
class Increment:
    """Patch value: add ``amount`` to a numeric field."""

    amount: int = 1


Filters = Mapping[str, Any]
Sort = Sequence[tuple[str, SortDirection]]

# Compound unique indexes per collection.
UNIQUE_INDEXES: dict[Collection, list[tuple[str, ...]]] = {
    Collection.USERS: [("username",), ("email",)],
    Collection.LIKES: [("liked_by_id", "target_kind", "target_id")],
    Collection.SUBSCRIPTIONS: [("subscriber_id", "channel_id")],
}

TEXT = "$text"

_TIMESTAMPS = ("created_at", "updated_at")

# Scalar fields each collection can be ordered by.
SORTABLE_FIELDS: dict[Collection, frozenset[str]] = {
    Collection.USERS: frozenset((*_TIMESTAMPS, "username", "email", "full_name")),
    Collection.VIDEOS: frozenset((*_TIMESTAMPS, "title", "views", "duration_seconds")),
    Collection.COMMENTS: frozenset(_TIMESTAMPS),
    Collection.TWEETS: frozenset(_TIMESTAMPS),
    Collection.LIKES: frozenset(_TIMESTAMPS),
    Collection.PLAYLISTS: frozenset((*_TIMESTAMPS, "name")),
    Collection.SUBSCRIPTIONS: frozenset(_TIMESTAMPS),
}


def check_sort(collection: Collection, sort: Sort | None) -> None:
    """Reject sort keys the collection cannot be ordered by.

    Raises:
        InvalidOperation: If a field is not in ``SORTABLE_FIELDS``.
    """
    allowed = SORTABLE_FIELDS[Collection(collection)]
    for field, _ in sort or []:
        if field not in allowed:
            raise InvalidOperation(
                f"Cannot sort {collection} by {field!r}; expected one of {sorted(allowed)}"
            )


class EntityStore(ABC):
    """Abstract base class for entity store adapters.

    Only single-document writes are atomic. ``delete_many`` and ``pull_all``
    touch each document atomically but give no guarantee across documents.

    Implementations:
    - InMemoryEntityStore: Dict-backed store for tests and local runs
    - SqlEntityStore: SQLAlchemy tables, one per collection
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Backend name identifier."""
        ...

    @abstractmethod
    async def insert(self, collection: Collection, document: Mapping[str, Any]) -> str:
        """Insert a document and return its new id.

        Raises:
            DuplicateKeyError: If the document violates a unique index.
        """
        ...

    @abstractmethod
    async def find_by_id(self, collection: Collection, doc_id: str) -> dict[str, Any] | None:
        """Get one document by id, or None if absent."""
        ...

    @abstractmethod
    async def find_many(
        self,
        collection: Collection,
        filters: Filters | None = None,
        sort: Sort | None = None,
        skip: int = 0,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Find documents matching ``filters``.

        Results are ordered by ``sort`` with ``id`` ascending as the final
        tie-break, so equal sort keys paginate deterministically.

        Raises:
            InvalidOperation: If ``sort`` names a field outside ``SORTABLE_FIELDS``.
        """
        ...

    @abstractmethod
    async def count(self, collection: Collection, filters: Filters | None = None) -> int:
        """Count documents matching ``filters``."""
        ...

    @abstractmethod
    async def update_by_id(
        self,
        collection: Collection,
        doc_id: str,
        patch: Mapping[str, Any],
    ) -> dict[str, Any] | None:
        """Apply ``patch`` to one document and return it, or None if absent.

        Patch values are assigned, except ``Increment`` which adds to the
        current value.
        """
        ...

    @abstractmethod
    async def delete_by_id(self, collection: Collection, doc_id: str) -> bool:
        """Delete one document. Returns False if it was already absent."""
        ...

    @abstractmethod
    async def delete_many(self, collection: Collection, filters: Filters) -> int:
        """Delete every document matching ``filters`` and return how many."""
        ...

    @abstractmethod
    async def add_to_set(
        self,
        collection: Collection,
        doc_id: str,
        field: str,
        value: Any,
        move_to_end: bool = False,
    ) -> dict[str, Any] | None:
        """Add ``value`` to a list field unless present.

        With ``move_to_end`` an existing entry is moved to the end instead of
        being left in place. Returns the updated document, or None if absent.
        """
        ...

    @abstractmethod
    async def pull(
        self,
        collection: Collection,
        doc_id: str,
        field: str,
        value: Any,
    ) -> dict[str, Any] | None:
        """Remove ``value`` from one document's list field."""
        ...

    @abstractmethod
    async def pull_all(self, collection: Collection, field: str, value: Any) -> int:
        """Remove ``value`` from the list field of every document holding it.

        Returns the number of documents changed.
        """
        ...

    async def find_one(
        self,
        collection: Collection,
        filters: Filters,
    ) -> dict[str, Any] | None:
        """Get the first document matching ``filters``, or None."""
        docs = await self.find_many(collection, filters, limit=1)
        return docs[0] if docs else None

    async def exists(self, collection: Collection, doc_id: str) -> bool:
        """Check whether a document with this id exists."""
        return await self.find_by_id(collection, doc_id) is not None

    async def health_check(self) -> bool:
        """Check if the store is reachable.

        Returns:
            True if the store is operational, False otherwise
        """
        return True


def utcnow() -> datetime:
    """Timestamp used for ``created_at``/``updated_at``."""
    return datetime.now(timezone.utc)
