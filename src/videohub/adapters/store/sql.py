"""SQLAlchemy-backed entity store.

Each collection maps to one table (see ``videohub.db.models``). Every public
call runs one short session in a worker thread and commits once, which keeps
writes atomic per document and nothing more.

List fields (``watch_history``, ``videos``) are JSON columns. Membership
tests on them run in SQL through ``json_each`` on SQLite and JSONB ``@>`` on
PostgreSQL; other dialects fall back to evaluating them in Python. List edits
use a compare-and-swap on ``updated_at`` so concurrent edits of the same
document never lose an update.
"""

import asyncio
from collections.abc import Callable, Mapping
from typing import Any, TypeVar

from sqlalchemy import Engine, cast, delete, func, or_, select, text, update
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from videohub.adapters.store.base import (
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
from videohub.adapters.store.memory import matches
from videohub.db.models import MODELS, Base, to_document
from videohub.db.session import get_session_context
from videohub.domain.enums import Collection, SortDirection
from videohub.domain.ids import new_id
from videohub.errors import DuplicateKeyError, InvalidOperation, UpstreamFailure, VideoHubError
from videohub.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

CAS_ATTEMPTS = 5


def _is_unique_violation(error: IntegrityError) -> bool:
    if getattr(error.orig, "pgcode", None) == "23505":
        return True
    return "unique" in str(error.orig).lower()


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class SqlEntityStore(EntityStore):
    """Entity store over a relational database via SQLAlchemy."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    @property
    def name(self) -> str:
        return "sql"

    # -------------------------------------------------------------------------
    # Plumbing
    # -------------------------------------------------------------------------

    async def _run(self, operation: str, fn: Callable[..., T], *args: Any) -> T:
        try:
            return await asyncio.to_thread(fn, *args)
        except VideoHubError:
            raise
        except SQLAlchemyError as e:
            logger.error("sql_store_error", operation=operation, error=str(e))
            raise UpstreamFailure(f"Entity store {operation} failed: {e}") from e

    @staticmethod
    def _model(collection: Collection) -> type[Base]:
        return MODELS[Collection(collection)]

    @staticmethod
    def _column(model: type[Base], field: str) -> Any:
        if field not in model.__table__.columns:
            raise InvalidOperation(f"{model.__tablename__} has no field {field!r}")
        return getattr(model, field)

    def _contains(self, column: Any, value: Any) -> Any | None:
        """SQL clause for JSON list membership, or None if the dialect has none."""
        dialect = self._engine.dialect.name
        if dialect == "sqlite":
            items = func.json_each(column).table_valued("value")
            return (
                select(items.c.value)
                .where(items.c.value == value)
                .correlate_except(items)
                .exists()
            )
        if dialect == "postgresql":
            return cast(column, JSONB).contains([value])
        return None

    def _compile_filters(
        self,
        model: type[Base],
        filters: Filters | None,
    ) -> tuple[list[Any], dict[str, Any]]:
        """Split filters into SQL clauses and any list predicates left for Python."""
        clauses: list[Any] = []
        deferred: dict[str, Any] = {}
        for key, expected in (filters or {}).items():
            if isinstance(expected, Search):
                pattern = f"%{_escape_like(expected.term)}%"
                clauses.append(
                    or_(
                        *(
                            self._column(model, f).ilike(pattern, escape="\\")
                            for f in expected.fields
                        )
                    )
                )
            elif isinstance(expected, Contains):
                clause = self._contains(self._column(model, key), expected.value)
                if clause is None:
                    deferred[key] = expected
                else:
                    clauses.append(clause)
            elif isinstance(expected, In):
                clauses.append(self._column(model, key).in_(list(expected.values)))
            elif expected is None:
                clauses.append(self._column(model, key).is_(None))
            else:
                clauses.append(self._column(model, key) == expected)
        return clauses, deferred

    def _order_by(self, model: type[Base], sort: Sort | None) -> list[Any]:
        order = []
        for field, direction in sort or []:
            column = self._column(model, field)
            if SortDirection(direction) == SortDirection.DESC:
                order.append(column.desc())
            else:
                order.append(column.asc())
        order.append(model.id.asc())
        return order

    def _select_documents(
        self,
        session: Session,
        collection: Collection,
        filters: Filters | None,
        sort: Sort | None = None,
        skip: int = 0,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        model = self._model(collection)
        clauses, deferred = self._compile_filters(model, filters)
        query = select(model).where(*clauses).order_by(*self._order_by(model, sort))

        if not deferred:
            if skip:
                query = query.offset(skip)
            if limit is not None:
                query = query.limit(limit)
            return [to_document(row) for row in session.execute(query).scalars()]

        docs = [to_document(row) for row in session.execute(query).scalars()]
        docs = [d for d in docs if matches(d, deferred)]
        end = None if limit is None else skip + limit
        return docs[skip:end]

    def _select_ids(self, session: Session, collection: Collection, filters: Filters) -> list[str]:
        model = self._model(collection)
        clauses, deferred = self._compile_filters(model, filters)
        if deferred:
            return [d["id"] for d in self._select_documents(session, collection, filters)]
        return list(session.execute(select(model.id).where(*clauses)).scalars())

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def find_by_id(self, collection: Collection, doc_id: str) -> dict[str, Any] | None:
        def _find() -> dict[str, Any] | None:
            with get_session_context(self._engine) as session:
                row = session.get(self._model(collection), doc_id)
                return to_document(row) if row is not None else None

        return await self._run("find_by_id", _find)

    async def find_many(
        self,
        collection: Collection,
        filters: Filters | None = None,
        sort: Sort | None = None,
        skip: int = 0,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        check_sort(collection, sort)

        def _find() -> list[dict[str, Any]]:
            with get_session_context(self._engine) as session:
                return self._select_documents(session, collection, filters, sort, skip, limit)

        return await self._run("find_many", _find)

    async def count(self, collection: Collection, filters: Filters | None = None) -> int:
        def _count() -> int:
            model = self._model(collection)
            clauses, deferred = self._compile_filters(model, filters)
            with get_session_context(self._engine) as session:
                if deferred:
                    return len(self._select_documents(session, collection, filters))
                query = select(func.count()).select_from(model).where(*clauses)
                return int(session.execute(query).scalar_one())

        return await self._run("count", _count)

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def insert(self, collection: Collection, document: Mapping[str, Any]) -> str:
        def _insert() -> str:
            model = self._model(collection)
            doc = dict(document)
            doc_id = doc.get("id") or new_id()
            now = utcnow()
            doc.update(id=doc_id, created_at=now, updated_at=now)
            try:
                with get_session_context(self._engine) as session:
                    session.add(model(**doc))
            except IntegrityError as e:
                if _is_unique_violation(e):
                    raise DuplicateKeyError(str(collection), {"id": doc_id}) from e
                raise
            return doc_id

        return await self._run("insert", _insert)

    async def update_by_id(
        self,
        collection: Collection,
        doc_id: str,
        patch: Mapping[str, Any],
    ) -> dict[str, Any] | None:
        def _update() -> dict[str, Any] | None:
            model = self._model(collection)
            values: dict[str, Any] = {}
            for field, value in patch.items():
                if field in ("id", "created_at"):
                    continue
                column = self._column(model, field)
                if isinstance(value, Increment):
                    values[field] = func.coalesce(column, 0) + value.amount
                else:
                    values[field] = value
            values["updated_at"] = utcnow()

            try:
                with get_session_context(self._engine) as session:
                    result = session.execute(
                        update(model)
                        .where(model.id == doc_id)
                        .values(**values)
                        .execution_options(synchronize_session=False)
                    )
                    if result.rowcount == 0:
                        return None
                    row = session.get(model, doc_id, populate_existing=True)
                    return to_document(row) if row is not None else None
            except IntegrityError as e:
                if _is_unique_violation(e):
                    raise DuplicateKeyError(str(collection), dict(patch)) from e
                raise

        return await self._run("update_by_id", _update)

    async def delete_by_id(self, collection: Collection, doc_id: str) -> bool:
        def _delete() -> bool:
            model = self._model(collection)
            with get_session_context(self._engine) as session:
                result = session.execute(
                    delete(model)
                    .where(model.id == doc_id)
                    .execution_options(synchronize_session=False)
                )
                return result.rowcount > 0

        return await self._run("delete_by_id", _delete)

    async def delete_many(self, collection: Collection, filters: Filters) -> int:
        def _delete() -> int:
            model = self._model(collection)
            clauses, deferred = self._compile_filters(model, filters)
            with get_session_context(self._engine) as session:
                if deferred:
                    ids = self._select_ids(session, collection, filters)
                    if not ids:
                        return 0
                    clauses = [model.id.in_(ids)]
                result = session.execute(
                    delete(model).where(*clauses).execution_options(synchronize_session=False)
                )
                return result.rowcount

        return await self._run("delete_many", _delete)

    def _modify_list(
        self,
        collection: Collection,
        doc_id: str,
        field: str,
        edit: Callable[[list[Any]], list[Any]],
    ) -> tuple[dict[str, Any] | None, bool]:
        """Apply ``edit`` to one list field with compare-and-swap.

        Returns the resulting document (None if absent) and whether it changed.
        """
        model = self._model(collection)
        column = self._column(model, field)
        for _ in range(CAS_ATTEMPTS):
            with get_session_context(self._engine) as session:
                row = session.get(model, doc_id, populate_existing=True)
                if row is None:
                    return None, False
                current = list(getattr(row, field) or [])
                edited = edit(current)
                if edited == current:
                    return to_document(row), False

                seen_at = row.updated_at
                now = utcnow()
                result = session.execute(
                    update(model)
                    .where(model.id == doc_id, model.updated_at == seen_at)
                    .values({column: edited, model.updated_at: now})
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 1:
                    doc = to_document(row)
                    doc.update({field: edited, "updated_at": now})
                    return doc, True
            logger.debug("sql_store_cas_retry", collection=str(collection), doc_id=doc_id)
        raise UpstreamFailure(f"Concurrent updates kept conflicting on {collection}/{doc_id}")

    async def add_to_set(
        self,
        collection: Collection,
        doc_id: str,
        field: str,
        value: Any,
        move_to_end: bool = False,
    ) -> dict[str, Any] | None:
        def _edit(items: list[Any]) -> list[Any]:
            if value not in items:
                return [*items, value]
            if move_to_end:
                return [v for v in items if v != value] + [value]
            return items

        doc, _ = await self._run(
            "add_to_set", self._modify_list, collection, doc_id, field, _edit
        )
        return doc

    async def pull(
        self,
        collection: Collection,
        doc_id: str,
        field: str,
        value: Any,
    ) -> dict[str, Any] | None:
        doc, _ = await self._run(
            "pull",
            self._modify_list,
            collection,
            doc_id,
            field,
            lambda items: [v for v in items if v != value],
        )
        return doc

    async def pull_all(self, collection: Collection, field: str, value: Any) -> int:
        def _pull_all() -> int:
            with get_session_context(self._engine) as session:
                holders = self._select_ids(session, collection, {field: Contains(value)})

            changed = 0
            for doc_id in holders:
                _, did_change = self._modify_list(
                    collection, doc_id, field, lambda items: [v for v in items if v != value]
                )
                changed += int(did_change)
            return changed

        return await self._run("pull_all", _pull_all)

    async def health_check(self) -> bool:
        def _ping() -> bool:
            with self._engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True

        try:
            return await asyncio.to_thread(_ping)
        except SQLAlchemyError as e:
            logger.error("sql_store_health_check_failed", error=str(e))
            return False
