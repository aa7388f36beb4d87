"""
SQL Document Store - DocumentStore backed by the documents table.

Every write locks the row (SELECT FOR UPDATE) and then commits with an
optimistic version check, so conditional updates stay atomic even on
backends that ignore row locks. A lost version race is retried with a
fresh read up to max_attempts times.
"""

import time
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any
from uuid import uuid4

from sqlalchemy import delete as sql_delete
from sqlalchemy import select
from sqlalchemy import update as sql_update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from structlog import get_logger

from scripthub.db.models import Document, utc_now
from scripthub.exceptions import ConcurrencyError, StoreUnavailableError
from scripthub.observability.metrics import metrics
from scripthub.observability.tracing import traced
from scripthub.store.base import (
    DocumentStore,
    Mutation,
    Predicate,
    Record,
    merge_fields,
    split_path,
)

logger = get_logger(__name__)


class _VersionConflict(Exception):
    """The row changed between our read and our write."""


_REJECTED = object()


class SQLDocumentStore(DocumentStore):
    """Document store on top of an async SQLAlchemy session factory."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        max_attempts: int = 5,
        watch_interval: float = 2.0,
    ) -> None:
        self._session_factory = session_factory
        self._max_attempts = max_attempts
        self.watch_interval = watch_interval

    # ========================================================================
    # Reads
    # ========================================================================

    async def get(self, path: str) -> Record | None:
        value, _ = await self.read_versioned(path)
        return value

    async def read_versioned(self, path: str) -> tuple[Record | None, int]:
        collection, key = split_path(path)
        async with self._operation("get", path):
            async with self._session_factory() as session:
                doc = await session.get(Document, (collection, key))
                if doc is None:
                    return None, 0
                return dict(doc.data), doc.version

    async def find(self, collection: str, field: str, value: Any) -> list[tuple[str, Record]]:
        column = Document.data[field]
        if isinstance(value, bool):
            condition = column.as_boolean() == value
        elif isinstance(value, int):
            condition = column.as_integer() == value
        else:
            condition = column.as_string() == str(value)

        stmt = (
            select(Document)
            .where(Document.collection == collection.strip("/"), condition)
            .order_by(Document.created_at, Document.key)
        )
        async with self._operation("find", collection):
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return [(doc.key, dict(doc.data)) for doc in result.scalars().all()]

    async def list_records(self, collection: str) -> list[tuple[str, Record]]:
        stmt = (
            select(Document)
            .where(Document.collection == collection.strip("/"))
            .order_by(Document.created_at, Document.key)
        )
        async with self._operation("list", collection):
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return [(doc.key, dict(doc.data)) for doc in result.scalars().all()]

    # ========================================================================
    # Writes
    # ========================================================================

    async def set(self, path: str, value: Record) -> None:
        await self._write(path, "set", lambda current: dict(value))

    async def update(self, path: str, fields: Record) -> None:
        await self._write(path, "update", lambda current: merge_fields(current, fields))

    async def delete(self, path: str) -> None:
        await self._write(path, "delete", lambda current: None)

    async def push(self, collection: str, value: Record) -> str:
        key = uuid4().hex
        await self._write(f"{collection.strip('/')}/{key}", "push", lambda current: dict(value))
        return key

    async def conditional_update(
        self, path: str, predicate: Predicate, mutation: Mutation
    ) -> bool:
        def compute(current: Record | None) -> Any:
            if not predicate(current):
                return _REJECTED
            return mutation(current)

        return await self._write(path, "conditional_update", compute)

    async def _write(
        self, path: str, operation: str, compute: Callable[[Record | None], Any]
    ) -> bool:
        """
        Read-lock-compute-write loop shared by every mutating operation.

        Returns False only when compute() rejects the current record.
        """
        collection, key = split_path(path)

        for attempt in range(1, self._max_attempts + 1):
            try:
                async with self._operation(operation, path, attempt=attempt):
                    async with self._session_factory() as session:
                        async with session.begin():
                            return await self._apply(session, collection, key, compute)
            except (_VersionConflict, IntegrityError) as e:
                metrics.store_conflicts_total.inc()
                logger.info(
                    "document_write_conflict",
                    path=path,
                    operation=operation,
                    attempt=attempt,
                    error=type(e).__name__,
                )

        logger.error(
            "document_write_conflict_exhausted",
            path=path,
            operation=operation,
            attempts=self._max_attempts,
        )
        raise ConcurrencyError(path, self._max_attempts)

    async def _apply(
        self,
        session: AsyncSession,
        collection: str,
        key: str,
        compute: Callable[[Record | None], Any],
    ) -> bool:
        stmt = (
            select(Document)
            .where(Document.collection == collection, Document.key == key)
            .with_for_update()
        )
        result = await session.execute(stmt)
        doc = result.scalar_one_or_none()

        current = dict(doc.data) if doc is not None else None
        new_value = compute(current)
        if new_value is _REJECTED:
            return False

        if doc is None:
            if new_value is not None:
                session.add(Document(collection=collection, key=key, data=new_value, version=1))
                await session.flush()
            return True

        if new_value is None:
            stmt_delete = sql_delete(Document).where(
                Document.collection == collection,
                Document.key == key,
                Document.version == doc.version,
            )
            outcome = await session.execute(stmt_delete)
        else:
            stmt_update = (
                sql_update(Document)
                .where(
                    Document.collection == collection,
                    Document.key == key,
                    Document.version == doc.version,
                )
                .values(data=new_value, version=doc.version + 1, updated_at=utc_now())
                .execution_options(synchronize_session=False)
            )
            outcome = await session.execute(stmt_update)

        if outcome.rowcount != 1:
            raise _VersionConflict(f"{collection}/{key}")
        return True

    # ========================================================================
    # Helpers
    # ========================================================================

    @asynccontextmanager
    async def _operation(
        self, operation: str, target: str, attempt: int | None = None
    ) -> AsyncIterator[None]:
        """
        Trace and time one store operation on target (a path or collection).

        Driver failures surface as StoreUnavailableError; a lost version race
        is left for _write to retry and does not mark the span as errored.
        """
        start = time.perf_counter()
        with traced(
            f"store.{operation}",
            expected=(_VersionConflict, IntegrityError),
            target=target,
            attempt=attempt,
        ):
            try:
                yield
            except (_VersionConflict, IntegrityError):
                metrics.record_store_operation(operation, False, time.perf_counter() - start)
                raise
            except (SQLAlchemyError, OSError) as e:
                metrics.record_store_operation(operation, False, time.perf_counter() - start)
                metrics.record_error(type(e).__name__, operation)
                logger.error("document_store_unavailable", operation=operation, error=str(e))
                raise StoreUnavailableError(operation, str(e)) from e
            else:
                metrics.record_store_operation(operation, True, time.perf_counter() - start)
