"""
In-Memory Document Store - process-local DocumentStore.

Used by the test suite and single-process development. A single asyncio
lock serialises writers, which makes conditional_update trivially atomic
within one event loop.
"""

import asyncio
import copy
import itertools
from typing import Any
from uuid import uuid4

from scripthub.store.base import (
    DocumentStore,
    Mutation,
    Predicate,
    Record,
    merge_fields,
    split_path,
)


class MemoryDocumentStore(DocumentStore):
    """Dictionary-backed document store."""

    def __init__(
        self, initial: dict[str, Record] | None = None, watch_interval: float = 2.0
    ) -> None:
        self.watch_interval = watch_interval
        self._collections: dict[str, dict[str, tuple[Record, int]]] = {}
        self._lock = asyncio.Lock()
        self._versions = itertools.count(1)
        for path, value in (initial or {}).items():
            self._put(path, value)

    def _put(self, path: str, value: Record | None) -> None:
        collection, key = split_path(path)
        if value is None:
            self._collections.get(collection, {}).pop(key, None)
        else:
            self._collections.setdefault(collection, {})[key] = (
                copy.deepcopy(value),
                next(self._versions),
            )

    def _peek(self, path: str) -> tuple[Record | None, int]:
        collection, key = split_path(path)
        entry = self._collections.get(collection, {}).get(key)
        if entry is None:
            return None, 0
        return copy.deepcopy(entry[0]), entry[1]

    async def get(self, path: str) -> Record | None:
        value, _ = self._peek(path)
        return value

    async def read_versioned(self, path: str) -> tuple[Record | None, int]:
        return self._peek(path)

    async def set(self, path: str, value: Record) -> None:
        async with self._lock:
            self._put(path, value)

    async def update(self, path: str, fields: Record) -> None:
        async with self._lock:
            current, _ = self._peek(path)
            self._put(path, merge_fields(current, fields))

    async def delete(self, path: str) -> None:
        async with self._lock:
            self._put(path, None)

    async def push(self, collection: str, value: Record) -> str:
        key = uuid4().hex
        await self.set(f"{collection.strip('/')}/{key}", value)
        return key

    async def find(self, collection: str, field: str, value: Any) -> list[tuple[str, Record]]:
        return [
            (key, record)
            for key, record in await self.list_records(collection)
            if field in record and record[field] == value
        ]

    async def list_records(self, collection: str) -> list[tuple[str, Record]]:
        entries = self._collections.get(collection.strip("/"), {})
        return [(key, copy.deepcopy(value)) for key, (value, _) in entries.items()]

    async def conditional_update(
        self, path: str, predicate: Predicate, mutation: Mutation
    ) -> bool:
        async with self._lock:
            current, _ = self._peek(path)
            if not predicate(current):
                return False
            # Yield while holding the lock so racing callers really interleave here
            await asyncio.sleep(0)
            self._put(path, mutation(copy.deepcopy(current)))
            return True
