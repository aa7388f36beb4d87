"""
Document Store Interface - Path-addressed JSON records.

Records live at paths of the form ``collection/.../key``; everything before
the last segment names the collection. All operations are coroutines and
every caller re-reads current state instead of caching it.
"""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Callable
from typing import Any

from scripthub.exceptions import InvalidPathError
from scripthub.models.domain import RecordChange

Record = dict[str, Any]
Predicate = Callable[[Record | None], bool]
Mutation = Callable[[Record | None], Record | None]


def split_path(path: str) -> tuple[str, str]:
    """Split ``users/u1`` into ``("users", "u1")``."""
    parts = [p for p in path.strip("/").split("/") if p]
    if len(parts) < 2:
        raise InvalidPathError(path)
    return "/".join(parts[:-1]), parts[-1]


def join_path(collection: str, key: str) -> str:
    return f"{collection.strip('/')}/{key}"


def merge_fields(current: Record | None, fields: Record) -> Record:
    """Shallow merge where a None value removes the field."""
    merged = dict(current or {})
    for name, value in fields.items():
        if value is None:
            merged.pop(name, None)
        else:
            merged[name] = value
    return merged


class DocumentStore(ABC):
    """Abstract document store shared by every ScriptHub component."""

    # Seconds between polls in watch() when no interval is given
    watch_interval: float = 2.0

    @abstractmethod
    async def get(self, path: str) -> Record | None:
        """Return the record at path, or None."""

    @abstractmethod
    async def set(self, path: str, value: Record) -> None:
        """Replace the record at path."""

    @abstractmethod
    async def update(self, path: str, fields: Record) -> None:
        """Merge fields into the record at path, creating it if absent."""

    @abstractmethod
    async def delete(self, path: str) -> None:
        """Remove the record at path; missing records are ignored."""

    @abstractmethod
    async def push(self, collection: str, value: Record) -> str:
        """Insert a record under a freshly generated key and return the key."""

    @abstractmethod
    async def find(self, collection: str, field: str, value: Any) -> list[tuple[str, Record]]:
        """Return (key, record) pairs in collection whose field equals value."""

    @abstractmethod
    async def list_records(self, collection: str) -> list[tuple[str, Record]]:
        """Return every (key, record) pair in collection."""

    @abstractmethod
    async def conditional_update(
        self, path: str, predicate: Predicate, mutation: Mutation
    ) -> bool:
        """
        Atomically apply mutation to the record at path if predicate holds.

        predicate and mutation receive the current record (None when absent)
        and may be invoked more than once if the backend retries after a
        conflicting concurrent write, so they must not have side effects
        beyond recording what they observed. A mutation returning None
        deletes the record.

        Returns:
            True if the mutation was committed, False if predicate rejected
            the current record.
        """

    @abstractmethod
    async def read_versioned(self, path: str) -> tuple[Record | None, int]:
        """Return the record and its version (0 when absent)."""

    async def watch(
        self, path: str, interval: float | None = None
    ) -> AsyncIterator[RecordChange]:
        """
        Poll path and yield a RecordChange whenever it differs from the last one seen.

        The first iteration always yields the current snapshot. The sequence
        is lazy and unbounded; call watch() again to restart it.
        """
        delay = self.watch_interval if interval is None else interval
        last: tuple[Record | None, int] | None = None
        while True:
            value, version = await self.read_versioned(path)
            if last is None or (value, version) != last:
                last = (value, version)
                yield RecordChange(path=path, value=value, version=version)
            await asyncio.sleep(delay)

    async def close(self) -> None:
        """Release backend resources."""
        return None
