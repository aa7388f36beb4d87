"""
Tests for the document store backends.

The contract tests run against both the in-memory store and the SQL store
on a file-backed SQLite database. Concurrency tests use the in-memory store
because SQLite serialises writers at the file level.
"""

import asyncio
from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock, patch

import pytest

from scripthub.db.session import Database
from scripthub.exceptions import ConcurrencyError, InvalidPathError, StoreUnavailableError
from scripthub.store.base import DocumentStore, join_path, merge_fields, split_path
from scripthub.store.memory import MemoryDocumentStore
from scripthub.store.sql import SQLDocumentStore, _VersionConflict


@pytest.fixture
def sql_store(database: Database) -> SQLDocumentStore:
    return SQLDocumentStore(database.session_factory, max_attempts=3)


@pytest.fixture(params=["memory", "sql"])
async def any_store(request, tmp_path) -> AsyncGenerator[DocumentStore, None]:
    if request.param == "memory":
        yield MemoryDocumentStore()
        return

    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'contract.db'}")
    await db.create_all()
    yield SQLDocumentStore(db.session_factory)
    await db.dispose()


# ============================================================================
# Path helpers
# ============================================================================


class TestPaths:
    def test_split_simple(self):
        assert split_path("users/u1") == ("users", "u1")

    def test_split_nested(self):
        assert split_path("users/u1/gachaPrizes/p1") == ("users/u1/gachaPrizes", "p1")

    def test_split_ignores_stray_slashes(self):
        assert split_path("/users//u1/") == ("users", "u1")

    @pytest.mark.parametrize("path", ["", "users", "/users/"])
    def test_split_rejects_short_paths(self, path):
        with pytest.raises(InvalidPathError):
            split_path(path)

    def test_join(self):
        assert join_path("/redeemCodes/", "c1") == "redeemCodes/c1"

    def test_merge_fields_none_removes(self):
        assert merge_fields({"a": 1, "b": 2}, {"b": None, "c": 3}) == {"a": 1, "c": 3}

    def test_merge_fields_on_missing_record(self):
        assert merge_fields(None, {"a": 1, "b": None}) == {"a": 1}


# ============================================================================
# Contract
# ============================================================================


class TestStoreContract:
    """Behaviour every backend must share."""

    async def test_get_missing(self, any_store):
        assert await any_store.get("users/nobody") is None

    async def test_set_and_get(self, any_store):
        await any_store.set("users/u1", {"role": "premium", "premiumExpiration": 5})

        assert await any_store.get("users/u1") == {"role": "premium", "premiumExpiration": 5}

    async def test_set_replaces(self, any_store):
        await any_store.set("users/u1", {"role": "premium", "premiumExpiration": 5})
        await any_store.set("users/u1", {"role": "basic"})

        assert await any_store.get("users/u1") == {"role": "basic"}

    async def test_update_merges_and_removes(self, any_store):
        await any_store.set("users/u1", {"role": "premium", "premiumExpiration": 5, "name": "x"})

        await any_store.update("users/u1", {"role": "basic", "premiumExpiration": None})

        assert await any_store.get("users/u1") == {"role": "basic", "name": "x"}

    async def test_update_creates(self, any_store):
        await any_store.update("users/u2", {"role": "premium"})

        assert await any_store.get("users/u2") == {"role": "premium"}

    async def test_delete(self, any_store):
        await any_store.set("users/u1", {"role": "basic"})

        await any_store.delete("users/u1")
        await any_store.delete("users/u1")

        assert await any_store.get("users/u1") is None

    async def test_returned_records_are_copies(self, any_store):
        await any_store.set("users/u1", {"role": "basic"})

        record = await any_store.get("users/u1")
        record["role"] = "admin"

        assert (await any_store.get("users/u1"))["role"] == "basic"

    async def test_push_and_list(self, any_store):
        first = await any_store.push("redeemCodes", {"code": "A"})
        second = await any_store.push("redeemCodes", {"code": "B"})

        records = dict(await any_store.list_records("redeemCodes"))

        assert first != second
        assert records == {first: {"code": "A"}, second: {"code": "B"}}

    async def test_nested_collection(self, any_store):
        key = await any_store.push("users/u1/gachaPrizes", {"code": "WIN"})

        assert await any_store.get(f"users/u1/gachaPrizes/{key}") == {"code": "WIN"}
        assert await any_store.list_records("users") == []

    async def test_find_by_string(self, any_store):
        await any_store.set("redeemCodes/a", {"code": "ABC123", "duration": 1})
        await any_store.set("redeemCodes/b", {"code": "abc123", "duration": 2})
        await any_store.set("redeemCodes/c", {"duration": 3})

        matches = await any_store.find("redeemCodes", "code", "ABC123")

        assert matches == [("a", {"code": "ABC123", "duration": 1})]

    async def test_find_by_integer(self, any_store):
        await any_store.set("redeemCodes/a", {"code": "A", "usageLimit": 3})
        await any_store.set("redeemCodes/b", {"code": "B", "usageLimit": 1})

        matches = await any_store.find("redeemCodes", "usageLimit", 3)

        assert [key for key, _ in matches] == ["a"]

    async def test_find_scoped_to_collection(self, any_store):
        await any_store.set("redeemCodes/a", {"code": "X"})
        await any_store.set("sourceCodes/a", {"code": "X"})

        assert [k for k, _ in await any_store.find("sourceCodes", "code", "X")] == ["a"]

    async def test_conditional_update_applies(self, any_store):
        await any_store.set("redeemCodes/c1", {"usageCount": 0, "usageLimit": 1})

        applied = await any_store.conditional_update(
            "redeemCodes/c1",
            lambda current: current is not None and current["usageCount"] < current["usageLimit"],
            lambda current: {**current, "usageCount": current["usageCount"] + 1},
        )

        assert applied is True
        assert (await any_store.get("redeemCodes/c1"))["usageCount"] == 1

    async def test_conditional_update_rejects(self, any_store):
        await any_store.set("redeemCodes/c1", {"usageCount": 1, "usageLimit": 1})

        applied = await any_store.conditional_update(
            "redeemCodes/c1",
            lambda current: current["usageCount"] < current["usageLimit"],
            lambda current: {**current, "usageCount": current["usageCount"] + 1},
        )

        assert applied is False
        assert (await any_store.get("redeemCodes/c1"))["usageCount"] == 1

    async def test_conditional_update_on_missing_record(self, any_store):
        seen = []

        applied = await any_store.conditional_update(
            "users/u9",
            lambda current: seen.append(current) or True,
            lambda current: {"lastGachaTime": 1},
        )

        assert applied is True
        assert seen == [None]
        assert await any_store.get("users/u9") == {"lastGachaTime": 1}

    async def test_conditional_update_mutation_none_deletes(self, any_store):
        await any_store.set("users/u1", {"role": "basic"})

        await any_store.conditional_update("users/u1", lambda current: True, lambda current: None)

        assert await any_store.get("users/u1") is None

    async def test_read_versioned_bumps_on_write(self, any_store):
        assert await any_store.read_versioned("users/u1") == (None, 0)

        await any_store.set("users/u1", {"role": "basic"})
        _, first = await any_store.read_versioned("users/u1")
        await any_store.update("users/u1", {"role": "premium"})
        value, second = await any_store.read_versioned("users/u1")

        assert value == {"role": "premium"}
        assert second > first > 0

    async def test_invalid_path(self, any_store):
        with pytest.raises(InvalidPathError):
            await any_store.get("users")


# ============================================================================
# Watch
# ============================================================================


class TestWatch:
    async def test_yields_snapshot_then_changes(self, any_store):
        await any_store.set("users/u1", {"role": "basic"})
        changes = any_store.watch("users/u1", interval=0.01)

        first = await anext(changes)
        await any_store.update("users/u1", {"role": "premium"})
        second = await anext(changes)
        await any_store.delete("users/u1")
        third = await anext(changes)
        await changes.aclose()

        assert first.value == {"role": "basic"}
        assert second.value == {"role": "premium"}
        assert second.version > first.version
        assert third.value is None

    async def test_unchanged_record_yields_nothing_new(self):
        store = MemoryDocumentStore({"users/u1": {"role": "basic"}})
        changes = store.watch("users/u1", interval=0.01)

        await anext(changes)
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(anext(changes), timeout=0.05)
        await changes.aclose()

    async def test_store_interval_is_the_default(self, database):
        store = SQLDocumentStore(database.session_factory, watch_interval=7.5)
        changes = store.watch("users/u1")

        await anext(changes)
        with patch(
            "scripthub.store.base.asyncio.sleep", new=AsyncMock(side_effect=RuntimeError("stop"))
        ) as sleep:
            with pytest.raises(RuntimeError, match="stop"):
                await anext(changes)

        sleep.assert_awaited_once_with(7.5)

    async def test_explicit_interval_wins(self):
        store = MemoryDocumentStore(watch_interval=7.5)
        changes = store.watch("users/u1", interval=0.25)

        await anext(changes)
        with patch(
            "scripthub.store.base.asyncio.sleep", new=AsyncMock(side_effect=RuntimeError("stop"))
        ) as sleep:
            with pytest.raises(RuntimeError):
                await anext(changes)

        sleep.assert_awaited_once_with(0.25)


# ============================================================================
# Memory backend
# ============================================================================


class TestMemoryDocumentStore:
    async def test_initial_records(self):
        store = MemoryDocumentStore({"users/u1": {"role": "admin"}})

        assert await store.get("users/u1") == {"role": "admin"}

    async def test_racing_conditional_updates_are_serialised(self):
        store = MemoryDocumentStore({"counters/c": {"n": 0}})

        async def bump_below_three() -> bool:
            return await store.conditional_update(
                "counters/c",
                lambda current: current["n"] < 3,
                lambda current: {"n": current["n"] + 1},
            )

        results = await asyncio.gather(*[bump_below_three() for _ in range(10)])

        assert sum(results) == 3
        assert await store.get("counters/c") == {"n": 3}


# ============================================================================
# SQL backend
# ============================================================================


class TestSQLDocumentStore:
    async def test_version_conflict_is_retried(self, sql_store):
        await sql_store.set("users/u1", {"role": "basic"})
        original_apply = sql_store._apply
        calls = {"n": 0}

        async def flaky_apply(*args, **kwargs):
            calls["n"] += 1
            if calls["n"] == 1:
                raise _VersionConflict("users/u1")
            return await original_apply(*args, **kwargs)

        with patch.object(sql_store, "_apply", flaky_apply):
            await sql_store.update("users/u1", {"role": "premium"})

        assert calls["n"] == 2
        assert await sql_store.get("users/u1") == {"role": "premium"}

    async def test_persistent_conflict_raises(self, sql_store):
        async def always_conflict(*args, **kwargs):
            raise _VersionConflict("users/u1")

        with patch.object(sql_store, "_apply", always_conflict):
            with pytest.raises(ConcurrencyError) as exc_info:
                await sql_store.update("users/u1", {"role": "premium"})

        assert exc_info.value.attempts == 3
        assert exc_info.value.resource == "users/u1"

    async def test_predicate_sees_fresh_record_on_retry(self, sql_store):
        """A retried conditional update re-evaluates the predicate on re-read data."""
        await sql_store.set("redeemCodes/c1", {"usageCount": 0, "usageLimit": 1})
        original_apply = sql_store._apply
        calls = {"n": 0}

        async def conflict_after_competitor(*args, **kwargs):
            calls["n"] += 1
            if calls["n"] == 1:
                # A competing writer takes the last use first
                await sql_store.set("redeemCodes/c1", {"usageCount": 1, "usageLimit": 1})
                raise _VersionConflict("redeemCodes/c1")
            return await original_apply(*args, **kwargs)

        with patch.object(sql_store, "_apply", conflict_after_competitor):
            applied = await sql_store.conditional_update(
                "redeemCodes/c1",
                lambda current: current["usageCount"] < current["usageLimit"],
                lambda current: {**current, "usageCount": current["usageCount"] + 1},
            )

        assert applied is False
        assert (await sql_store.get("redeemCodes/c1"))["usageCount"] == 1

    async def test_driver_failure_is_store_unavailable(self, tmp_path):
        database = Database(f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'nope.db'}")
        store = SQLDocumentStore(database.session_factory)

        try:
            with pytest.raises(StoreUnavailableError) as exc_info:
                await store.get("users/u1")
            assert exc_info.value.operation == "get"

            with pytest.raises(StoreUnavailableError):
                await store.update("users/u1", {"role": "basic"})
        finally:
            await database.dispose()

    async def test_missing_table_is_store_unavailable(self, tmp_path):
        database = Database(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}")
        store = SQLDocumentStore(database.session_factory)

        try:
            with pytest.raises(StoreUnavailableError):
                await store.find("redeemCodes", "code", "ABC123")
        finally:
            await database.dispose()
