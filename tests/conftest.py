"""
Pytest Configuration and Centralized Fixtures.

Provides reusable fixtures for testing:
- In-memory document store seeded with users and codes
- A fixed millisecond clock
- Services wired to the store and clock
- API test client with identity and store overrides
"""

import os
import random
from collections.abc import AsyncGenerator, Callable, Generator
from typing import Any

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

# Set required environment variables BEFORE importing app modules
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("FIREBASE_PROJECT_ID", "scripthub-test")
os.environ.setdefault("LOG_FORMAT", "console")

from scripthub.db.session import Database
from scripthub.models.domain import Role
from scripthub.services.content import ContentGate
from scripthub.services.entitlement import EntitlementManager
from scripthub.services.gacha import DailyGachaService
from scripthub.services.identity import CallerIdentity
from scripthub.services.redeem_codes import DAY_MS, HOUR_MS, RedeemCodeService
from scripthub.services.redemption import RedemptionProcessor
from scripthub.store.memory import MemoryDocumentStore

# 2024-01-01T00:00:00Z
NOW_MS = 1_704_067_200_000


# ============================================================================
# Clock Fixtures
# ============================================================================


class FixedClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, now: int = NOW_MS) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


# ============================================================================
# Store Fixtures
# ============================================================================


@pytest.fixture
def store() -> MemoryDocumentStore:
    """Empty in-memory document store."""
    return MemoryDocumentStore()


@pytest.fixture
async def database(tmp_path) -> AsyncGenerator[Database, None]:
    """Schema-ready SQLite database in a temporary file."""
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'store.db'}")
    await db.create_all()
    yield db
    await db.dispose()


@pytest.fixture
def seed(store: MemoryDocumentStore) -> Callable[..., Any]:
    """Write raw records into the store: await seed({"users/u1": {...}})."""

    async def _seed(records: dict[str, dict[str, Any]]) -> None:
        for path, value in records.items():
            await store.set(path, value)

    return _seed


def _user_record(role: Role | str, premium_expiration: int | None = None) -> dict[str, Any]:
    """Raw users/{uid} record."""
    record: dict[str, Any] = {"role": role.value if isinstance(role, Role) else role}
    if premium_expiration is not None:
        record["premiumExpiration"] = premium_expiration
    return record


def _code_record(
    code: str,
    duration: int = 30 * DAY_MS,
    usage_count: int | None = 0,
    usage_limit: int | None = 1,
) -> dict[str, Any]:
    """Raw redeemCodes/{id} record; None counters mimic legacy records."""
    record: dict[str, Any] = {
        "code": code,
        "duration": duration,
        "createdBy": "admin-1",
        "createdAt": NOW_MS - DAY_MS,
    }
    if usage_count is not None:
        record["usageCount"] = usage_count
    if usage_limit is not None:
        record["usageLimit"] = usage_limit
    return record


@pytest.fixture
def user_record() -> Callable[..., dict[str, Any]]:
    return _user_record


@pytest.fixture
def code_record() -> Callable[..., dict[str, Any]]:
    return _code_record


# ============================================================================
# Service Fixtures
# ============================================================================


@pytest.fixture
def entitlements(store: MemoryDocumentStore, clock: FixedClock) -> EntitlementManager:
    return EntitlementManager(store, clock)


@pytest.fixture
def processor(store: MemoryDocumentStore, clock: FixedClock) -> RedemptionProcessor:
    return RedemptionProcessor(store, clock)


@pytest.fixture
def code_service(store: MemoryDocumentStore, clock: FixedClock) -> RedeemCodeService:
    return RedeemCodeService(store, clock)


@pytest.fixture
def content_gate(store: MemoryDocumentStore, entitlements: EntitlementManager) -> ContentGate:
    return ContentGate(store, entitlements)


@pytest.fixture
def gacha_factory(
    store: MemoryDocumentStore,
    entitlements: EntitlementManager,
    code_service: RedeemCodeService,
    clock: FixedClock,
) -> Callable[..., DailyGachaService]:
    """Build a gacha service with a chosen win chance."""

    def _create(win_chance: float = 0.25, seed: int = 0) -> DailyGachaService:
        return DailyGachaService(
            store,
            entitlements,
            code_service,
            clock,
            rng=random.Random(seed),
            win_chance=win_chance,
            prize_duration_ms=HOUR_MS,
            cooldown_ms=DAY_MS,
        )

    return _create


# ============================================================================
# FastAPI Test Client Fixtures
# ============================================================================


@pytest.fixture
def caller() -> CallerIdentity:
    """Identity the overridden auth dependency returns."""
    return CallerIdentity(uid="user-1", email="user@example.com")


@pytest.fixture
def app(
    store: MemoryDocumentStore,
    clock: FixedClock,
    caller: CallerIdentity,
    gacha_factory: Callable[..., DailyGachaService],
) -> Generator[FastAPI, None, None]:
    """FastAPI app with the memory store, fixed clock and a signed-in caller."""
    from scripthub.api import dependencies
    from scripthub.main import app as main_app

    main_app.state.store = store
    main_app.dependency_overrides[dependencies.get_current_user] = lambda: caller
    main_app.dependency_overrides[dependencies.get_entitlement_manager] = (
        lambda: EntitlementManager(store, clock)
    )
    main_app.dependency_overrides[dependencies.get_redemption_processor] = (
        lambda: RedemptionProcessor(store, clock)
    )
    main_app.dependency_overrides[dependencies.get_redeem_code_service] = (
        lambda: RedeemCodeService(store, clock)
    )
    main_app.dependency_overrides[dependencies.get_gacha_service] = lambda: gacha_factory(0.0)

    yield main_app

    main_app.dependency_overrides.clear()


@pytest.fixture
async def async_client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Async test client for async tests."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client
