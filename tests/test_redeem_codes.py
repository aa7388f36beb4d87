"""
Tests for RedeemCodeService.
"""

import pytest

from scripthub.exceptions import DocumentNotFoundError, RedeemCodeValidationError
from scripthub.services.redeem_codes import (
    CODE_ALPHABET,
    CODE_LENGTH,
    DAY_MS,
    HOUR_MS,
    YEAR_MS,
    duration_ms,
    generate_code,
)


class TestDurationMs:
    """Tests for duration_ms helper."""

    def test_components_add_up(self):
        assert duration_ms(years=1, days=2, hours=3) == YEAR_MS + 2 * DAY_MS + 3 * HOUR_MS

    def test_year_is_365_days(self):
        assert duration_ms(years=1) == 365 * DAY_MS

    def test_zero(self):
        assert duration_ms() == 0


class TestGenerateCode:
    def test_shape(self):
        code = generate_code()

        assert len(code) == CODE_LENGTH
        assert all(c in CODE_ALPHABET for c in code)

    def test_codes_differ(self):
        assert len({generate_code() for _ in range(50)}) > 1


class TestCreateCode:
    """Tests for admin code creation."""

    async def test_creates_record(self, code_service, store, clock):
        code = await code_service.create_code("SUMMER24", created_by="admin-1", days=30)

        assert code.code == "SUMMER24"
        assert code.duration == 30 * DAY_MS
        assert code.usage_count == 0
        assert code.usage_limit == 1
        assert code.created_by == "admin-1"
        assert code.created_at == clock.now
        assert await store.get(f"redeemCodes/{code.code_id}") == {
            "code": "SUMMER24",
            "duration": 30 * DAY_MS,
            "usageCount": 0,
            "usageLimit": 1,
            "createdBy": "admin-1",
            "createdAt": clock.now,
        }

    async def test_custom_usage_limit(self, code_service):
        code = await code_service.create_code("TEAM", created_by="admin-1", hours=5, usage_limit=10)

        assert code.usage_limit == 10
        assert code.duration == 5 * HOUR_MS

    @pytest.mark.parametrize("code", ["", "   "])
    async def test_blank_code_rejected(self, code_service, code):
        with pytest.raises(RedeemCodeValidationError):
            await code_service.create_code(code, created_by="admin-1", days=1)

    async def test_zero_duration_rejected(self, code_service):
        with pytest.raises(RedeemCodeValidationError, match="duration"):
            await code_service.create_code("ZERO", created_by="admin-1")

    async def test_negative_component_rejected(self, code_service):
        with pytest.raises(RedeemCodeValidationError, match="negative"):
            await code_service.create_code("NEG", created_by="admin-1", years=1, days=-1)

    async def test_usage_limit_below_one_rejected(self, code_service):
        with pytest.raises(RedeemCodeValidationError, match="usage limit"):
            await code_service.create_code("NONE", created_by="admin-1", days=1, usage_limit=0)

    async def test_active_duplicate_rejected(self, code_service):
        await code_service.create_code("DUP", created_by="admin-1", days=1)

        with pytest.raises(RedeemCodeValidationError, match="already active"):
            await code_service.create_code("DUP", created_by="admin-1", days=2)

    async def test_exhausted_duplicate_allowed(self, code_service, seed, code_record):
        await seed({"redeemCodes/old": code_record("AGAIN", usage_count=1, usage_limit=1)})

        code = await code_service.create_code("AGAIN", created_by="admin-1", days=1)

        assert code.code_id != "old"


class TestRewardCodes:
    async def test_issue_reward_code(self, code_service, store):
        code = await code_service.issue_reward_code(HOUR_MS)

        assert len(code.code) == CODE_LENGTH
        assert code.duration == HOUR_MS
        assert code.usage_limit == 1
        assert code.created_by == "system"
        assert (await store.get(f"redeemCodes/{code.code_id}"))["createdBy"] == "system"


class TestListGetDelete:
    async def test_list_codes(self, code_service):
        await code_service.create_code("ONE", created_by="admin-1", days=1)
        await code_service.create_code("TWO", created_by="admin-1", days=2)

        codes = await code_service.list_codes()

        assert sorted(c.code for c in codes) == ["ONE", "TWO"]

    async def test_get_code(self, code_service):
        created = await code_service.create_code("GET", created_by="admin-1", days=1)

        fetched = await code_service.get_code(created.code_id)

        assert fetched == created

    async def test_get_missing_code(self, code_service):
        with pytest.raises(DocumentNotFoundError):
            await code_service.get_code("missing")

    async def test_delete_code(self, code_service, store):
        created = await code_service.create_code("BYE", created_by="admin-1", days=1)

        await code_service.delete_code(created.code_id, deleted_by="admin-1")

        assert await store.get(f"redeemCodes/{created.code_id}") is None

    async def test_delete_missing_code(self, code_service):
        with pytest.raises(DocumentNotFoundError):
            await code_service.delete_code("missing", deleted_by="admin-1")
