"""
Redeem Code Service - Administrative creation, listing and deletion of codes.
"""

import secrets
import string

from structlog import get_logger

from scripthub.config import settings
from scripthub.exceptions import DocumentNotFoundError, RedeemCodeValidationError
from scripthub.models.domain import RedeemCode
from scripthub.observability.metrics import metrics
from scripthub.services.entitlement import Clock, now_ms
from scripthub.services.redemption import REDEEM_CODES, code_path
from scripthub.store.base import DocumentStore

logger = get_logger(__name__)

HOUR_MS = 60 * 60 * 1000
DAY_MS = 24 * HOUR_MS
YEAR_MS = 365 * DAY_MS

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 8


def duration_ms(years: int = 0, days: int = 0, hours: int = 0) -> int:
    """Total grant length in milliseconds; a year is 365 days."""
    return years * YEAR_MS + days * DAY_MS + hours * HOUR_MS


def generate_code(length: int = CODE_LENGTH) -> str:
    """Random upper-case alphanumeric code."""
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


class RedeemCodeService:
    """Manages the redeemCodes collection."""

    def __init__(self, store: DocumentStore, clock: Clock = now_ms) -> None:
        self.store = store
        self.clock = clock

    async def create_code(
        self,
        code: str,
        *,
        created_by: str,
        years: int = 0,
        days: int = 0,
        hours: int = 0,
        usage_limit: int | None = None,
    ) -> RedeemCode:
        """
        Create a redeem code worth years/days/hours of premium access.

        Raises:
            RedeemCodeValidationError: blank code, non-positive duration,
                usage limit below one, or a code string that is already active
        """
        if not code or not code.strip():
            raise RedeemCodeValidationError("code must not be empty")
        if min(years, days, hours) < 0:
            raise RedeemCodeValidationError("duration components must not be negative")

        total = duration_ms(years, days, hours)
        if total <= 0:
            raise RedeemCodeValidationError("duration must be positive")

        limit = settings.default_code_usage_limit if usage_limit is None else usage_limit
        if limit < 1:
            raise RedeemCodeValidationError("usage limit must be at least 1")

        for code_id, record in await self.store.find(REDEEM_CODES, "code", code):
            if not RedeemCode.from_record(code_id, record).is_exhausted:
                raise RedeemCodeValidationError(f"code {code!r} is already active")

        return await self._insert(code, total, limit, created_by, source="admin")

    async def issue_reward_code(self, duration: int, created_by: str = "system") -> RedeemCode:
        """Create a single-use code with a generated string, as handed out by rewards."""
        while True:
            code = generate_code()
            if not await self.store.find(REDEEM_CODES, "code", code):
                break
        return await self._insert(code, duration, 1, created_by, source="reward")

    async def list_codes(self) -> list[RedeemCode]:
        return [
            RedeemCode.from_record(code_id, record)
            for code_id, record in await self.store.list_records(REDEEM_CODES)
        ]

    async def get_code(self, code_id: str) -> RedeemCode:
        record = await self.store.get(code_path(code_id))
        if record is None:
            raise DocumentNotFoundError(code_path(code_id))
        return RedeemCode.from_record(code_id, record)

    async def delete_code(self, code_id: str, deleted_by: str) -> None:
        """Remove a code outright; redemption itself never deletes codes."""
        await self.get_code(code_id)
        await self.store.delete(code_path(code_id))
        logger.info("redeem_code_deleted", code_id=code_id, deleted_by=deleted_by)

    async def _insert(
        self, code: str, duration: int, usage_limit: int, created_by: str, source: str
    ) -> RedeemCode:
        record = {
            "code": code,
            "duration": duration,
            "usageCount": 0,
            "usageLimit": usage_limit,
            "createdBy": created_by,
            "createdAt": self.clock(),
        }
        code_id = await self.store.push(REDEEM_CODES, record)
        metrics.redeem_codes_created_total.labels(source=source).inc()
        logger.info(
            "redeem_code_created",
            code_id=code_id,
            duration_ms=duration,
            usage_limit=usage_limit,
            created_by=created_by,
        )
        return RedeemCode.from_record(code_id, record)
