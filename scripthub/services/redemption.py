"""
Redemption Processor - Exchange a redeem code for a premium grant.

The code's usage counter is claimed with a single conditional update on
the code record, so no code can be redeemed more than usageLimit times
however many callers race for it. Only after the claim succeeds is the
user's entitlement written.
"""

import time

from structlog import get_logger

from scripthub.exceptions import (
    CodeExhaustedError,
    ConcurrencyError,
    EmptyInputError,
    InvalidCodeError,
    NotAuthenticatedError,
    ScriptHubError,
    StoreUnavailableError,
)
from scripthub.models.domain import RedeemCode, RedemptionResult, Role
from scripthub.observability.logging import log_context
from scripthub.observability.metrics import metrics
from scripthub.observability.tracing import set_attributes, traced
from scripthub.services.entitlement import Clock, now_ms, user_path
from scripthub.store.base import DocumentStore, Record, join_path, merge_fields

logger = get_logger(__name__)

REDEEM_CODES = "redeemCodes"


def code_path(code_id: str) -> str:
    return join_path(REDEEM_CODES, code_id)


class RedemptionProcessor:
    """Validates redeem codes and grants premium access exactly once per use."""

    def __init__(self, store: DocumentStore, clock: Clock = now_ms) -> None:
        self.store = store
        self.clock = clock

    async def redeem(
        self, user_id: str | None, code_string: str | None, now: int | None = None
    ) -> RedemptionResult:
        """
        Redeem code_string for user_id at time now (epoch ms, defaults to the clock).

        An existing premium grant is overwritten with now + duration, even when
        it would have lasted longer.

        Raises:
            NotAuthenticatedError: no calling identity
            EmptyInputError: blank code string
            InvalidCodeError: no such code (no writes are made)
            CodeExhaustedError: usage limit already reached
            StoreUnavailableError: the store failed; nothing is retried
        """
        start = time.perf_counter()
        try:
            with traced("redeem_code", user_id=user_id) as span:
                result = await self._redeem(
                    user_id, code_string, self.clock() if now is None else now
                )
                set_attributes(span, code_id=result.code_id, usage_count=result.usage_count)
        except ScriptHubError as e:
            self._rejected(user_id, code_string, e, time.perf_counter() - start)
            raise

        metrics.record_redemption("success", time.perf_counter() - start)
        logger.info(
            "redeem_code_success",
            user_id=result.user_id,
            code_id=result.code_id,
            duration_ms=result.duration,
            premium_expiration=result.premium_expiration,
            usage_count=result.usage_count,
        )
        return result

    def _rejected(
        self, user_id: str | None, code_string: str | None, e: ScriptHubError, elapsed: float
    ) -> None:
        metrics.record_redemption(type(e).__name__, elapsed)
        # The message of InvalidCodeError repeats the code unmasked
        error = None if isinstance(e, InvalidCodeError) else str(e)
        logger.info(
            "redeem_code_rejected",
            user_id=user_id,
            code=code_string,
            reason=type(e).__name__,
            error=error,
        )

    async def _redeem(
        self, user_id: str | None, code_string: str | None, now: int
    ) -> RedemptionResult:
        if not user_id:
            raise NotAuthenticatedError("You must be logged in to redeem a code")
        if code_string is None or not code_string.strip():
            raise EmptyInputError("code")

        code_id = await self._lookup(code_string)
        with log_context(user_id=user_id, code_id=code_id):
            claimed = await self._claim(code_id, code_string, user_id, now)

            expiration = now + claimed.duration
            try:
                await self.store.update(
                    user_path(user_id),
                    {"role": Role.PREMIUM.value, "premiumExpiration": expiration},
                )
            except (StoreUnavailableError, ConcurrencyError):
                await self._release(code_id, user_id)
                raise

        return RedemptionResult(
            user_id=user_id,
            code_id=code_id,
            duration=claimed.duration,
            premium_expiration=expiration,
            usage_count=claimed.usage_count,
        )

    async def _lookup(self, code_string: str) -> str:
        """Find the code's id by exact, case-sensitive match, preferring a code with uses left."""
        matches = await self.store.find(REDEEM_CODES, "code", code_string)
        if not matches:
            raise InvalidCodeError(code_string)

        for code_id, record in matches:
            if not RedeemCode.from_record(code_id, record).is_exhausted:
                return code_id
        return matches[0][0]

    async def _claim(self, code_id: str, code_string: str, user_id: str, now: int) -> RedeemCode:
        """Increment usageCount by one iff it is still below usageLimit."""
        observed: dict[str, RedeemCode | None] = {}

        def has_capacity(current: Record | None) -> bool:
            if current is None:
                observed["seen"] = None
                return False
            code = RedeemCode.from_record(code_id, current)
            observed["seen"] = code
            return not code.is_exhausted

        def take_one(current: Record | None) -> Record:
            code = RedeemCode.from_record(code_id, current or {})
            updated = merge_fields(
                current,
                {
                    "usageCount": code.usage_count + 1,
                    "usageLimit": code.usage_limit,
                    "lastUsedBy": user_id,
                    "lastUsedAt": now,
                },
            )
            observed["claimed"] = RedeemCode.from_record(code_id, updated)
            return updated

        if not await self.store.conditional_update(code_path(code_id), has_capacity, take_one):
            seen = observed.get("seen")
            if seen is None:
                # Deleted between lookup and claim
                raise InvalidCodeError(code_string)
            raise CodeExhaustedError(code_id, seen.usage_limit)

        claimed = observed["claimed"]
        assert claimed is not None
        return claimed

    async def _release(self, code_id: str, user_id: str) -> None:
        """Give a claimed use back after the entitlement write failed."""

        def was_claimed(current: Record | None) -> bool:
            return current is not None and RedeemCode.from_record(code_id, current).usage_count > 0

        def give_back(current: Record | None) -> Record:
            code = RedeemCode.from_record(code_id, current or {})
            return merge_fields(current, {"usageCount": code.usage_count - 1})

        try:
            released = await self.store.conditional_update(
                code_path(code_id), was_claimed, give_back
            )
        except (StoreUnavailableError, ConcurrencyError) as e:
            logger.error(
                "redeem_code_release_failed",
                code_id=code_id,
                user_id=user_id,
                error=str(e),
            )
            return

        logger.warning(
            "redeem_code_released",
            code_id=code_id,
            user_id=user_id,
            released=released,
        )
