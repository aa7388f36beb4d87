"""
Entitlement Manager - Live resolution of a user's access tier.

A premium grant with a past expiration is demoted to basic on every read
that observes it, and the demotion is written back. Gating decisions must
call in here each time rather than trusting a previously resolved role.
"""

import time
from collections.abc import Callable

from structlog import get_logger

from scripthub.exceptions import AuthorizationError, ConcurrencyError, StoreUnavailableError
from scripthub.models.domain import ResolvedRole, Role, SourceCodeAsset, UserEntitlement
from scripthub.observability.metrics import metrics
from scripthub.store.base import DocumentStore, join_path

logger = get_logger(__name__)

Clock = Callable[[], int]


def now_ms() -> int:
    """Current time in epoch milliseconds."""
    return int(time.time() * 1000)


USERS = "users"


def user_path(user_id: str) -> str:
    return join_path(USERS, user_id)


class EntitlementManager:
    """Resolves, and self-heals, users' stored roles."""

    def __init__(self, store: DocumentStore, clock: Clock = now_ms) -> None:
        """Initialize with the shared document store and a millisecond clock."""
        self.store = store
        self.clock = clock

    async def resolve_role(
        self, entitlement: UserEntitlement, now: int | None = None
    ) -> ResolvedRole:
        """
        Decide whether the stored role is currently valid.

        Non-premium roles and permanent premium (no expiration) pass through
        unchanged. An expired premium grant resolves to basic and the
        correction {role: basic, premiumExpiration: null} is persisted; a
        failed correction is logged and retried implicitly on the next check.
        """
        if entitlement.role != Role.PREMIUM or entitlement.premium_expiration is None:
            resolved = ResolvedRole(
                user_id=entitlement.user_id,
                role=entitlement.role,
                premium_expiration=None,
                remaining_ms=None,
            )
            metrics.record_entitlement_check(resolved.role.value)
            return resolved

        current = self.clock() if now is None else now
        expiration = entitlement.premium_expiration

        if current > expiration:
            persisted = await self._demote(entitlement.user_id, expiration, current)
            metrics.record_entitlement_check(Role.BASIC.value)
            return ResolvedRole(
                user_id=entitlement.user_id,
                role=Role.BASIC,
                premium_expiration=None,
                remaining_ms=None,
                corrected=persisted,
            )

        metrics.record_entitlement_check(Role.PREMIUM.value)
        return ResolvedRole(
            user_id=entitlement.user_id,
            role=Role.PREMIUM,
            premium_expiration=expiration,
            remaining_ms=expiration - current,
        )

    async def resolve_user(self, user_id: str, now: int | None = None) -> ResolvedRole:
        """Read users/{user_id} and resolve it; a missing record is a basic user."""
        record = await self.store.get(user_path(user_id))
        return await self.resolve_role(UserEntitlement.from_record(user_id, record), now)

    async def can_access(self, user_id: str, asset: SourceCodeAsset) -> bool:
        """Free assets are open to every signed-in user; premium ones need a live premium grant."""
        if not asset.is_premium:
            return True
        resolved = await self.resolve_user(user_id)
        return resolved.is_premium

    async def require_role(self, user_id: str, role: Role) -> ResolvedRole:
        """
        Resolve the user and insist on an exact role.

        Raises:
            AuthorizationError: resolved role differs from role
        """
        resolved = await self.resolve_user(user_id)
        if resolved.role != role:
            logger.warning(
                "entitlement_role_denied",
                user_id=user_id,
                required_role=role.value,
                resolved_role=resolved.role.value,
            )
            raise AuthorizationError(role.value)
        return resolved

    async def _demote(self, user_id: str, expiration: int, now: int) -> bool:
        """Persist the basic role for a lapsed grant. Returns whether the write landed."""
        try:
            await self.store.update(
                user_path(user_id),
                {"role": Role.BASIC.value, "premiumExpiration": None},
            )
        except (StoreUnavailableError, ConcurrencyError) as e:
            metrics.record_entitlement_correction(persisted=False)
            logger.warning(
                "entitlement_correction_failed",
                user_id=user_id,
                premium_expiration=expiration,
                now=now,
                error=str(e),
            )
            return False

        metrics.record_entitlement_correction(persisted=True)
        logger.info(
            "entitlement_expired_corrected",
            user_id=user_id,
            premium_expiration=expiration,
            expired_for_ms=now - expiration,
        )
        return True
