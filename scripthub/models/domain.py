"""
Domain Models - Internal business logic models using dataclasses.

NO DICTIONARIES - Raw store records are parsed into strongly typed immutable
dataclasses at the edge; services never pass raw records around.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

DAY_MS = 24 * 60 * 60 * 1000


class Role(str, Enum):
    """User access tier."""

    BASIC = "basic"
    PREMIUM = "premium"
    ADMIN = "admin"

    @classmethod
    def parse(cls, value: Any) -> "Role":
        """Parse a stored role; anything unrecognised is treated as basic."""
        try:
            return cls(value)
        except ValueError:
            return cls.BASIC


def as_millis(value: Any) -> int | None:
    """Coerce a stored timestamp to epoch milliseconds, or None when malformed."""
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    return int(value)


def _as_count(value: Any, default: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return default
    return int(value)


@dataclass(frozen=True)
class UserEntitlement:
    """Access tier and optional expiry stored on users/{user_id}."""

    user_id: str
    role: Role
    premium_expiration: int | None = None

    @classmethod
    def from_record(cls, user_id: str, record: dict[str, Any] | None) -> "UserEntitlement":
        """Build from a raw store record; a missing record is a basic user."""
        if not record:
            return cls(user_id=user_id, role=Role.BASIC)
        return cls(
            user_id=user_id,
            role=Role.parse(record.get("role")),
            premium_expiration=as_millis(record.get("premiumExpiration")),
        )


@dataclass(frozen=True)
class ResolvedRole:
    """Outcome of a live entitlement check."""

    user_id: str
    role: Role
    premium_expiration: int | None
    remaining_ms: int | None
    corrected: bool = False

    @property
    def is_premium(self) -> bool:
        """Premium content is open to premium users and admins."""
        return self.role in (Role.PREMIUM, Role.ADMIN)

    @property
    def is_permanent(self) -> bool:
        return self.role == Role.PREMIUM and self.premium_expiration is None


@dataclass(frozen=True)
class RedeemCode:
    """A redeem code record from redeemCodes/{code_id}."""

    code_id: str
    code: str
    duration: int
    usage_count: int
    usage_limit: int
    created_by: str | None = None
    created_at: int | None = None
    last_used_by: str | None = None
    last_used_at: int | None = None

    @classmethod
    def from_record(cls, code_id: str, record: dict[str, Any]) -> "RedeemCode":
        """Build from a raw store record; legacy records lack the usage counters."""
        return cls(
            code_id=code_id,
            code=str(record.get("code", "")),
            duration=_as_count(record.get("duration"), 0),
            usage_count=_as_count(record.get("usageCount"), 0),
            usage_limit=_as_count(record.get("usageLimit"), 1),
            created_by=record.get("createdBy"),
            created_at=as_millis(record.get("createdAt")),
            last_used_by=record.get("lastUsedBy"),
            last_used_at=as_millis(record.get("lastUsedAt")),
        )

    @property
    def is_exhausted(self) -> bool:
        return self.usage_count >= self.usage_limit

    @property
    def duration_days(self) -> int:
        """Duration rounded up to whole days, as shown to users."""
        return -(-self.duration // DAY_MS)


@dataclass(frozen=True)
class RedemptionResult:
    """Successful redemption of a code by a user."""

    user_id: str
    code_id: str
    duration: int
    premium_expiration: int
    usage_count: int

    @property
    def duration_days(self) -> int:
        return -(-self.duration // DAY_MS)


@dataclass(frozen=True)
class SourceCodeAsset:
    """Downloadable script asset, only the fields the premium gate reads."""

    asset_id: str
    title: str
    slug: str | None
    script_url: str | None
    is_premium: bool

    @classmethod
    def from_record(cls, asset_id: str, record: dict[str, Any]) -> "SourceCodeAsset":
        return cls(
            asset_id=asset_id,
            title=str(record.get("title", "")),
            slug=record.get("slug"),
            script_url=record.get("scriptUrl") or None,
            is_premium=bool(record.get("isPremium", False)),
        )


@dataclass(frozen=True)
class GachaPrize:
    """A prize won from the daily gacha."""

    prize_id: str
    type: str
    code: str
    timestamp: int | None

    @classmethod
    def from_record(cls, prize_id: str, record: dict[str, Any]) -> "GachaPrize":
        return cls(
            prize_id=prize_id,
            type=str(record.get("type", "unknown")),
            code=str(record.get("code", "")),
            timestamp=as_millis(record.get("timestamp")),
        )


@dataclass(frozen=True)
class GachaOutcome:
    """Result of one daily gacha play."""

    won: bool
    message: str
    prize: GachaPrize | None = None


@dataclass(frozen=True)
class RecordChange:
    """A change to a watched record; value is None when the record was deleted."""

    path: str
    value: dict[str, Any] | None
    version: int


def format_remaining(remaining_ms: int) -> str:
    """Render a remaining duration as '{d}d {h}h {m}m {s}s'."""
    total_seconds = max(remaining_ms, 0) // 1000
    days, rest = divmod(total_seconds, 86400)
    hours, rest = divmod(rest, 3600)
    minutes, seconds = divmod(rest, 60)
    return f"{days}d {hours}h {minutes}m {seconds}s"
