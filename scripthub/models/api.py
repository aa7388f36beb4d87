"""
API Models - Pydantic models for request/response validation.

NO DICTIONARIES - All data structures are strongly typed.
"""

from typing import Literal

from pydantic import BaseModel, Field, field_validator

from scripthub.models.domain import GachaPrize, RedeemCode, ResolvedRole, Role, format_remaining

# ============================================================================
# Entitlement Models
# ============================================================================


class EntitlementResponse(BaseModel):
    """GET /v1/me/entitlement response."""

    user_id: str
    role: Role
    is_premium: bool
    is_permanent: bool
    premium_expiration: int | None = Field(
        None, description="Epoch milliseconds; null for permanent or non-premium roles"
    )
    remaining_ms: int | None = None
    remaining_display: str | None = Field(None, description="e.g. '2d 4h 10m 5s'")

    @classmethod
    def from_resolved(cls, resolved: ResolvedRole) -> "EntitlementResponse":
        return cls(
            user_id=resolved.user_id,
            role=resolved.role,
            is_premium=resolved.is_premium,
            is_permanent=resolved.is_permanent,
            premium_expiration=resolved.premium_expiration,
            remaining_ms=resolved.remaining_ms,
            remaining_display=(
                format_remaining(resolved.remaining_ms)
                if resolved.remaining_ms is not None
                else None
            ),
        )


# ============================================================================
# Redemption Models
# ============================================================================


class RedeemRequest(BaseModel):
    """POST /v1/redeem request body."""

    # Blank codes are rejected by the processor so they map to 400 rather than 422
    code: str = Field(..., max_length=255)


class RedeemResponse(BaseModel):
    """POST /v1/redeem response."""

    success: bool = True
    message: str
    code_id: str
    duration_ms: int
    duration_days: int
    premium_expiration: int
    usage_count: int


# ============================================================================
# Redeem Code Administration Models
# ============================================================================


class CreateRedeemCodeRequest(BaseModel):
    """POST /v1/admin/redeem-codes request body."""

    code: str | None = Field(
        None, max_length=255, description="Code string; generated when omitted"
    )
    # Each component is capped at a hundred years
    years: int = Field(0, ge=0, le=100)
    days: int = Field(0, ge=0, le=36_500)
    hours: int = Field(0, ge=0, le=876_000)
    usage_limit: int | None = Field(None, ge=1)

    @field_validator("code")
    @classmethod
    def strip_code(cls, v: str | None) -> str | None:
        return v.strip() if v is not None else None


class RedeemCodeResponse(BaseModel):
    """A redeem code as shown to admins."""

    code_id: str
    code: str
    duration_ms: int
    duration_days: int
    usage_count: int
    usage_limit: int
    exhausted: bool
    created_by: str | None = None
    created_at: int | None = None
    last_used_by: str | None = None
    last_used_at: int | None = None

    @classmethod
    def from_domain(cls, code: RedeemCode) -> "RedeemCodeResponse":
        return cls(
            code_id=code.code_id,
            code=code.code,
            duration_ms=code.duration,
            duration_days=code.duration_days,
            usage_count=code.usage_count,
            usage_limit=code.usage_limit,
            exhausted=code.is_exhausted,
            created_by=code.created_by,
            created_at=code.created_at,
            last_used_by=code.last_used_by,
            last_used_at=code.last_used_at,
        )


class RedeemCodeListResponse(BaseModel):
    """GET /v1/admin/redeem-codes response."""

    codes: list[RedeemCodeResponse]
    total: int


# ============================================================================
# Content Models
# ============================================================================


class DownloadResponse(BaseModel):
    """GET /v1/content/{asset_id}/download response."""

    asset_id: str
    title: str
    script_url: str
    is_premium: bool


# ============================================================================
# Gacha Models
# ============================================================================


class GachaPrizeResponse(BaseModel):
    """A prize won from the daily gacha."""

    prize_id: str
    type: str
    code: str
    timestamp: int | None = None

    @classmethod
    def from_domain(cls, prize: GachaPrize) -> "GachaPrizeResponse":
        return cls(
            prize_id=prize.prize_id,
            type=prize.type,
            code=prize.code,
            timestamp=prize.timestamp,
        )


class GachaPlayResponse(BaseModel):
    """POST /v1/gacha/play response."""

    won: bool
    message: str
    prize: GachaPrizeResponse | None = None


class GachaPrizeListResponse(BaseModel):
    """GET /v1/gacha/prizes response."""

    prizes: list[GachaPrizeResponse]


# ============================================================================
# Health Models
# ============================================================================


class HealthResponse(BaseModel):
    """GET /health response."""

    status: Literal["healthy", "unhealthy"]
    database: Literal["connected", "disconnected"]
    timestamp: str
