"""
API Routes - FastAPI endpoints for signed-in users.

NO DICTIONARIES - All requests/responses use Pydantic models.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from scripthub.api.dependencies import (
    get_content_gate,
    get_current_user,
    get_entitlement_manager,
    get_gacha_service,
    get_redemption_processor,
)
from scripthub.exceptions import (
    AuthorizationError,
    CodeExhaustedError,
    ConcurrencyError,
    DocumentNotFoundError,
    EmptyInputError,
    GachaCooldownError,
    GachaIneligibleError,
    InvalidCodeError,
    NotAuthenticatedError,
    StoreUnavailableError,
)
from scripthub.models.api import (
    DownloadResponse,
    EntitlementResponse,
    GachaPlayResponse,
    GachaPrizeListResponse,
    GachaPrizeResponse,
    RedeemRequest,
    RedeemResponse,
)
from scripthub.services.content import ContentGate
from scripthub.services.entitlement import EntitlementManager
from scripthub.services.gacha import DailyGachaService
from scripthub.services.identity import CallerIdentity
from scripthub.services.redemption import RedemptionProcessor

router = APIRouter()


def _store_unavailable() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Service temporarily unavailable, please try again",
    )


@router.get("/v1/me/entitlement", response_model=EntitlementResponse)
async def get_my_entitlement(
    user: CallerIdentity = Depends(get_current_user),
    entitlements: EntitlementManager = Depends(get_entitlement_manager),
) -> EntitlementResponse:
    """
    Current access tier for the caller.

    The role is resolved live; an expired premium grant is reported (and
    stored) as basic.
    """
    try:
        resolved = await entitlements.resolve_user(user.uid)
    except StoreUnavailableError as exc:
        raise _store_unavailable() from exc

    return EntitlementResponse.from_resolved(resolved)


@router.post("/v1/redeem", response_model=RedeemResponse)
async def redeem_code(
    request: RedeemRequest,
    user: CallerIdentity = Depends(get_current_user),
    processor: RedemptionProcessor = Depends(get_redemption_processor),
) -> RedeemResponse:
    """
    Redeem a code for premium access.

    Any existing premium grant is replaced by now + the code's duration.
    """
    try:
        result = await processor.redeem(user.uid, request.code)

    except EmptyInputError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Please enter a redeem code",
        ) from exc

    except NotAuthenticatedError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=exc.message,
        ) from exc

    except InvalidCodeError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Invalid redeem code",
        ) from exc

    except CodeExhaustedError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="This code has reached its usage limit",
        ) from exc

    except (StoreUnavailableError, ConcurrencyError) as exc:
        raise _store_unavailable() from exc

    return RedeemResponse(
        message=(
            "Code redeemed successfully! You now have premium access "
            f"for {result.duration_days} days."
        ),
        code_id=result.code_id,
        duration_ms=result.duration,
        duration_days=result.duration_days,
        premium_expiration=result.premium_expiration,
        usage_count=result.usage_count,
    )


@router.get("/v1/content/{asset_id}/download", response_model=DownloadResponse)
async def download_content(
    asset_id: str,
    user: CallerIdentity = Depends(get_current_user),
    gate: ContentGate = Depends(get_content_gate),
) -> DownloadResponse:
    """Return the script URL if the caller may download the asset."""
    try:
        asset = await gate.authorize_download(user.uid, asset_id)

    except DocumentNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Script not found",
        ) from exc

    except AuthorizationError as exc:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Premium access required to download this script",
        ) from exc

    except (StoreUnavailableError, ConcurrencyError) as exc:
        raise _store_unavailable() from exc

    assert asset.script_url is not None
    return DownloadResponse(
        asset_id=asset.asset_id,
        title=asset.title,
        script_url=asset.script_url,
        is_premium=asset.is_premium,
    )


@router.post("/v1/gacha/play", response_model=GachaPlayResponse)
async def play_gacha(
    user: CallerIdentity = Depends(get_current_user),
    gacha: DailyGachaService = Depends(get_gacha_service),
) -> GachaPlayResponse:
    """Play the daily gacha (basic users, once per day)."""
    try:
        outcome = await gacha.play(user.uid)

    except GachaIneligibleError as exc:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Daily gacha is only available for basic users",
        ) from exc

    except GachaCooldownError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
            headers={"Retry-After": str(exc.hours_remaining * 3600)},
        ) from exc

    except (StoreUnavailableError, ConcurrencyError) as exc:
        raise _store_unavailable() from exc

    return GachaPlayResponse(
        won=outcome.won,
        message=outcome.message,
        prize=GachaPrizeResponse.from_domain(outcome.prize) if outcome.prize else None,
    )


@router.get("/v1/gacha/prizes", response_model=GachaPrizeListResponse)
async def list_gacha_prizes(
    user: CallerIdentity = Depends(get_current_user),
    gacha: DailyGachaService = Depends(get_gacha_service),
) -> GachaPrizeListResponse:
    try:
        prizes = await gacha.list_prizes(user.uid)
    except StoreUnavailableError as exc:
        raise _store_unavailable() from exc

    return GachaPrizeListResponse(
        prizes=[GachaPrizeResponse.from_domain(p) for p in prizes],
    )
