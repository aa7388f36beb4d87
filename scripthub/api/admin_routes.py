"""
Admin API routes for managing redeem codes.

Every route requires a caller whose stored role is admin.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from structlog import get_logger

from scripthub.api.dependencies import get_redeem_code_service, require_admin
from scripthub.exceptions import (
    ConcurrencyError,
    DocumentNotFoundError,
    RedeemCodeValidationError,
    StoreUnavailableError,
)
from scripthub.models.api import (
    CreateRedeemCodeRequest,
    RedeemCodeListResponse,
    RedeemCodeResponse,
)
from scripthub.services.identity import CallerIdentity
from scripthub.services.redeem_codes import RedeemCodeService, generate_code

logger = get_logger(__name__)
router = APIRouter(prefix="/v1/admin", tags=["admin"])


@router.post(
    "/redeem-codes",
    response_model=RedeemCodeResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_redeem_code(
    request: CreateRedeemCodeRequest,
    admin: CallerIdentity = Depends(require_admin),
    codes: RedeemCodeService = Depends(get_redeem_code_service),
) -> RedeemCodeResponse:
    """
    Create a redeem code worth years/days/hours of premium access.

    A code string is generated when none is supplied.
    """
    try:
        code = await codes.create_code(
            request.code if request.code is not None else generate_code(),
            created_by=admin.uid,
            years=request.years,
            days=request.days,
            hours=request.hours,
            usage_limit=request.usage_limit,
        )
    except RedeemCodeValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=exc.message,
        ) from exc
    except (StoreUnavailableError, ConcurrencyError) as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service temporarily unavailable",
        ) from exc

    return RedeemCodeResponse.from_domain(code)


@router.get("/redeem-codes", response_model=RedeemCodeListResponse)
async def list_redeem_codes(
    _admin: CallerIdentity = Depends(require_admin),
    codes: RedeemCodeService = Depends(get_redeem_code_service),
) -> RedeemCodeListResponse:
    """List all redeem codes, newest first."""
    try:
        all_codes = await codes.list_codes()
    except StoreUnavailableError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service temporarily unavailable",
        ) from exc

    all_codes.sort(key=lambda c: c.created_at or 0, reverse=True)
    return RedeemCodeListResponse(
        codes=[RedeemCodeResponse.from_domain(c) for c in all_codes],
        total=len(all_codes),
    )


@router.get("/redeem-codes/{code_id}", response_model=RedeemCodeResponse)
async def get_redeem_code(
    code_id: str,
    _admin: CallerIdentity = Depends(require_admin),
    codes: RedeemCodeService = Depends(get_redeem_code_service),
) -> RedeemCodeResponse:
    try:
        code = await codes.get_code(code_id)
    except DocumentNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Redeem code not found",
        ) from exc
    except StoreUnavailableError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service temporarily unavailable",
        ) from exc

    return RedeemCodeResponse.from_domain(code)


@router.delete("/redeem-codes/{code_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_redeem_code(
    code_id: str,
    admin: CallerIdentity = Depends(require_admin),
    codes: RedeemCodeService = Depends(get_redeem_code_service),
) -> None:
    try:
        await codes.delete_code(code_id, deleted_by=admin.uid)
    except DocumentNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Redeem code not found",
        ) from exc
    except (StoreUnavailableError, ConcurrencyError) as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service temporarily unavailable",
        ) from exc
