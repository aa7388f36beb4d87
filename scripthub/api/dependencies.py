"""
FastAPI Dependencies - Authentication, authorization and service wiring.

NO DICTIONARIES - All dependencies return typed objects.

The document store and token verifier are built once in the application
lifespan and live on app.state; every request gets them from there.
"""

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from structlog import get_logger

from scripthub.exceptions import (
    AuthenticationError,
    AuthorizationError,
    IdentityProviderError,
    StoreUnavailableError,
)
from scripthub.models.domain import Role
from scripthub.services.content import ContentGate
from scripthub.services.entitlement import EntitlementManager
from scripthub.services.gacha import DailyGachaService
from scripthub.services.identity import CallerIdentity, FirebaseTokenVerifier
from scripthub.services.redeem_codes import RedeemCodeService
from scripthub.services.redemption import RedemptionProcessor
from scripthub.store.base import DocumentStore

logger = get_logger(__name__)

# Bearer token scheme for Firebase ID tokens
bearer_scheme = HTTPBearer(auto_error=False)


# ============================================================================
# Shared resources
# ============================================================================


def get_store(request: Request) -> DocumentStore:
    """Document store opened by the lifespan."""
    store: DocumentStore = request.app.state.store
    return store


def get_identity_verifier(request: Request) -> FirebaseTokenVerifier:
    verifier: FirebaseTokenVerifier = request.app.state.identity_verifier
    return verifier


# ============================================================================
# Caller identity
# ============================================================================


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    verifier: FirebaseTokenVerifier = Depends(get_identity_verifier),
) -> CallerIdentity:
    """
    Validate the Firebase ID token in the Authorization header.

    Accepts: Authorization: Bearer {firebase_id_token}

    Raises:
        HTTPException 401 if no token or invalid token
        HTTPException 503 if Google's signing keys cannot be fetched
    """
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="You must be logged in",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return await verifier.verify(credentials.credentials)
    except AuthenticationError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc
    except IdentityProviderError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Identity provider unavailable",
        ) from exc


# ============================================================================
# Services
# ============================================================================


def get_entitlement_manager(store: DocumentStore = Depends(get_store)) -> EntitlementManager:
    return EntitlementManager(store)


def get_redemption_processor(store: DocumentStore = Depends(get_store)) -> RedemptionProcessor:
    return RedemptionProcessor(store)


def get_redeem_code_service(store: DocumentStore = Depends(get_store)) -> RedeemCodeService:
    return RedeemCodeService(store)


def get_content_gate(
    store: DocumentStore = Depends(get_store),
    entitlements: EntitlementManager = Depends(get_entitlement_manager),
) -> ContentGate:
    return ContentGate(store, entitlements)


def get_gacha_service(
    store: DocumentStore = Depends(get_store),
    entitlements: EntitlementManager = Depends(get_entitlement_manager),
    codes: RedeemCodeService = Depends(get_redeem_code_service),
) -> DailyGachaService:
    return DailyGachaService(store, entitlements, codes)


# ============================================================================
# Admin
# ============================================================================


async def require_admin(
    user: CallerIdentity = Depends(get_current_user),
    entitlements: EntitlementManager = Depends(get_entitlement_manager),
) -> CallerIdentity:
    """
    Require the caller's stored role to be admin.

    Raises:
        HTTPException 403 if the caller is not an admin
        HTTPException 503 if the store cannot be read
    """
    try:
        await entitlements.require_role(user.uid, Role.ADMIN)
    except AuthorizationError as exc:
        logger.warning("admin_access_denied", user_id=user.uid)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        ) from exc
    except StoreUnavailableError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service temporarily unavailable",
        ) from exc
    return user
