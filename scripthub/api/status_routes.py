"""
Status API routes - Health check for the load balancer.

Public endpoint (no auth).
"""

from datetime import UTC, datetime

from fastapi import APIRouter, HTTPException, Request, status
from structlog import get_logger

from scripthub.db.session import Database
from scripthub.models.api import HealthResponse

logger = get_logger(__name__)
router = APIRouter(tags=["status"])


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """
    Health check for load balancer.

    Verifies database connectivity.
    """
    database: Database = request.app.state.database

    try:
        await database.ping()
    except Exception as exc:
        logger.warning("health_check_failed", error=str(exc))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="unhealthy: database disconnected",
        ) from exc

    return HealthResponse(
        status="healthy",
        database="connected",
        timestamp=datetime.now(UTC).isoformat(),
    )
