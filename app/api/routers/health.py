"""
Health check endpoints for monitoring and orchestration.

- /health: liveness, always 200
- /health/live: alias of /health
- /health/db: database connectivity (skipped in in-memory mode)
- /health/ready: readiness, database plus outbound gateway configuration
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_session
from app.config import Settings, get_settings

logger = logging.getLogger(__name__)

router = APIRouter()

SERVICE_NAME = "tour-bookings-api"


async def _check_database(session: AsyncSession | None) -> str:
    if session is None:
        return "in-memory"
    result = await session.execute(text("SELECT 1"))
    result.scalar()
    return "healthy"


@router.get("/health")
async def health_check():
    """Basic liveness check."""
    return {"status": "ok", "service": SERVICE_NAME}


@router.get("/health/live")
async def health_check_live():
    return {"status": "ok", "service": SERVICE_NAME}


@router.get("/health/db")
async def health_check_db(session: AsyncSession | None = Depends(get_session)):
    """
    Database connectivity health check.

    Returns 503 Service Unavailable if the database does not answer.
    """
    try:
        state = await _check_database(session)
    except Exception as e:
        logger.error("Database health check failed", exc_info=e)
        return JSONResponse(
            status_code=503,
            content={
                "status": "unhealthy",
                "component": "database",
                "error": "Database connection failed",
            },
        )
    return {"status": state, "component": "database"}


@router.get("/health/ready")
async def health_check_ready(
    session: AsyncSession | None = Depends(get_session),
    settings: Settings = Depends(get_settings),
):
    """
    Readiness check.

    The database must answer. Gateways without credentials run as stubs,
    which is reported but does not block traffic.
    """
    health_status = {
        "status": "ready",
        "checks": {
            "payment_gateway": "configured" if settings.payment_gateway_token else "stub",
            "supplier": "configured" if settings.supplier_base_url else "stub",
        },
    }

    try:
        health_status["checks"]["database"] = await _check_database(session)
    except Exception as e:
        logger.error("Readiness check: Database unhealthy", exc_info=e)
        health_status["status"] = "not_ready"
        health_status["checks"]["database"] = "unhealthy"
        return JSONResponse(status_code=503, content=health_status)

    return health_status
