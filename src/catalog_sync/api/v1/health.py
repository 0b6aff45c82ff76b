"""Health check endpoints."""

from datetime import datetime, timezone
from typing import Any

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_sync import __version__
from catalog_sync.config import Settings, get_settings
from catalog_sync.infrastructure.database.connection import get_session

router = APIRouter()
logger = structlog.get_logger()


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    environment: str
    timestamp: str
    dependencies: dict[str, Any]


class ReadinessResponse(BaseModel):
    """Readiness check response model."""

    ready: bool
    checks: dict[str, bool]


@router.get("/health", response_model=HealthResponse)
async def health_check(settings: Settings = Depends(get_settings)) -> HealthResponse:
    """
    Basic health check endpoint.

    Returns the service status and version information.
    """
    return HealthResponse(
        status="healthy",
        version=__version__,
        environment=settings.app_env,
        timestamp=datetime.now(timezone.utc).isoformat(),
        dependencies={
            "postgres": "configured",
            "catalog_store": settings.catalog_base_url,
            "broker": "configured",
        },
    )


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness_check(session: AsyncSession = Depends(get_session)) -> ReadinessResponse:
    """
    Readiness check endpoint.

    Verifies that the database answers a trivial query.
    """
    checks: dict[str, bool] = {}

    try:
        await session.execute(text("SELECT 1"))
        checks["postgres"] = True
    except SQLAlchemyError as e:
        logger.warning("Database readiness check failed", error=str(e))
        await session.rollback()
        checks["postgres"] = False

    return ReadinessResponse(ready=all(checks.values()), checks=checks)


@router.get("/health/live")
async def liveness_check() -> dict[str, str]:
    """
    Liveness check endpoint.

    Returns 200 if the service is running.
    """
    return {"status": "alive"}
