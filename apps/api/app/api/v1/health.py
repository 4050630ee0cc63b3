"""Health check endpoints."""

import logging
from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.deps import get_db
from app.schemas.common import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(
    db: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    """
    Health check endpoint.

    Checks database connectivity (and Redis when it backs the rate limiter).
    """
    health_status: dict[str, Any] = {
        "status": "healthy",
        "version": settings.version,
        "environment": settings.environment,
        "checks": {},
    }

    # Check database connection
    try:
        await db.execute(text("SELECT 1"))
        health_status["checks"]["database"] = "healthy"
    except Exception:
        logger.exception("Database health check failed")
        health_status["status"] = "unhealthy"
        health_status["checks"]["database"] = "unhealthy"

    if settings.rate_limit_backend == "redis":
        try:
            import redis.asyncio as redis

            redis_client = redis.from_url(str(settings.redis_url))  # type: ignore[no-untyped-call]
            await redis_client.ping()
            await redis_client.aclose()
            health_status["checks"]["redis"] = "healthy"
        except Exception:
            logger.exception("Redis health check failed")
            health_status["status"] = "unhealthy"
            health_status["checks"]["redis"] = "unhealthy"

    return health_status


@router.get("/health/live")
async def liveness_check() -> dict[str, str]:
    """
    Liveness probe for container orchestration.

    Simple check that the service is running.
    """
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_check(
    db: AsyncSession = Depends(get_db),
) -> dict[str, str]:
    """
    Readiness probe for container orchestration.

    Checks if the service is ready to receive traffic.
    """
    await db.execute(text("SELECT 1"))

    return {"status": "ready"}
