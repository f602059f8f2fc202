"""Health check endpoints."""
import structlog
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from shibr.core.config import settings
from shibr.core.database import get_db
from shibr.core.redis import RedisClient, get_redis

router = APIRouter()
logger = structlog.get_logger()

HEALTHY = "healthy"


async def _check_database(db: AsyncSession) -> str:
    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        return f"unhealthy: {e}"
    return HEALTHY


async def _check_redis(redis: RedisClient) -> str:
    if not redis.connected:
        return "unhealthy: not connected"
    try:
        await redis.ping()
    except Exception as e:
        return f"unhealthy: {e}"
    return HEALTHY


@router.get("/health")
async def health_check():
    """Basic health check."""
    return {"status": HEALTHY, "version": settings.APP_VERSION}


@router.get("/health/ready")
async def readiness_check(
    db: AsyncSession = Depends(get_db),
    redis: RedisClient = Depends(get_redis),
):
    """
    Readiness check: the database and Redis must both answer.

    Carts and pending checkouts live in Redis, so the storefront cannot take
    orders without it even though the dashboards still work.
    """
    checks = {
        "database": await _check_database(db),
        "redis": await _check_redis(redis),
    }
    ready = all(check == HEALTHY for check in checks.values())
    if not ready:
        logger.warning("readiness_check_failed", **checks)

    return JSONResponse(
        status_code=status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": HEALTHY if ready else "unhealthy", "checks": checks},
    )


@router.get("/health/live")
async def liveness_check():
    """Liveness check: the process is up and serving."""
    return {"status": "alive"}
