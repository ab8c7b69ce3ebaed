"""
Health check API endpoints.
"""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.orm import Session
import time

from hms_rbac.core.database import get_db
from hms_rbac.core.redis import get_redis
from hms_rbac.core.config import settings

router = APIRouter()

@router.get("/health")
async def health_check():
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.app_version,
        "environment": settings.app_env,
        "timestamp": time.time()
    }

@router.get("/health/detailed")
async def detailed_health_check(
    db: Session = Depends(get_db)
):
    """
    Detailed health check with database and Redis connectivity.

    A Redis outage only degrades the service: permission checks fall back to
    the database.
    """
    health_status = {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.app_version,
        "environment": settings.app_env,
        "timestamp": time.time(),
        "checks": {
            "database": "unknown",
            "redis": "unknown"
        }
    }

    try:
        db.execute(text("SELECT 1"))
        health_status["checks"]["database"] = "healthy"
    except Exception as e:
        health_status["checks"]["database"] = f"unhealthy: {str(e)}"
        health_status["status"] = "unhealthy"

    try:
        redis_client = await get_redis()
        await redis_client.ping()
        health_status["checks"]["redis"] = "healthy"
    except Exception as e:
        health_status["checks"]["redis"] = f"unhealthy: {str(e)}"
        if health_status["status"] == "healthy":
            health_status["status"] = "degraded"

    return health_status
