"""
Health check endpoints for the Catalog API.

Liveness for load balancers and readiness that checks the database and the
cache. The cache fails open, so an unreachable Redis only degrades readiness.
"""

import time
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
import structlog

from ...core.database import DatabaseManager
from ...db import get_cache_manager, get_database_manager
from ...services.cache.cache_manager import CacheManager

# Track process start time for uptime calculation
PROCESS_START_TIME = time.time()

logger = structlog.get_logger()
router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def health_check(request: Request) -> Dict[str, Any]:
    """
    Basic health check endpoint.

    Returns a simple health status for load balancers and monitoring systems.
    """
    settings = request.app.state.settings
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": settings.OTEL_SERVICE_NAME,
        "version": settings.OTEL_SERVICE_VERSION,
        "environment": settings.ENVIRONMENT,
        "uptime_seconds": round(time.time() - PROCESS_START_TIME, 3),
    }


@router.get("/ready")
async def readiness_check(
    database_manager: DatabaseManager = Depends(get_database_manager),
    cache_manager: CacheManager = Depends(get_cache_manager),
) -> JSONResponse:
    """
    Readiness check endpoint.

    Returns 503 only when the database is unhealthy.
    """
    database = await database_manager.health_check()
    cache = await cache_manager.health_check()

    if database.get("status") != "healthy":
        overall = "unhealthy"
    elif cache.get("status") != "healthy":
        overall = "degraded"
    else:
        overall = "healthy"

    if overall != "healthy":
        logger.warning(
            "Readiness check not healthy",
            database_status=database.get("status"),
            cache_status=cache.get("status"),
        )

    return JSONResponse(
        status_code=(
            status.HTTP_503_SERVICE_UNAVAILABLE
            if overall == "unhealthy"
            else status.HTTP_200_OK
        ),
        content={
            "status": overall,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "checks": {"database": database, "cache": cache},
        },
    )
