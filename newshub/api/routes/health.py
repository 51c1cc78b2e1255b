"""
Health check endpoint.
"""

import time
from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from newshub.api.dependencies import get_database
from newshub.storage.database import Database

router = APIRouter(prefix="/api")
logger = structlog.get_logger(__name__)


async def _check_database(db: Database) -> tuple[bool, float, str | None]:
    """Check database connectivity and measure latency."""
    start = time.perf_counter()
    try:
        healthy = await db.health_check()
        error = None if healthy else "Database unavailable"
    except Exception as e:
        healthy, error = False, str(e)
    latency_ms = round((time.perf_counter() - start) * 1000, 2)
    return healthy, latency_ms, error


@router.get("/health", summary="Database connectivity check")
async def health(db: Database = Depends(get_database)) -> JSONResponse:
    healthy, latency_ms, error = await _check_database(db)

    body = {
        "success": healthy,
        "status": "healthy" if healthy else "unhealthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database_latency_ms": latency_ms,
    }
    if error:
        logger.warning("Health check failed", error=error)
        body["error"] = error
    return JSONResponse(status_code=200 if healthy else 503, content=body)
