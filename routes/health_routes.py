"""
GET /health: liveness plus dependency checks.

MongoDB is required: a failed ping makes the service "unhealthy" (503).
Redis only backs shared rate-limit state, so its absence or failure leaves
the service "degraded" (200) with per-process limiter counters.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from schemas.dto.responses.common import HealthResponse
from shared.logging import get_logger

log = get_logger(__name__)

router = APIRouter(tags=["health"])


async def _mongo_status(request: Request) -> str:
    try:
        await request.app.state.db.client.admin.command("ping")
    except Exception as e:
        log.error("health_check_failed", dependency="mongodb", error_type=type(e).__name__)
        return "error"
    return "ok"


async def _redis_status(request: Request) -> str:
    redis = getattr(request.app.state, "redis", None)
    if redis is None:
        return "not_configured"
    try:
        await redis.ping()
    except Exception as e:
        log.warning("health_check_failed", dependency="redis", error_type=type(e).__name__)
        return "error"
    return "ok"


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> JSONResponse:
    checks = {
        "mongodb": await _mongo_status(request),
        "redis": await _redis_status(request),
    }
    if checks["mongodb"] != "ok":
        overall = "unhealthy"
    elif checks["redis"] != "ok":
        overall = "degraded"
    else:
        overall = "healthy"

    body = HealthResponse(status=overall, checks=checks)
    return JSONResponse(
        status_code=503 if overall == "unhealthy" else 200,
        content=body.model_dump(),
    )
