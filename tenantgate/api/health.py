"""Liveness and readiness checks.

/health answers "is the process up" and always returns 200; the body
says whether a configured dependency is degraded.  /ready answers "can
this instance take traffic" and returns 503 when a configured database
or Redis does not respond, so the load balancer drains it without a
restart.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text

from tenantgate.db.engine import engine
from tenantgate.db.redis import redis_pool

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


async def _check_dependencies() -> dict[str, str]:
    checks: dict[str, str] = {}

    if engine is not None:
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            checks["database"] = "ok"
        except Exception:
            logger.warning("Database health check failed", exc_info=True)
            checks["database"] = "down"
    else:
        checks["database"] = "not_configured"

    if redis_pool is not None:
        try:
            await redis_pool.ping()  # type: ignore[misc]
            checks["redis"] = "ok"
        except Exception:
            logger.warning("Redis health check failed", exc_info=True)
            checks["redis"] = "down"
    else:
        checks["redis"] = "not_configured"

    return checks


@router.get("/health")
async def health() -> dict:
    checks = await _check_dependencies()
    overall = "degraded" if "down" in checks.values() else "ok"
    return {"status": overall, "checks": checks}


@router.get("/ready")
async def ready() -> JSONResponse:
    checks = await _check_dependencies()
    ready_now = "down" not in checks.values()
    return JSONResponse(
        status_code=200 if ready_now else 503,
        content={"ready": ready_now, "checks": checks},
    )
