# app/routes/health.py
"""
Liveness and readiness endpoints.
"""

import time

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from app.db.pool import db_health_check
from app.infrastructure.observability.logging import log_health_check
from app.services.redis_client import fast_redis

router = APIRouter()


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "connect-backend"}


@router.get("/readyz")
async def readyz():
    """Readiness check covering Redis and the database pool."""
    checks = {}

    t0 = time.time()
    redis_ok = await fast_redis.ping()
    checks["redis"] = {"ok": redis_ok, "latency_ms": round((time.time() - t0) * 1000, 1)}
    log_health_check("redis", redis_ok, checks["redis"]["latency_ms"])

    t0 = time.time()
    db_health = await db_health_check()
    db_ok = bool(db_health.get("healthy", False))
    checks["database"] = {"ok": db_ok, "latency_ms": round((time.time() - t0) * 1000, 1)}
    if "pool_stats" in db_health:
        checks["database"]["pool_stats"] = db_health["pool_stats"]
    if "warnings" in db_health:
        checks["database"]["warnings"] = db_health["warnings"]
    if not db_ok:
        checks["database"]["error"] = db_health.get("error", "Database unhealthy")
    log_health_check(
        "database", db_ok, checks["database"]["latency_ms"], error=checks["database"].get("error")
    )

    overall_ok = redis_ok and db_ok
    return JSONResponse(
        status_code=status.HTTP_200_OK if overall_ok else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"status": "ready" if overall_ok else "not_ready", "checks": checks},
    )
