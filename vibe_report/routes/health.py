"""
Health check endpoints.
"""

import time

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from vibe_report.config import settings
from vibe_report.db.pool import db_health_check
from vibe_report.services.redis_store import ping

router = APIRouter(tags=["health"])


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "vibe-report-api"}


@router.get("/readyz")
async def readyz():
    """
    Readiness check: Redis, the database pool and required configuration.
    """
    checks = {}
    overall_ok = True

    t0 = time.time()
    try:
        redis_ok = await ping()
        checks["redis"] = {
            "ok": bool(redis_ok),
            "latency_ms": round((time.time() - t0) * 1000, 1),
        }
        overall_ok = overall_ok and bool(redis_ok)
    except Exception as e:
        checks["redis"] = {"ok": False, "error": f"{type(e).__name__}: {e}"}
        overall_ok = False

    t0 = time.time()
    try:
        db_health = await db_health_check()
        is_healthy = db_health.get("healthy", False)
        checks["database"] = {
            "ok": is_healthy,
            "latency_ms": round((time.time() - t0) * 1000, 1),
        }
        if "pool_stats" in db_health:
            checks["database"]["pool_stats"] = db_health["pool_stats"]
        if not is_healthy:
            checks["database"]["error"] = db_health.get("error", "Database unhealthy")
        overall_ok = overall_ok and is_healthy
    except Exception as e:
        checks["database"] = {"ok": False, "error": f"{type(e).__name__}: {e}"}
        overall_ok = False

    config_issues = []
    if not settings.OPENAI_API_KEY:
        config_issues.append("OPENAI_API_KEY not set")
    if not settings.STRIPE_SECRET_KEY:
        config_issues.append("STRIPE_SECRET_KEY not set")
    if not settings.STRIPE_WEBHOOK_SECRET:
        config_issues.append("STRIPE_WEBHOOK_SECRET not set")

    checks["configuration"] = {
        "ok": not config_issues,
        "issues": config_issues or None,
        "environment": settings.environment,
    }
    overall_ok = overall_ok and not config_issues

    body = {"overall_ok": overall_ok, "checks": checks, "timestamp": time.time()}
    return JSONResponse(body, status_code=200 if overall_ok else 503)
