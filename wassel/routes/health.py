# wassel/routes/health.py
"""
Liveness and readiness endpoints.
"""

import time

from fastapi import APIRouter, Depends

from wassel.services.container import ServiceContainer, get_services

router = APIRouter()


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "wassel-api"}


@router.get("/readyz")
async def readyz(services: ServiceContainer = Depends(get_services)):
    """Readiness check: Redis (when configured) plus upstream configuration."""
    settings = services.settings
    checks = {}
    overall_ok = True

    # 1) Redis health check
    if services.redis is not None:
        t0 = time.time()
        redis_ok = await services.redis.ping()
        checks["redis"] = {
            "ok": redis_ok,
            "latency_ms": round((time.time() - t0) * 1000, 1),
        }
        overall_ok = overall_ok and redis_ok
    else:
        checks["redis"] = {"ok": True, "mode": "disabled"}

    # 2) Configuration checks
    config_issues = []

    if not settings.SUPABASE_URL:
        config_issues.append("SUPABASE_URL not set")

    if not settings.SUPABASE_SERVICE_ROLE_KEY:
        config_issues.append("SUPABASE_SERVICE_ROLE_KEY not set")

    if not settings.STRIPE_SECRET_KEY:
        config_issues.append("STRIPE_SECRET_KEY not set")

    if not (settings.TWILIO_ACCOUNT_SID and settings.TWILIO_AUTH_TOKEN and settings.TWILIO_PHONE_NUMBER):
        config_issues.append("Twilio credentials not set")

    config_ok = not config_issues
    checks["configuration"] = {
        "ok": config_ok,
        "issues": config_issues or None,
        "environment": settings.environment,
    }
    overall_ok = overall_ok and config_ok

    return {"overall_ok": overall_ok, "checks": checks, "timestamp": time.time()}
