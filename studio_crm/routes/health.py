# studio_crm/routes/health.py
"""
Health check endpoints.
"""

import time

from fastapi import APIRouter, Depends

from studio_crm.datastore.base import CUSTOMERS
from studio_crm.dependencies import ServiceContainer, get_services

router = APIRouter()


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "studio-crm"}


@router.get("/readyz")
async def readyz(services: ServiceContainer = Depends(get_services)):
    """Readiness check: datastore reachable, snapshot hub running, configuration sane."""
    checks = {}
    overall_ok = True

    # 1) Datastore round trip
    t0 = time.time()
    try:
        await services.store.list_records(CUSTOMERS)
        checks["datastore"] = {
            "ok": True,
            "backend": services.settings.DATASTORE_BACKEND,
            "latency_ms": round((time.time() - t0) * 1000, 1),
        }
    except Exception as e:
        checks["datastore"] = {
            "ok": False,
            "backend": services.settings.DATASTORE_BACKEND,
            "error": f"{type(e).__name__}: {e}",
            "latency_ms": round((time.time() - t0) * 1000, 1),
        }
        overall_ok = False

    # 2) Snapshot hub
    hub_ok = services.hub.started
    checks["snapshot_hub"] = {"ok": hub_ok, "version": services.hub.snapshot.version}
    overall_ok = overall_ok and hub_ok

    # 3) Configuration checks
    settings = services.settings
    config_issues = []
    if settings.DATASTORE_BACKEND == "supabase" and not settings.SUPABASE_URL:
        config_issues.append("SUPABASE_URL not set")
    if not settings.jwks_url():
        config_issues.append("SUPABASE_JWKS_URL not derivable; operator auth disabled")

    checks["configuration"] = {
        "ok": not config_issues,
        "issues": config_issues or None,
        "environment": settings.environment,
        "webhook_configured": bool(settings.NOTIFY_WEBHOOK_URL),
        "ai_configured": services.ai.configured,
    }
    overall_ok = overall_ok and not config_issues

    return {"overall_ok": overall_ok, "checks": checks, "timestamp": time.time()}
