"""Health check endpoints.

/health/live   - Liveness probe: is the process up?
/health/ready  - Readiness probe: can we serve traffic? (engine loaded, DB reachable?)

These are public endpoints - no auth required.
"""

from __future__ import annotations

from datetime import UTC, datetime

from fastapi import APIRouter, Request

from model_routing.database import ping

router = APIRouter(prefix="/health", tags=["health"])


@router.get("/live")
async def liveness() -> dict:
    """Liveness probe - always returns 200 if the process is running."""
    return {"status": "ok", "timestamp": datetime.now(UTC).isoformat()}


@router.get("/ready")
async def readiness(request: Request) -> dict:
    """Readiness probe - checks the routing engine and DB connectivity."""
    routing_engine = getattr(request.app.state, "engine", None)
    engine_status = "ok" if routing_engine is not None else "not_initialized"

    if getattr(request.app.state, "uses_database", False):
        try:
            await ping()
            db_status = "ok"
        except Exception as exc:
            db_status = f"error: {exc}"
    else:
        db_status = "not_configured"

    is_ready = engine_status == "ok" and db_status in ("ok", "not_configured")
    return {
        "status": "ready" if is_ready else "not_ready",
        "engine": engine_status,
        "database": db_status,
        "catalog_models": len(routing_engine.cache) if routing_engine is not None else 0,
        "timestamp": datetime.now(UTC).isoformat(),
    }
