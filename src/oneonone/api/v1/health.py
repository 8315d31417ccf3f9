"""Liveness and readiness checks.

/health never touches a dependency. /health/ready pings the database and
Redis (503 when either fails) and reports which optional collaborators
are wired: audio storage backend, transcript analysis, email and the
in-process meeting scheduler.
"""

from __future__ import annotations

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy import text

from src.oneonone.config import get_settings
from src.oneonone.core.database import get_engine
from src.oneonone.core.redis import get_redis_pool

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    return {"status": "ok", "environment": get_settings().ENVIRONMENT.value}


async def _ping_database() -> str | None:
    """None when SELECT 1 succeeds, else the error text."""
    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        return str(e)
    return None


async def _ping_redis() -> str | None:
    try:
        if not await get_redis_pool().ping():
            return "PING did not return PONG"
    except Exception as e:
        return str(e)
    return None


def _collaborators(request: Request) -> dict:
    state = request.app.state
    storage = getattr(state, "audio_storage", None)
    analysis = getattr(state, "analysis_service", None)
    notifier = getattr(state, "notifier", None)
    scheduler = getattr(state, "meeting_scheduler", None)
    return {
        "storage": getattr(storage, "backend", None),
        "analysis": bool(analysis and analysis.configured),
        "email": bool(notifier and notifier.enabled),
        "scheduler": bool(scheduler and scheduler.running),
    }


@router.get("/health/ready")
async def readiness_check(request: Request):
    checks: dict = {}
    for name, ping in (("database", _ping_database), ("redis", _ping_redis)):
        error = await ping()
        checks[name] = "ok" if error is None else "error"
        if error is not None:
            checks[f"{name}_error"] = error

    ready = checks["database"] == "ok" and checks["redis"] == "ok"
    return JSONResponse(
        status_code=status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "ready" if ready else "degraded",
            "checks": checks,
            "services": _collaborators(request),
        },
    )
