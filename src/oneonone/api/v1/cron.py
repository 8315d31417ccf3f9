"""Trigger endpoint for the periodic meeting job.

An external scheduler calls POST /api/v1/cron/meetings with the shared
secret in X-Cron-Secret. Without CRON_SECRET configured the endpoint is
open in development and disabled in production.
"""

from __future__ import annotations

import secrets

from fastapi import APIRouter, Header, HTTPException, Request, status

from src.oneonone.config import Environment, get_settings
from src.oneonone.scheduling.jobs import JobReport, MeetingJobs

router = APIRouter(prefix="/cron", tags=["cron"])


def _get_meeting_jobs(request: Request) -> MeetingJobs:
    jobs = getattr(request.app.state, "meeting_jobs", None)
    if jobs is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Meeting jobs not initialized",
        )
    return jobs


def _verify_cron_secret(provided: str | None) -> None:
    settings = get_settings()
    expected = settings.CRON_SECRET
    if not expected:
        if settings.ENVIRONMENT == Environment.production:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Cron secret not configured",
            )
        return
    if not provided or not secrets.compare_digest(provided, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid cron secret",
        )


@router.post("/meetings", response_model=JobReport)
async def run_meeting_jobs(
    request: Request,
    x_cron_secret: str | None = Header(default=None),
) -> JobReport:
    """Materialize due recurring meetings and send 24h/1h reminders."""
    _verify_cron_secret(x_cron_secret)
    return await _get_meeting_jobs(request).run()
