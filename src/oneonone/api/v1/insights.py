"""Aggregated meeting insights for reporters and super admins."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from src.oneonone.api.deps import get_current_user
from src.oneonone.directory.schemas import User
from src.oneonone.insights.schemas import InsightsReport
from src.oneonone.insights.service import InsightsService

router = APIRouter(prefix="/insights", tags=["insights"])


def _get_insights_service(request: Request) -> InsightsService:
    service = getattr(request.app.state, "insights_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Insights service not initialized",
        )
    return service


@router.get("", response_model=InsightsReport)
async def get_insights(
    request: Request,
    period: int = Query(default=30, ge=1, le=365, description="Look-back window in days"),
    department_id: uuid.UUID | None = Query(default=None),
    user: User = Depends(get_current_user),
) -> InsightsReport:
    service = _get_insights_service(request)
    return await service.get_insights(user, period_days=period, department_id=department_id)
