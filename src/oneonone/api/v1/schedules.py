"""REST endpoints for recurring one-on-one schedules.

Destructive operations (pause with cancellation, delete) report how many
open meetings they cancelled in cancelled_meeting_count.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, Field

from src.oneonone.admin.schemas import AuditAction
from src.oneonone.api.deps import get_current_user, record_audit
from src.oneonone.directory.schemas import User
from src.oneonone.meetings.schemas import Meeting, MeetingFilter
from src.oneonone.scheduling.schemas import (
    RecurringSchedule,
    ScheduleCreate,
    ScheduleResult,
    ScheduleUpdate,
)
from src.oneonone.scheduling.service import ScheduleService

router = APIRouter(prefix="/recurring-schedules", tags=["recurring-schedules"])

RECENT_MEETINGS_LIMIT = 10


# ── Request / Response Schemas ───────────────────────────────────────────────


class PauseRequest(BaseModel):
    cancel_future_meetings: bool = False


class ResumeRequest(BaseModel):
    recompute_next_date: bool = False


class ScheduleMeetingResponse(BaseModel):
    id: str
    meeting_date: str
    status: str


class ScheduleResponse(BaseModel):
    """Serializes datetimes to ISO strings."""

    id: str
    employee_id: str
    reporter_id: str
    frequency: str
    day_of_week: int
    time_of_day: str
    state: str
    is_active: bool
    next_meeting_date: str | None = None
    last_generated_at: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    recent_meetings: list[ScheduleMeetingResponse] = Field(default_factory=list)


class ScheduleResultResponse(BaseModel):
    schedule: ScheduleResponse
    cancelled_meeting_count: int = 0
    proposed_meeting_id: str | None = None


# ── Dependency Injection Helpers ─────────────────────────────────────────────


def _get_schedule_service(request: Request) -> ScheduleService:
    service = getattr(request.app.state, "schedule_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Schedule service not initialized",
        )
    return service


# ── Conversion Helpers ───────────────────────────────────────────────────────


def _iso(value) -> str | None:
    return value.isoformat() if value else None


def _schedule_to_response(
    s: RecurringSchedule, meetings: list[Meeting] | None = None
) -> ScheduleResponse:
    return ScheduleResponse(
        id=str(s.id),
        employee_id=str(s.employee_id),
        reporter_id=str(s.reporter_id),
        frequency=s.frequency.value,
        day_of_week=s.day_of_week,
        time_of_day=s.time_of_day,
        state=s.state.value,
        is_active=s.is_active,
        next_meeting_date=_iso(s.next_meeting_date),
        last_generated_at=_iso(s.last_generated_at),
        created_at=_iso(s.created_at),
        updated_at=_iso(s.updated_at),
        recent_meetings=[
            ScheduleMeetingResponse(
                id=str(m.id), meeting_date=m.meeting_date.isoformat(), status=m.status.value
            )
            for m in meetings or []
        ],
    )


def _result_to_response(result: ScheduleResult) -> ScheduleResultResponse:
    return ScheduleResultResponse(
        schedule=_schedule_to_response(result.schedule),
        cancelled_meeting_count=result.cancelled_meeting_count,
        proposed_meeting_id=str(result.proposed_meeting_id) if result.proposed_meeting_id else None,
    )


# ── Endpoints ────────────────────────────────────────────────────────────────


@router.get("", response_model=list[ScheduleResponse])
async def list_schedules(
    request: Request,
    user: User = Depends(get_current_user),
) -> list[ScheduleResponse]:
    """Reporters see their own schedules; super admins see all."""
    service = _get_schedule_service(request)
    schedules = await service.list_schedules(user)
    return [_schedule_to_response(s) for s in schedules]


@router.post("", response_model=ScheduleResultResponse, status_code=status.HTTP_201_CREATED)
async def create_schedule(
    body: ScheduleCreate,
    request: Request,
    user: User = Depends(get_current_user),
) -> ScheduleResultResponse:
    service = _get_schedule_service(request)
    result = await service.create_schedule(user, body)
    await record_audit(
        request, user, AuditAction.CREATE, "RecurringSchedule", result.schedule.id,
        {"employee_id": str(result.schedule.employee_id), "frequency": result.schedule.frequency.value},
    )
    return _result_to_response(result)


@router.get("/{schedule_id}", response_model=ScheduleResponse)
async def get_schedule(
    schedule_id: uuid.UUID,
    request: Request,
    user: User = Depends(get_current_user),
) -> ScheduleResponse:
    """Schedule plus its most recent meetings."""
    service = _get_schedule_service(request)
    schedule = await service.get_schedule(user, schedule_id)

    meetings: list[Meeting] = []
    meeting_repo = getattr(request.app.state, "meeting_repository", None)
    if meeting_repo is not None:
        meetings = await meeting_repo.list_meetings(
            MeetingFilter(recurring_schedule_id=schedule.id, limit=RECENT_MEETINGS_LIMIT)
        )
    return _schedule_to_response(schedule, meetings)


@router.patch("/{schedule_id}", response_model=ScheduleResultResponse)
async def edit_schedule(
    schedule_id: uuid.UUID,
    body: ScheduleUpdate,
    request: Request,
    user: User = Depends(get_current_user),
) -> ScheduleResultResponse:
    service = _get_schedule_service(request)
    result = await service.edit_schedule(user, schedule_id, body)
    await record_audit(
        request, user, AuditAction.UPDATE, "RecurringSchedule", schedule_id,
        body.model_dump(mode="json", exclude_none=True),
    )
    return _result_to_response(result)


@router.post("/{schedule_id}/pause", response_model=ScheduleResultResponse)
async def pause_schedule(
    schedule_id: uuid.UUID,
    request: Request,
    body: PauseRequest | None = None,
    user: User = Depends(get_current_user),
) -> ScheduleResultResponse:
    service = _get_schedule_service(request)
    body = body or PauseRequest()
    result = await service.pause_schedule(user, schedule_id, body.cancel_future_meetings)
    return _result_to_response(result)


@router.post("/{schedule_id}/resume", response_model=ScheduleResultResponse)
async def resume_schedule(
    schedule_id: uuid.UUID,
    request: Request,
    body: ResumeRequest | None = None,
    user: User = Depends(get_current_user),
) -> ScheduleResultResponse:
    service = _get_schedule_service(request)
    body = body or ResumeRequest()
    result = await service.resume_schedule(user, schedule_id, body.recompute_next_date)
    return _result_to_response(result)


@router.delete("/{schedule_id}", response_model=ScheduleResultResponse)
async def delete_schedule(
    schedule_id: uuid.UUID,
    request: Request,
    user: User = Depends(get_current_user),
) -> ScheduleResultResponse:
    service = _get_schedule_service(request)
    result = await service.delete_schedule(user, schedule_id)
    await record_audit(
        request, user, AuditAction.DELETE, "RecurringSchedule", schedule_id,
        {"cancelled_meeting_count": result.cancelled_meeting_count},
    )
    return _result_to_response(result)
