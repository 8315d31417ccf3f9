"""REST endpoints for one-on-one meetings, forms, notes and attachments.

Access rules live in MeetingService; these handlers only parse requests
and shape responses.
"""

from __future__ import annotations

import uuid
from urllib.parse import quote

from fastapi import (
    APIRouter,
    Depends,
    File,
    HTTPException,
    Query,
    Request,
    Response,
    UploadFile,
    status,
)
from pydantic import BaseModel, Field

from src.oneonone.admin.schemas import AuditAction
from src.oneonone.api.deps import get_current_user, record_audit
from src.oneonone.core.errors import AuthorizationError
from src.oneonone.directory.schemas import User
from src.oneonone.meetings.schemas import (
    Attachment,
    Meeting,
    MeetingForm,
    MeetingRequest,
    MeetingStatus,
)
from src.oneonone.meetings.service import MeetingService

router = APIRouter(prefix="/meetings", tags=["meetings"])


# ── Request / Response Schemas ───────────────────────────────────────────────


class NotesUpdate(BaseModel):
    notes: str | None = Field(default=None, max_length=20000)


class ParticipantResponse(BaseModel):
    id: str
    name: str
    email: str


class AttachmentResponse(BaseModel):
    id: str
    meeting_id: str
    uploaded_by_id: str
    file_name: str
    content_type: str
    size_bytes: int
    created_at: str | None = None


class RecordingSummaryResponse(BaseModel):
    id: str
    status: str
    quality_score: int | None = None
    duration_seconds: int | None = None


class MeetingResponse(BaseModel):
    """Serializes datetimes to ISO strings."""

    id: str
    employee_id: str
    reporter_id: str
    meeting_date: str
    status: str
    recurring_schedule_id: str | None = None
    proposed_by_id: str | None = None
    form: MeetingForm
    notes: str | None = None
    employee: ParticipantResponse | None = None
    reporter: ParticipantResponse | None = None
    created_at: str | None = None
    updated_at: str | None = None


class MeetingDetailResponse(MeetingResponse):
    attachments: list[AttachmentResponse] = Field(default_factory=list)
    recording: RecordingSummaryResponse | None = None


# ── Dependency Injection Helpers ─────────────────────────────────────────────


def _get_meeting_service(request: Request) -> MeetingService:
    service = getattr(request.app.state, "meeting_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Meeting service not initialized",
        )
    return service


# ── Conversion Helpers ───────────────────────────────────────────────────────


def _participant(user: User | None) -> ParticipantResponse | None:
    if user is None:
        return None
    return ParticipantResponse(id=str(user.id), name=user.name, email=user.email)


def _meeting_fields(m: Meeting, people: dict[uuid.UUID, User] | None = None) -> dict:
    people = people or {}
    return {
        "id": str(m.id),
        "employee_id": str(m.employee_id),
        "reporter_id": str(m.reporter_id),
        "meeting_date": m.meeting_date.isoformat(),
        "status": m.status.value,
        "recurring_schedule_id": str(m.recurring_schedule_id) if m.recurring_schedule_id else None,
        "proposed_by_id": str(m.proposed_by_id) if m.proposed_by_id else None,
        "form": m.form,
        "notes": m.notes,
        "employee": _participant(people.get(m.employee_id)),
        "reporter": _participant(people.get(m.reporter_id)),
        "created_at": m.created_at.isoformat() if m.created_at else None,
        "updated_at": m.updated_at.isoformat() if m.updated_at else None,
    }


def _meeting_to_response(m: Meeting, people: dict[uuid.UUID, User] | None = None) -> MeetingResponse:
    return MeetingResponse(**_meeting_fields(m, people))


def _attachment_to_response(a: Attachment) -> AttachmentResponse:
    return AttachmentResponse(
        id=str(a.id),
        meeting_id=str(a.meeting_id),
        uploaded_by_id=str(a.uploaded_by_id),
        file_name=a.file_name,
        content_type=a.content_type,
        size_bytes=a.size_bytes,
        created_at=a.created_at.isoformat() if a.created_at else None,
    )


# ── Endpoints ────────────────────────────────────────────────────────────────


@router.get("", response_model=list[MeetingResponse])
async def list_meetings(
    request: Request,
    status_filter: MeetingStatus | None = Query(
        default=None,
        alias="status",
        description="Filter by meeting status",
    ),
    employee_id: uuid.UUID | None = Query(default=None, description="Filter by employee"),
    user: User = Depends(get_current_user),
) -> list[MeetingResponse]:
    """Meetings visible to the caller, newest first."""
    service = _get_meeting_service(request)
    meetings = await service.list_meetings(user, status=status_filter, employee_id=employee_id)
    return [_meeting_to_response(m) for m in meetings]


@router.post("", response_model=MeetingResponse, status_code=status.HTTP_201_CREATED)
async def create_meeting(
    body: MeetingRequest,
    request: Request,
    user: User = Depends(get_current_user),
) -> MeetingResponse:
    service = _get_meeting_service(request)
    meeting = await service.create_meeting(user, body)
    await record_audit(
        request, user, AuditAction.CREATE, "Meeting", meeting.id,
        {"employee_id": str(meeting.employee_id)},
    )
    return _meeting_to_response(meeting, await service.participants(meeting))


@router.get("/{meeting_id}", response_model=MeetingDetailResponse)
async def get_meeting(
    meeting_id: uuid.UUID,
    request: Request,
    user: User = Depends(get_current_user),
) -> MeetingDetailResponse:
    """Meeting with participants, attachments and a recording summary."""
    service = _get_meeting_service(request)
    meeting = await service.get_meeting(user, meeting_id)
    attachments = await service.list_attachments(user, meeting_id)

    recording = None
    recording_service = getattr(request.app.state, "recording_service", None)
    if recording_service is not None:
        try:
            rec = await recording_service.get_recording(user, meeting_id)
        except AuthorizationError:
            rec = None
        if rec is not None:
            recording = RecordingSummaryResponse(
                id=str(rec.id),
                status=rec.status.value,
                quality_score=rec.quality_score,
                duration_seconds=rec.duration_seconds,
            )

    return MeetingDetailResponse(
        **_meeting_fields(meeting, await service.participants(meeting)),
        attachments=[_attachment_to_response(a) for a in attachments],
        recording=recording,
    )


@router.post("/{meeting_id}/accept", response_model=MeetingResponse)
async def accept_meeting(
    meeting_id: uuid.UUID,
    request: Request,
    user: User = Depends(get_current_user),
) -> MeetingResponse:
    service = _get_meeting_service(request)
    return _meeting_to_response(await service.accept_meeting(user, meeting_id))


@router.post("/{meeting_id}/complete", response_model=MeetingResponse)
async def complete_meeting(
    meeting_id: uuid.UUID,
    request: Request,
    user: User = Depends(get_current_user),
) -> MeetingResponse:
    service = _get_meeting_service(request)
    return _meeting_to_response(await service.complete_meeting(user, meeting_id))


@router.post("/{meeting_id}/cancel", response_model=MeetingResponse)
async def cancel_meeting(
    meeting_id: uuid.UUID,
    request: Request,
    user: User = Depends(get_current_user),
) -> MeetingResponse:
    service = _get_meeting_service(request)
    meeting = await service.cancel_meeting(user, meeting_id)
    await record_audit(request, user, AuditAction.UPDATE, "Meeting", meeting_id, {"status": "CANCELLED"})
    return _meeting_to_response(meeting)


@router.post("/{meeting_id}/form", response_model=MeetingResponse)
async def submit_form(
    meeting_id: uuid.UUID,
    body: MeetingForm,
    request: Request,
    user: User = Depends(get_current_user),
) -> MeetingResponse:
    service = _get_meeting_service(request)
    return _meeting_to_response(await service.submit_form(user, meeting_id, body))


@router.put("/{meeting_id}/notes", response_model=MeetingResponse)
async def update_notes(
    meeting_id: uuid.UUID,
    body: NotesUpdate,
    request: Request,
    user: User = Depends(get_current_user),
) -> MeetingResponse:
    service = _get_meeting_service(request)
    return _meeting_to_response(await service.update_notes(user, meeting_id, body.notes))


@router.get("/{meeting_id}/attachments", response_model=list[AttachmentResponse])
async def list_attachments(
    meeting_id: uuid.UUID,
    request: Request,
    user: User = Depends(get_current_user),
) -> list[AttachmentResponse]:
    service = _get_meeting_service(request)
    return [_attachment_to_response(a) for a in await service.list_attachments(user, meeting_id)]


@router.post(
    "/{meeting_id}/attachments",
    response_model=AttachmentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def upload_attachment(
    meeting_id: uuid.UUID,
    request: Request,
    file: UploadFile = File(...),
    user: User = Depends(get_current_user),
) -> AttachmentResponse:
    service = _get_meeting_service(request)
    data = await file.read()
    attachment = await service.upload_attachment(
        user,
        meeting_id,
        file_name=file.filename or "file",
        content_type=file.content_type or "application/octet-stream",
        data=data,
    )
    return _attachment_to_response(attachment)


@router.get("/{meeting_id}/attachments/{attachment_id}")
async def download_attachment(
    meeting_id: uuid.UUID,
    attachment_id: uuid.UUID,
    request: Request,
    user: User = Depends(get_current_user),
) -> Response:
    service = _get_meeting_service(request)
    attachment, data = await service.download_attachment(user, meeting_id, attachment_id)
    return Response(
        content=data,
        media_type=attachment.content_type,
        headers={
            "Content-Disposition": f"attachment; filename*=UTF-8''{quote(attachment.file_name)}"
        },
    )
