"""REST endpoints for a meeting's audio recording.

Flow: POST start (UPLOADING) -> POST upload (UPLOADED) -> POST process
(202; transcription and analysis run as a background task) -> poll
GET status until COMPLETED or FAILED.
"""

from __future__ import annotations

import uuid

import structlog
from fastapi import (
    APIRouter,
    BackgroundTasks,
    Depends,
    File,
    Form,
    HTTPException,
    Request,
    Response,
    UploadFile,
    status,
)

from src.oneonone.admin.schemas import AuditAction
from src.oneonone.api.deps import get_current_user, record_audit
from src.oneonone.api.v1.todos import TodoResponse, _todo_to_response
from src.oneonone.config import get_settings
from src.oneonone.directory.schemas import User
from src.oneonone.recordings.processor import RecordingProcessor
from src.oneonone.recordings.schemas import (
    MeetingRecording,
    ProcessRequest,
    RecordingStatus,
    RecordingStatusRead,
)
from src.oneonone.recordings.service import RecordingService
from src.oneonone.todos.service import TodoService

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/meetings/{meeting_id}/recording", tags=["recordings"])


# ── Dependency Injection Helpers ─────────────────────────────────────────────


def _get_recording_service(request: Request) -> RecordingService:
    service = getattr(request.app.state, "recording_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Recording service not initialized",
        )
    return service


def _get_recording_processor(request: Request) -> RecordingProcessor:
    processor = getattr(request.app.state, "recording_processor", None)
    if processor is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Recording processor not initialized",
        )
    return processor


def _get_todo_service(request: Request) -> TodoService:
    service = getattr(request.app.state, "todo_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Todo service not initialized",
        )
    return service


async def _enforce_upload_limit(request: Request, user: User) -> None:
    """Per-user hourly upload cap. Skipped when no rate limiter is configured."""
    limiter = getattr(request.app.state, "rate_limiter", None)
    if limiter is None:
        return
    limit = get_settings().RATE_LIMIT_UPLOADS_PER_HOUR
    try:
        allowed = await limiter.hit("recording_upload", str(user.id), limit)
    except Exception:
        logger.warning("recording.rate_limit_unavailable", user_id=str(user.id), exc_info=True)
        return
    if not allowed:
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many uploads. Please try again later.",
        )


# ── Endpoints ────────────────────────────────────────────────────────────────


@router.get("", response_model=MeetingRecording | None)
async def get_recording(
    meeting_id: uuid.UUID,
    request: Request,
    user: User = Depends(get_current_user),
) -> MeetingRecording | None:
    """Full recording with transcript and analysis, or null if none exists."""
    service = _get_recording_service(request)
    return await service.get_recording(user, meeting_id)


@router.get("/status", response_model=RecordingStatusRead)
async def get_recording_status(
    meeting_id: uuid.UUID,
    request: Request,
    user: User = Depends(get_current_user),
) -> RecordingStatusRead:
    service = _get_recording_service(request)
    return await service.get_status(user, meeting_id)


@router.get("/audio")
async def download_audio(
    meeting_id: uuid.UUID,
    request: Request,
    user: User = Depends(get_current_user),
) -> Response:
    service = _get_recording_service(request)
    data, media_type = await service.get_audio(user, meeting_id)
    return Response(content=data, media_type=media_type)


@router.post("/start", response_model=MeetingRecording, status_code=status.HTTP_201_CREATED)
async def start_recording(
    meeting_id: uuid.UUID,
    request: Request,
    user: User = Depends(get_current_user),
) -> MeetingRecording:
    service = _get_recording_service(request)
    recording = await service.start_recording(user, meeting_id)
    await record_audit(
        request, user, AuditAction.CREATE, "MeetingRecording", recording.id,
        {"meeting_id": str(meeting_id)},
    )
    return recording


@router.post("/upload", response_model=MeetingRecording)
async def upload_recording(
    meeting_id: uuid.UUID,
    request: Request,
    file: UploadFile = File(...),
    duration_seconds: int = Form(...),
    user: User = Depends(get_current_user),
) -> MeetingRecording:
    """Store the captured audio. The recording must be UPLOADING."""
    service = _get_recording_service(request)
    await _enforce_upload_limit(request, user)
    data = await file.read()
    return await service.store_audio(
        user,
        meeting_id,
        data=data,
        content_type=file.content_type or "audio/webm",
        duration_seconds=duration_seconds,
    )


@router.post(
    "/process",
    response_model=RecordingStatusRead,
    status_code=status.HTTP_202_ACCEPTED,
)
async def process_recording(
    meeting_id: uuid.UUID,
    request: Request,
    background_tasks: BackgroundTasks,
    body: ProcessRequest | None = None,
    user: User = Depends(get_current_user),
) -> RecordingStatusRead:
    """Queue transcription and analysis; poll /status for progress."""
    service = _get_recording_service(request)
    processor = _get_recording_processor(request)
    body = body or ProcessRequest()

    job = await service.prepare_processing(user, meeting_id, body.language)
    background_tasks.add_task(
        processor.process,
        job.recording_id,
        job.employee_name,
        job.reporter_name,
        job.language,
    )
    return RecordingStatusRead(status=RecordingStatus.TRANSCRIBING, is_terminal=False)


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def delete_recording(
    meeting_id: uuid.UUID,
    request: Request,
    user: User = Depends(get_current_user),
) -> Response:
    service = _get_recording_service(request)
    await service.delete_recording(user, meeting_id)
    await record_audit(
        request, user, AuditAction.DELETE, "MeetingRecording", None,
        {"meeting_id": str(meeting_id)},
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/suggestions/{index}/promote",
    response_model=TodoResponse,
    status_code=status.HTTP_201_CREATED,
)
async def promote_suggestion(
    meeting_id: uuid.UUID,
    index: int,
    request: Request,
    user: User = Depends(get_current_user),
) -> TodoResponse:
    """Turn one suggested action item into a todo."""
    service = _get_todo_service(request)
    return _todo_to_response(await service.promote_suggestion(user, meeting_id, index))
