"""Recording lifecycle operations called from the API.

Start, store audio, hand off to processing, read status, delete. The
heavy pipeline itself lives in RecordingProcessor and runs after the
response has been sent.
"""

from __future__ import annotations

import uuid

import structlog
from pydantic import BaseModel

from src.oneonone.admin.settings_cache import SettingsCache
from src.oneonone.core.errors import (
    ConflictError,
    NotFoundError,
    ServiceNotConfiguredError,
    ValidationError,
)
from src.oneonone.core.permissions import MANAGER_ROLES, require_role
from src.oneonone.directory.schemas import User
from src.oneonone.meetings.schemas import Meeting
from src.oneonone.meetings.service import MeetingService
from src.oneonone.recordings.repository import RecordingRepository
from src.oneonone.recordings.schemas import (
    MeetingRecording,
    RecordingStatus,
    RecordingStatusRead,
)
from src.oneonone.recordings.state import InvalidTransition
from src.oneonone.services.analysis import AnalysisService
from src.oneonone.services.storage import LocalStorage, S3Storage

logger = structlog.get_logger(__name__)

_EXTENSIONS = {
    "audio/webm": "webm",
    "audio/ogg": "ogg",
    "audio/mpeg": "mp3",
    "audio/mp4": "m4a",
    "audio/wav": "wav",
    "audio/x-wav": "wav",
}
_MEDIA_TYPES = {
    "webm": "audio/webm",
    "ogg": "audio/ogg",
    "mp3": "audio/mpeg",
    "m4a": "audio/mp4",
    "wav": "audio/wav",
}


class ProcessingJob(BaseModel):
    """Arguments for one RecordingProcessor.process() call."""

    recording_id: uuid.UUID
    employee_name: str
    reporter_name: str
    language: str | None = None


class RecordingService:
    """Args:
        recording_repository: Recording persistence.
        meeting_service: Resolves meetings with reporter-side access checks.
        storage: Blob storage for audio.
        settings_cache: Supplies the recording duration cap.
        analysis: Transcription/analysis adapter; processing needs it configured.
    """

    def __init__(
        self,
        recording_repository: RecordingRepository,
        meeting_service: MeetingService,
        storage: S3Storage | LocalStorage,
        settings_cache: SettingsCache,
        analysis: AnalysisService | None = None,
    ) -> None:
        self._recordings = recording_repository
        self._meetings = meeting_service
        self._storage = storage
        self._settings_cache = settings_cache
        self._analysis = analysis

    async def _meeting(self, actor: User, meeting_id: uuid.UUID) -> Meeting:
        require_role(actor, *MANAGER_ROLES)
        meeting, _ = await self._meetings.get_manageable(actor, meeting_id)
        return meeting

    async def _existing(self, meeting_id: uuid.UUID) -> MeetingRecording:
        recording = await self._recordings.get_by_meeting(meeting_id)
        if recording is None:
            raise NotFoundError("No recording found for this meeting")
        return recording

    async def get_recording(self, actor: User, meeting_id: uuid.UUID) -> MeetingRecording | None:
        meeting = await self._meeting(actor, meeting_id)
        return await self._recordings.get_by_meeting(meeting.id)

    async def get_status(self, actor: User, meeting_id: uuid.UUID) -> RecordingStatusRead:
        meeting = await self._meeting(actor, meeting_id)
        return RecordingStatusRead.of(await self._existing(meeting.id))

    async def get_audio(self, actor: User, meeting_id: uuid.UUID) -> tuple[bytes, str]:
        """Stored audio bytes and their media type."""
        meeting = await self._meeting(actor, meeting_id)
        recording = await self._existing(meeting.id)
        if not recording.audio_key:
            raise NotFoundError("No audio has been uploaded for this recording")
        data = await self._storage.load(recording.audio_key)
        extension = recording.audio_key.rsplit(".", 1)[-1]
        return data, _MEDIA_TYPES.get(extension, "application/octet-stream")

    async def start_recording(self, actor: User, meeting_id: uuid.UUID) -> MeetingRecording:
        """Create the recording in UPLOADING. A previous one must be deleted first."""
        meeting = await self._meeting(actor, meeting_id)
        if await self._recordings.get_by_meeting(meeting.id) is not None:
            raise ConflictError(
                "A recording already exists for this meeting. Delete it before recording again."
            )
        try:
            recording = await self._recordings.create_recording(meeting.id)
        except ValueError as exc:
            raise ConflictError(str(exc)) from exc

        logger.info("recording.started", meeting_id=str(meeting.id), recording_id=str(recording.id))
        return recording

    async def store_audio(
        self,
        actor: User,
        meeting_id: uuid.UUID,
        data: bytes,
        content_type: str,
        duration_seconds: int,
    ) -> MeetingRecording:
        """Persist the captured audio and move UPLOADING -> UPLOADED."""
        meeting = await self._meeting(actor, meeting_id)
        recording = await self._existing(meeting.id)

        settings = await self._settings_cache.get()
        cap = settings.max_recording_seconds
        if duration_seconds < 0:
            raise ValidationError("Recording duration cannot be negative")
        if duration_seconds > cap:
            raise ValidationError(
                f"Recording exceeds the {settings.max_recording_minutes}-minute limit"
            )
        if not data:
            raise ValidationError("No audio data provided")
        if recording.status != RecordingStatus.UPLOADING:
            raise ConflictError(
                f"Recording is {recording.status.value}; audio can only be stored while UPLOADING"
            )

        extension = _EXTENSIONS.get(content_type.split(";")[0].strip().lower(), "webm")
        key = f"recordings/{meeting.id}/{recording.id}.{extension}"
        await self._storage.save(key, data, content_type)

        updated = await self._recordings.transition(
            recording.id,
            RecordingStatus.UPLOADED,
            {"audio_key": key, "file_size": len(data), "duration_seconds": duration_seconds},
        )
        logger.info(
            "recording.uploaded",
            recording_id=str(recording.id),
            size_bytes=len(data),
            duration_seconds=duration_seconds,
        )
        return updated

    async def prepare_processing(
        self,
        actor: User,
        meeting_id: uuid.UUID,
        language: str | None = None,
    ) -> ProcessingJob:
        """Claim an UPLOADED recording for processing.

        The recording moves to TRANSCRIBING before this returns, so a second
        request for the same recording gets a ConflictError instead of
        queueing another job. Returns the job the caller schedules on
        RecordingProcessor.
        """
        if self._analysis is None or not self._analysis.configured:
            raise ServiceNotConfiguredError("Speech/LLM API key not configured")

        meeting = await self._meeting(actor, meeting_id)
        recording = await self._existing(meeting.id)
        if not recording.audio_key:
            raise ValidationError("Recording has no audio file. Please upload again.")
        if recording.status != RecordingStatus.UPLOADED:
            raise ConflictError(
                f"Recording is {recording.status.value}; only UPLOADED recordings can be processed"
            )

        users = await self._meetings.participants(meeting)
        employee = users.get(meeting.employee_id)
        reporter = users.get(meeting.reporter_id)

        try:
            await self._recordings.transition(
                recording.id, RecordingStatus.TRANSCRIBING, expected=RecordingStatus.UPLOADED
            )
        except InvalidTransition as exc:
            raise ConflictError("Recording is already being processed") from exc

        logger.info("recording.processing_queued", recording_id=str(recording.id), language=language)
        return ProcessingJob(
            recording_id=recording.id,
            employee_name=employee.name if employee else "Employee",
            reporter_name=reporter.name if reporter else "Reporter",
            language=language,
        )

    async def delete_recording(self, actor: User, meeting_id: uuid.UUID) -> None:
        """Remove the recording in any state, and its audio, so it can be re-recorded."""
        meeting = await self._meeting(actor, meeting_id)
        recording = await self._existing(meeting.id)

        if recording.audio_key:
            try:
                await self._storage.delete(recording.audio_key)
            except Exception:
                logger.warning(
                    "recording.audio_delete_failed",
                    recording_id=str(recording.id),
                    audio_key=recording.audio_key,
                    exc_info=True,
                )

        await self._recordings.delete_recording(recording.id)
        logger.info("recording.deleted", recording_id=str(recording.id), status=recording.status.value)
