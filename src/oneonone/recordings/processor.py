"""Recording processing pipeline.

    (claimed by RecordingService) TRANSCRIBING -> ANALYZING -> COMPLETED

Runs as a background task after the process request has returned, so
process() never raises: any failure is written to the recording as
FAILED with its message. Each stage move names the stage it leaves; a
run that finds the recording already moved on stops quietly and leaves
the other run's result alone. Stages are progress markers, not checkpoints;
a crash mid-stage leaves the recording in that stage.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from datetime import datetime, timezone

import structlog

from src.oneonone.admin.settings_cache import SettingsCache
from src.oneonone.core.errors import ValidationError
from src.oneonone.core.monitoring import recordings_processed_total
from src.oneonone.recordings.repository import RecordingRepository
from src.oneonone.recordings.schemas import MeetingRecording, RecordingStatus
from src.oneonone.recordings.state import InvalidTransition
from src.oneonone.services.analysis import AnalysisService
from src.oneonone.services.storage import LocalStorage, S3Storage

logger = structlog.get_logger(__name__)

MIN_AUDIO_BYTES = 1000


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RecordingProcessor:
    """Args:
        recording_repository: Recording persistence (status transitions).
        storage: Where the uploaded audio lives.
        analysis: Transcription and analysis adapter.
        settings_cache: Supplies the duration cap used to clamp reported durations.
        clock: Returns the current UTC instant.
    """

    def __init__(
        self,
        recording_repository: RecordingRepository,
        storage: S3Storage | LocalStorage,
        analysis: AnalysisService,
        settings_cache: SettingsCache,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._recordings = recording_repository
        self._storage = storage
        self._analysis = analysis
        self._settings_cache = settings_cache
        self._clock = clock

    async def process(
        self,
        recording_id: uuid.UUID,
        employee_name: str,
        reporter_name: str,
        language: str | None = None,
    ) -> MeetingRecording | None:
        """Run the pipeline on a TRANSCRIBING recording.

        Returns the final recording, or None when the recording is gone or
        is not (or no longer) this run's to process.
        """
        log = logger.bind(recording_id=str(recording_id))
        try:
            recording = await self._recordings.get_recording(recording_id)
            if recording is None or recording.status != RecordingStatus.TRANSCRIBING:
                log.warning(
                    "recording.process_skipped",
                    status=recording.status.value if recording else None,
                )
                return None

            if not recording.audio_key:
                raise ValidationError("Recording has no audio file")

            audio = await self._storage.load(recording.audio_key)
            if len(audio) < MIN_AUDIO_BYTES:
                raise ValidationError("Audio file is too small or empty")

            log.info("recording.transcribing", size_bytes=len(audio), language=language or "auto")
            filename = recording.audio_key.rsplit("/", 1)[-1]
            transcription = await self._analysis.transcribe(audio, filename, language)

            settings = await self._settings_cache.get()
            duration = round(transcription.duration_seconds) or recording.duration_seconds or 0
            recording = await self._recordings.transition(
                recording_id,
                RecordingStatus.ANALYZING,
                {
                    "transcript": transcription.text,
                    "language": transcription.language,
                    "duration_seconds": min(duration, settings.max_recording_seconds),
                },
                expected=RecordingStatus.TRANSCRIBING,
            )

            log.info("recording.analyzing", language=transcription.language)
            analysis = await self._analysis.analyze(transcription.text, employee_name, reporter_name)

            recording = await self._recordings.transition(
                recording_id,
                RecordingStatus.COMPLETED,
                {
                    "summary": analysis.summary,
                    "key_points": analysis.key_points,
                    "sentiment": analysis.sentiment,
                    "quality_score": analysis.quality_score,
                    "quality_details": analysis.quality_details,
                    "suggested_todos": analysis.suggested_todos,
                    "processed_at": self._clock(),
                },
                expected=RecordingStatus.ANALYZING,
            )
        except InvalidTransition as exc:
            log.warning("recording.process_superseded", error=exc.message)
            return None
        except Exception as exc:
            return await self._fail(recording_id, exc)

        recordings_processed_total.labels(status="completed").inc()
        log.info(
            "recording.completed",
            quality_score=recording.quality_score,
            suggested_todos=len(recording.suggested_todos),
        )
        return recording

    async def _fail(self, recording_id: uuid.UUID, exc: Exception) -> MeetingRecording | None:
        message = getattr(exc, "message", None) or str(exc) or type(exc).__name__
        recordings_processed_total.labels(status="failed").inc()
        logger.warning(
            "recording.failed",
            recording_id=str(recording_id),
            error=message,
            exc_info=True,
        )
        try:
            return await self._recordings.transition(
                recording_id, RecordingStatus.FAILED, {"error_message": message}
            )
        except Exception:
            logger.error(
                "recording.fail_state_not_saved",
                recording_id=str(recording_id),
                exc_info=True,
            )
            return None
