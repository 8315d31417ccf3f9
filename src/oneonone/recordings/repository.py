"""Recording repository -- async CRUD on meeting_recordings.

transition() is the only way status changes. It locks the row, checks the
transition table (and the caller's expected status, if given) and writes
the new status in one transaction, so two workers cannot both claim the
same stage.
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator, Callable
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.oneonone.meetings.models import MeetingModel
from src.oneonone.meetings.repository import _model_to_meeting
from src.oneonone.meetings.schemas import Meeting
from src.oneonone.recordings.models import MeetingRecordingModel
from src.oneonone.recordings.schemas import (
    MeetingRecording,
    QualityDetails,
    RecordingStatus,
    Sentiment,
    SuggestedTodo,
)
from src.oneonone.recordings.state import InvalidTransition, check_transition

_UPDATABLE = frozenset({
    "audio_key",
    "file_size",
    "language",
    "transcript",
    "summary",
    "key_points",
    "sentiment",
    "quality_score",
    "quality_details",
    "suggested_todos",
    "error_message",
    "duration_seconds",
    "processed_at",
})


def _to_column(value: Any) -> Any:
    """Serialize payload models (and lists of them) for JSON columns."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, list):
        return [_to_column(v) for v in value]
    return value


def _model_to_recording(model: MeetingRecordingModel) -> MeetingRecording:
    return MeetingRecording(
        id=model.id,
        meeting_id=model.meeting_id,
        status=RecordingStatus(model.status),
        audio_key=model.audio_key,
        file_size=model.file_size,
        language=model.language,
        transcript=model.transcript,
        summary=model.summary,
        key_points=model.key_points or [],
        sentiment=Sentiment.model_validate(model.sentiment) if model.sentiment else None,
        quality_score=model.quality_score,
        quality_details=(
            QualityDetails.model_validate(model.quality_details)
            if model.quality_details
            else None
        ),
        suggested_todos=[SuggestedTodo.model_validate(t) for t in model.suggested_todos or []],
        error_message=model.error_message,
        duration_seconds=model.duration_seconds,
        processed_at=model.processed_at,
        created_at=model.created_at,
        updated_at=model.updated_at or model.created_at,
    )


class RecordingRepository:
    """Async persistence for meeting recordings.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(
        self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]
    ) -> None:
        self._session_factory = session_factory

    async def create_recording(self, meeting_id: uuid.UUID) -> MeetingRecording:
        """Insert an UPLOADING recording.

        Raises:
            ValueError: If the meeting already has a recording.
        """
        async for session in self._session_factory():
            model = MeetingRecordingModel(
                meeting_id=meeting_id,
                status=RecordingStatus.UPLOADING.value,
            )
            session.add(model)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise ValueError(f"Recording already exists for meeting {meeting_id}") from exc
            await session.refresh(model)
            return _model_to_recording(model)

    async def get_recording(self, recording_id: uuid.UUID) -> MeetingRecording | None:
        async for session in self._session_factory():
            model = await session.get(MeetingRecordingModel, recording_id)
            return _model_to_recording(model) if model else None

    async def get_by_meeting(self, meeting_id: uuid.UUID) -> MeetingRecording | None:
        async for session in self._session_factory():
            result = await session.execute(
                select(MeetingRecordingModel).where(
                    MeetingRecordingModel.meeting_id == meeting_id
                )
            )
            model = result.scalar_one_or_none()
            return _model_to_recording(model) if model else None

    async def transition(
        self,
        recording_id: uuid.UUID,
        target: RecordingStatus,
        values: dict[str, Any] | None = None,
        expected: RecordingStatus | None = None,
    ) -> MeetingRecording:
        """Move to `target` and write `values` in one commit.

        With `expected`, the move only happens if the row is still in that
        status when locked.

        Raises:
            ValueError: If the recording does not exist.
            InvalidTransition: If the row is not in `expected`, or the move
                is not in the transition table.
        """
        values = values or {}
        unknown = set(values) - _UPDATABLE
        if unknown:
            raise ValueError(f"Cannot update recording fields: {sorted(unknown)}")

        async for session in self._session_factory():
            result = await session.execute(
                select(MeetingRecordingModel)
                .where(MeetingRecordingModel.id == recording_id)
                .with_for_update()
            )
            model = result.scalar_one_or_none()
            if model is None:
                raise ValueError(f"Recording not found: {recording_id}")
            current = RecordingStatus(model.status)
            if expected is not None and current != expected:
                raise InvalidTransition(current, target)
            check_transition(current, target)

            model.status = target.value
            for field, value in values.items():
                setattr(model, field, _to_column(value))
            model.updated_at = datetime.now(timezone.utc)
            await session.commit()
            await session.refresh(model)
            return _model_to_recording(model)

    async def update_suggested_todos(
        self, recording_id: uuid.UUID, todos: list[SuggestedTodo]
    ) -> MeetingRecording:
        async for session in self._session_factory():
            model = await session.get(MeetingRecordingModel, recording_id)
            if model is None:
                raise ValueError(f"Recording not found: {recording_id}")
            model.suggested_todos = _to_column(todos)
            model.updated_at = datetime.now(timezone.utc)
            await session.commit()
            await session.refresh(model)
            return _model_to_recording(model)

    async def delete_recording(self, recording_id: uuid.UUID) -> bool:
        async for session in self._session_factory():
            result = await session.execute(
                delete(MeetingRecordingModel).where(MeetingRecordingModel.id == recording_id)
            )
            await session.commit()
            return bool(result.rowcount)

    async def list_completed_since(
        self,
        since: datetime,
        reporter_id: uuid.UUID | None = None,
    ) -> list[tuple[MeetingRecording, Meeting]]:
        """COMPLETED recordings with sentiment for meetings dated on or after `since`.

        Newest meeting first.
        """
        async for session in self._session_factory():
            stmt = (
                select(MeetingRecordingModel, MeetingModel)
                .join(MeetingModel, MeetingModel.id == MeetingRecordingModel.meeting_id)
                .where(
                    MeetingRecordingModel.status == RecordingStatus.COMPLETED.value,
                    MeetingRecordingModel.sentiment.is_not(None),
                    MeetingModel.meeting_date >= since,
                )
            )
            if reporter_id is not None:
                stmt = stmt.where(MeetingModel.reporter_id == reporter_id)
            stmt = stmt.order_by(MeetingModel.meeting_date.desc())
            result = await session.execute(stmt)
            return [
                (_model_to_recording(recording), _model_to_meeting(meeting))
                for recording, meeting in result.all()
            ]
