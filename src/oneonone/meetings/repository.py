"""Meeting repository -- async CRUD for meetings and attachments.

Follows the session_factory callable pattern: every method opens its own
session, commits, and returns Pydantic schemas rather than ORM objects.
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator, Callable
from datetime import datetime, timezone
from typing import Literal

import structlog
from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.oneonone.meetings.models import AttachmentModel, MeetingModel
from src.oneonone.meetings.schemas import (
    FORM_FIELDS,
    OPEN_STATUSES,
    Attachment,
    Meeting,
    MeetingCreate,
    MeetingFilter,
    MeetingForm,
    MeetingStatus,
)

logger = structlog.get_logger(__name__)


# ── Serialization Helpers ───────────────────────────────────────────────────


def _model_to_meeting(model: MeetingModel) -> Meeting:
    return Meeting(
        id=model.id,
        employee_id=model.employee_id,
        reporter_id=model.reporter_id,
        meeting_date=model.meeting_date,
        status=MeetingStatus(model.status),
        recurring_schedule_id=model.recurring_schedule_id,
        proposed_by_id=model.proposed_by_id,
        form=MeetingForm(**{name: getattr(model, name) for name in FORM_FIELDS}),
        notes=model.notes,
        reminder_24h_sent=model.reminder_24h_sent,
        reminder_1h_sent=model.reminder_1h_sent,
        created_at=model.created_at,
        updated_at=model.updated_at or model.created_at,
    )


def _model_to_attachment(model: AttachmentModel) -> Attachment:
    return Attachment(
        id=model.id,
        meeting_id=model.meeting_id,
        uploaded_by_id=model.uploaded_by_id,
        file_name=model.file_name,
        content_type=model.content_type,
        size_bytes=model.size_bytes,
        storage_key=model.storage_key,
        created_at=model.created_at,
    )


# ── Repository ──────────────────────────────────────────────────────────────


class MeetingRepository:
    """Async persistence for meetings and attachments.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(
        self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]
    ) -> None:
        self._session_factory = session_factory

    async def _load(self, session: AsyncSession, meeting_id: uuid.UUID) -> MeetingModel:
        model = await session.get(MeetingModel, meeting_id)
        if model is None:
            raise ValueError(f"Meeting not found: {meeting_id}")
        return model

    # ── Meetings ─────────────────────────────────────────────────────────

    async def create_meeting(self, data: MeetingCreate) -> Meeting:
        async for session in self._session_factory():
            model = MeetingModel(
                employee_id=data.employee_id,
                reporter_id=data.reporter_id,
                meeting_date=data.meeting_date,
                status=data.status.value,
                recurring_schedule_id=data.recurring_schedule_id,
                proposed_by_id=data.proposed_by_id,
                notes=data.notes,
            )
            session.add(model)
            await session.commit()
            await session.refresh(model)
            return _model_to_meeting(model)

    async def get_meeting(self, meeting_id: uuid.UUID) -> Meeting | None:
        async for session in self._session_factory():
            model = await session.get(MeetingModel, meeting_id)
            return _model_to_meeting(model) if model else None

    async def list_meetings(self, filters: MeetingFilter) -> list[Meeting]:
        """List meetings newest first."""
        async for session in self._session_factory():
            stmt = select(MeetingModel)
            if filters.status is not None:
                stmt = stmt.where(MeetingModel.status == filters.status.value)
            if filters.employee_id is not None:
                stmt = stmt.where(MeetingModel.employee_id == filters.employee_id)
            if filters.recurring_schedule_id is not None:
                stmt = stmt.where(
                    MeetingModel.recurring_schedule_id == filters.recurring_schedule_id
                )
            if filters.visible_to_reporter_id is not None:
                visibility = [MeetingModel.reporter_id == filters.visible_to_reporter_id]
                if filters.visible_employee_ids:
                    visibility.append(
                        MeetingModel.employee_id.in_(filters.visible_employee_ids)
                    )
                stmt = stmt.where(or_(*visibility))
            stmt = stmt.order_by(MeetingModel.meeting_date.desc()).limit(filters.limit)
            result = await session.execute(stmt)
            return [_model_to_meeting(m) for m in result.scalars().all()]

    async def update_status(self, meeting_id: uuid.UUID, status: MeetingStatus) -> Meeting:
        """Raises ValueError if the meeting does not exist."""
        async for session in self._session_factory():
            model = await self._load(session, meeting_id)
            model.status = status.value
            model.updated_at = datetime.now(timezone.utc)
            await session.commit()
            await session.refresh(model)
            return _model_to_meeting(model)

    async def update_notes(self, meeting_id: uuid.UUID, notes: str | None) -> Meeting:
        async for session in self._session_factory():
            model = await self._load(session, meeting_id)
            model.notes = notes
            model.updated_at = datetime.now(timezone.utc)
            await session.commit()
            await session.refresh(model)
            return _model_to_meeting(model)

    async def save_form(self, meeting_id: uuid.UUID, form: MeetingForm) -> Meeting:
        """Store the employee's answers and mark the meeting COMPLETED."""
        async for session in self._session_factory():
            model = await self._load(session, meeting_id)
            for name, value in form.model_dump().items():
                setattr(model, name, value)
            model.status = MeetingStatus.COMPLETED.value
            model.updated_at = datetime.now(timezone.utc)
            await session.commit()
            await session.refresh(model)
            return _model_to_meeting(model)

    async def cancel_upcoming_for_schedule(
        self, schedule_id: uuid.UUID, after: datetime
    ) -> int:
        """Cancel open (SCHEDULED/PROPOSED) meetings of a schedule dated after `after`.

        Returns:
            Number of meetings cancelled.
        """
        async for session in self._session_factory():
            stmt = (
                update(MeetingModel)
                .where(
                    MeetingModel.recurring_schedule_id == schedule_id,
                    MeetingModel.status.in_([s.value for s in OPEN_STATUSES]),
                    MeetingModel.meeting_date > after,
                )
                .values(
                    status=MeetingStatus.CANCELLED.value,
                    updated_at=datetime.now(timezone.utc),
                )
            )
            result = await session.execute(stmt)
            await session.commit()
            return result.rowcount or 0

    async def list_reminder_candidates(
        self,
        start: datetime,
        end: datetime,
        window: Literal["24h", "1h"],
    ) -> list[Meeting]:
        """SCHEDULED meetings in [start, end] whose reminder for `window` is unsent."""
        flag = MeetingModel.reminder_24h_sent if window == "24h" else MeetingModel.reminder_1h_sent
        async for session in self._session_factory():
            stmt = (
                select(MeetingModel)
                .where(
                    MeetingModel.status == MeetingStatus.SCHEDULED.value,
                    flag == False,  # noqa: E712
                    MeetingModel.meeting_date >= start,
                    MeetingModel.meeting_date <= end,
                )
                .order_by(MeetingModel.meeting_date)
            )
            result = await session.execute(stmt)
            return [_model_to_meeting(m) for m in result.scalars().all()]

    async def mark_reminder_sent(
        self, meeting_id: uuid.UUID, window: Literal["24h", "1h"]
    ) -> None:
        async for session in self._session_factory():
            model = await self._load(session, meeting_id)
            if window == "24h":
                model.reminder_24h_sent = True
            else:
                model.reminder_1h_sent = True
            await session.commit()

    # ── Attachments ──────────────────────────────────────────────────────

    async def add_attachment(
        self,
        meeting_id: uuid.UUID,
        uploaded_by_id: uuid.UUID,
        file_name: str,
        content_type: str,
        size_bytes: int,
        storage_key: str,
    ) -> Attachment:
        async for session in self._session_factory():
            model = AttachmentModel(
                meeting_id=meeting_id,
                uploaded_by_id=uploaded_by_id,
                file_name=file_name,
                content_type=content_type,
                size_bytes=size_bytes,
                storage_key=storage_key,
            )
            session.add(model)
            await session.commit()
            await session.refresh(model)
            return _model_to_attachment(model)

    async def list_attachments(self, meeting_id: uuid.UUID) -> list[Attachment]:
        async for session in self._session_factory():
            stmt = (
                select(AttachmentModel)
                .where(AttachmentModel.meeting_id == meeting_id)
                .order_by(AttachmentModel.created_at)
            )
            result = await session.execute(stmt)
            return [_model_to_attachment(m) for m in result.scalars().all()]

    async def get_attachment(self, attachment_id: uuid.UUID) -> Attachment | None:
        async for session in self._session_factory():
            model = await session.get(AttachmentModel, attachment_id)
            return _model_to_attachment(model) if model is not None else None
