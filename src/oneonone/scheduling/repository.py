"""Recurring schedule repository -- async CRUD on recurring_schedules."""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator, Callable
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.oneonone.scheduling.models import RecurringScheduleModel
from src.oneonone.scheduling.recurrence import Frequency, RecurrenceRule
from src.oneonone.scheduling.schemas import RecurringSchedule

_UPDATABLE = frozenset({
    "frequency",
    "day_of_week",
    "time_of_day",
    "is_active",
    "next_meeting_date",
    "last_generated_at",
    "deleted_at",
})


def _model_to_schedule(model: RecurringScheduleModel) -> RecurringSchedule:
    return RecurringSchedule(
        id=model.id,
        employee_id=model.employee_id,
        reporter_id=model.reporter_id,
        frequency=Frequency(model.frequency),
        day_of_week=model.day_of_week,
        time_of_day=model.time_of_day,
        is_active=model.is_active,
        next_meeting_date=model.next_meeting_date,
        last_generated_at=model.last_generated_at,
        deleted_at=model.deleted_at,
        created_at=model.created_at,
        updated_at=model.updated_at or model.created_at,
    )


class ScheduleRepository:
    """Async persistence for recurring schedules.

    Deleted schedules stay in the table (deleted_at set) so their meetings
    keep a valid back-reference; list/find queries never return them.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(
        self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]
    ) -> None:
        self._session_factory = session_factory

    async def create_schedule(
        self,
        employee_id: uuid.UUID,
        reporter_id: uuid.UUID,
        rule: RecurrenceRule,
        next_meeting_date: datetime,
    ) -> RecurringSchedule:
        async for session in self._session_factory():
            model = RecurringScheduleModel(
                employee_id=employee_id,
                reporter_id=reporter_id,
                frequency=rule.frequency.value,
                day_of_week=rule.day_of_week,
                time_of_day=rule.time_of_day,
                next_meeting_date=next_meeting_date,
            )
            session.add(model)
            await session.commit()
            await session.refresh(model)
            return _model_to_schedule(model)

    async def get_schedule(self, schedule_id: uuid.UUID) -> RecurringSchedule | None:
        """Fetch by id, including deleted rows."""
        async for session in self._session_factory():
            model = await session.get(RecurringScheduleModel, schedule_id)
            return _model_to_schedule(model) if model else None

    async def list_schedules(
        self, reporter_id: uuid.UUID | None = None
    ) -> list[RecurringSchedule]:
        """Non-deleted schedules, newest first, optionally for one reporter."""
        async for session in self._session_factory():
            stmt = select(RecurringScheduleModel).where(
                RecurringScheduleModel.deleted_at.is_(None)
            )
            if reporter_id is not None:
                stmt = stmt.where(RecurringScheduleModel.reporter_id == reporter_id)
            stmt = stmt.order_by(RecurringScheduleModel.created_at.desc())
            result = await session.execute(stmt)
            return [_model_to_schedule(m) for m in result.scalars().all()]

    async def find_active(
        self,
        reporter_id: uuid.UUID | None = None,
        employee_id: uuid.UUID | None = None,
        day_of_week: int | None = None,
        time_of_day: str | None = None,
    ) -> list[RecurringSchedule]:
        """Active, non-deleted schedules matching every given criterion."""
        async for session in self._session_factory():
            stmt = select(RecurringScheduleModel).where(
                RecurringScheduleModel.is_active == True,  # noqa: E712
                RecurringScheduleModel.deleted_at.is_(None),
            )
            if reporter_id is not None:
                stmt = stmt.where(RecurringScheduleModel.reporter_id == reporter_id)
            if employee_id is not None:
                stmt = stmt.where(RecurringScheduleModel.employee_id == employee_id)
            if day_of_week is not None:
                stmt = stmt.where(RecurringScheduleModel.day_of_week == day_of_week)
            if time_of_day is not None:
                stmt = stmt.where(RecurringScheduleModel.time_of_day == time_of_day)
            result = await session.execute(stmt)
            return [_model_to_schedule(m) for m in result.scalars().all()]

    async def list_due(self, before: datetime) -> list[RecurringSchedule]:
        """Active schedules whose next_meeting_date is at or before `before`."""
        async for session in self._session_factory():
            stmt = (
                select(RecurringScheduleModel)
                .where(
                    RecurringScheduleModel.is_active == True,  # noqa: E712
                    RecurringScheduleModel.deleted_at.is_(None),
                    RecurringScheduleModel.next_meeting_date.is_not(None),
                    RecurringScheduleModel.next_meeting_date <= before,
                )
                .order_by(RecurringScheduleModel.next_meeting_date)
            )
            result = await session.execute(stmt)
            return [_model_to_schedule(m) for m in result.scalars().all()]

    async def update_schedule(
        self, schedule_id: uuid.UUID, values: dict[str, Any]
    ) -> RecurringSchedule:
        """Write the given columns.

        Raises:
            ValueError: If the schedule does not exist or a column is not updatable.
        """
        unknown = set(values) - _UPDATABLE
        if unknown:
            raise ValueError(f"Cannot update schedule fields: {sorted(unknown)}")

        async for session in self._session_factory():
            model = await session.get(RecurringScheduleModel, schedule_id)
            if model is None:
                raise ValueError(f"Recurring schedule not found: {schedule_id}")

            for field, value in values.items():
                if isinstance(value, Frequency):
                    value = value.value
                setattr(model, field, value)
            model.updated_at = datetime.now(timezone.utc)
            await session.commit()
            await session.refresh(model)
            return _model_to_schedule(model)
