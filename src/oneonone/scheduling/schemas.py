"""Pydantic v2 schemas for recurring schedules."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from src.oneonone.scheduling.recurrence import Frequency, RecurrenceRule


class ScheduleState(str, Enum):
    """Derived lifecycle state; stored as is_active + deleted_at."""

    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    DELETED = "DELETED"


class RecurringSchedule(BaseModel):
    id: uuid.UUID
    employee_id: uuid.UUID
    reporter_id: uuid.UUID
    frequency: Frequency
    day_of_week: int
    time_of_day: str
    is_active: bool = True
    next_meeting_date: datetime | None = None
    last_generated_at: datetime | None = None
    deleted_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def state(self) -> ScheduleState:
        if self.deleted_at is not None:
            return ScheduleState.DELETED
        return ScheduleState.ACTIVE if self.is_active else ScheduleState.PAUSED

    @property
    def rule(self) -> RecurrenceRule:
        return RecurrenceRule(
            frequency=self.frequency,
            day_of_week=self.day_of_week,
            time_of_day=self.time_of_day,
        )


class ScheduleCreate(BaseModel):
    """Create request. employee_id is optional here so a missing employee
    surfaces as a domain validation error with a readable message."""

    employee_id: uuid.UUID | None = None
    reporter_id: uuid.UUID | None = Field(
        default=None, description="Super admins may create on behalf of a reporter"
    )
    frequency: Frequency = Frequency.BIWEEKLY
    day_of_week: int = Field(ge=0, le=6)
    time_of_day: str = Field(pattern=r"^([01]\d|2[0-3]):[0-5]\d$")
    propose_first_meeting: bool = True


class ScheduleUpdate(BaseModel):
    frequency: Frequency | None = None
    day_of_week: int | None = Field(default=None, ge=0, le=6)
    time_of_day: str | None = Field(default=None, pattern=r"^([01]\d|2[0-3]):[0-5]\d$")


class ScheduleResult(BaseModel):
    """A schedule plus the side effects of the operation that produced it."""

    schedule: RecurringSchedule
    cancelled_meeting_count: int = 0
    proposed_meeting_id: uuid.UUID | None = None


class MaterializeFailure(BaseModel):
    schedule_id: uuid.UUID
    error: str


class MaterializeReport(BaseModel):
    created_meeting_ids: list[uuid.UUID] = Field(default_factory=list)
    failures: list[MaterializeFailure] = Field(default_factory=list)
