"""Pydantic v2 schemas for one-on-one meetings and their attachments."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class MeetingStatus(str, Enum):
    """Meeting lifecycle. Meetings are never deleted; CANCELLED is terminal."""

    PROPOSED = "PROPOSED"
    SCHEDULED = "SCHEDULED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


OPEN_STATUSES = (MeetingStatus.SCHEDULED, MeetingStatus.PROPOSED)


class MeetingForm(BaseModel):
    """Employee's pre-meeting form answers."""

    check_in_personal: str | None = None
    check_in_professional: str | None = None
    priority_goal_professional: str | None = None
    priority_goal_agency: str | None = None
    progress_report: str | None = None
    good_news: str | None = None
    support_needed: str | None = None
    priority_discussions: str | None = None
    heads_up: str | None = None
    anything_else: str | None = None


FORM_FIELDS = tuple(MeetingForm.model_fields)


class Meeting(BaseModel):
    id: uuid.UUID
    employee_id: uuid.UUID
    reporter_id: uuid.UUID
    meeting_date: datetime
    status: MeetingStatus = MeetingStatus.SCHEDULED
    recurring_schedule_id: uuid.UUID | None = None
    proposed_by_id: uuid.UUID | None = None
    form: MeetingForm = Field(default_factory=MeetingForm)
    notes: str | None = None
    reminder_24h_sent: bool = False
    reminder_1h_sent: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None


class MeetingCreate(BaseModel):
    employee_id: uuid.UUID
    reporter_id: uuid.UUID
    meeting_date: datetime
    status: MeetingStatus = MeetingStatus.SCHEDULED
    recurring_schedule_id: uuid.UUID | None = None
    proposed_by_id: uuid.UUID | None = None
    notes: str | None = None


class MeetingFilter(BaseModel):
    """Criteria for listing meetings.

    visible_to_reporter_id restricts results to meetings that reporter runs
    or whose employee is in visible_employee_ids.
    """

    status: MeetingStatus | None = None
    employee_id: uuid.UUID | None = None
    recurring_schedule_id: uuid.UUID | None = None
    visible_to_reporter_id: uuid.UUID | None = None
    visible_employee_ids: list[uuid.UUID] = Field(default_factory=list)
    limit: int = 200


class Attachment(BaseModel):
    id: uuid.UUID
    meeting_id: uuid.UUID
    uploaded_by_id: uuid.UUID
    file_name: str
    content_type: str
    size_bytes: int
    storage_key: str
    created_at: datetime | None = None


class MeetingRequest(BaseModel):
    """Ad hoc meeting creation by a reporter or super admin."""

    employee_id: uuid.UUID
    meeting_date: datetime
    reporter_id: uuid.UUID | None = Field(
        default=None, description="Super admins may create on behalf of a reporter"
    )
    notes: str | None = None
