"""Outbound notification email schemas."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class NotificationKind(str, Enum):
    MEETING_SCHEDULED = "meeting_scheduled"
    MEETING_PROPOSED = "meeting_proposed"
    REMINDER_24H = "reminder_24h"
    REMINDER_1H = "reminder_1h"
    FORM_SUBMITTED = "form_submitted"
    TODO_ASSIGNED = "todo_assigned"


class EmailMessage(BaseModel):
    """A notification email; reply_to points replies at the other participant."""

    to: list[str] = Field(min_length=1)
    subject: str
    body_html: str
    kind: NotificationKind
    reply_to: str | None = None


class SentEmailResult(BaseModel):
    message_id: str
    thread_id: str
