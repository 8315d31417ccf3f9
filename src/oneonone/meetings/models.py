"""Meeting persistence models.

- MeetingModel: one scheduled, proposed, held or cancelled one-on-one,
  including the employee's form answers and reminder bookkeeping.
- AttachmentModel: files uploaded against a meeting (bytes live in blob
  storage; only the key is stored here).
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import BigInteger, Boolean, DateTime, ForeignKey, Index, String, Text, func, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from src.oneonone.core.database import Base


class MeetingModel(Base):
    """A one-on-one between an employee and a reporter."""

    __tablename__ = "meetings"
    __table_args__ = (
        Index("ix_meetings_schedule_date", "recurring_schedule_id", "meeting_date"),
        Index("ix_meetings_status_date", "status", "meeting_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True
    )
    reporter_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True
    )
    meeting_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        default="SCHEDULED",
        server_default=text("'SCHEDULED'"),
    )
    recurring_schedule_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("recurring_schedules.id"), nullable=True
    )
    proposed_by_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=True
    )

    # Employee form
    check_in_personal: Mapped[str | None] = mapped_column(Text, nullable=True)
    check_in_professional: Mapped[str | None] = mapped_column(Text, nullable=True)
    priority_goal_professional: Mapped[str | None] = mapped_column(Text, nullable=True)
    priority_goal_agency: Mapped[str | None] = mapped_column(Text, nullable=True)
    progress_report: Mapped[str | None] = mapped_column(Text, nullable=True)
    good_news: Mapped[str | None] = mapped_column(Text, nullable=True)
    support_needed: Mapped[str | None] = mapped_column(Text, nullable=True)
    priority_discussions: Mapped[str | None] = mapped_column(Text, nullable=True)
    heads_up: Mapped[str | None] = mapped_column(Text, nullable=True)
    anything_else: Mapped[str | None] = mapped_column(Text, nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    reminder_24h_sent: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=text("false")
    )
    reminder_1h_sent: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=text("false")
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        onupdate=func.now(),
        nullable=True,
    )


class AttachmentModel(Base):
    """File attached to a meeting."""

    __tablename__ = "attachments"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )
    meeting_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("meetings.id"), nullable=False, index=True
    )
    uploaded_by_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )
    file_name: Mapped[str] = mapped_column(String(500), nullable=False)
    content_type: Mapped[str] = mapped_column(String(200), nullable=False)
    size_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False)
    storage_key: Mapped[str] = mapped_column(String(1000), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
