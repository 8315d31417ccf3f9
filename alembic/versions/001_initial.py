"""Initial dashboard schema.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-17

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID, JSON

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_UUID_PK = dict(primary_key=True, server_default=sa.text("gen_random_uuid()"))


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        "departments",
        sa.Column("id", UUID(as_uuid=True), **_UUID_PK),
        sa.Column("name", sa.String(200), nullable=False, unique=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "users",
        sa.Column("id", UUID(as_uuid=True), **_UUID_PK),
        sa.Column("email", sa.String(320), nullable=False, unique=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("role", sa.String(20), server_default=sa.text("'EMPLOYEE'")),
        sa.Column("department_id", UUID(as_uuid=True), sa.ForeignKey("departments.id"), nullable=True),
        sa.Column("reports_to_id", UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true")),
        *_timestamps(),
    )
    op.create_index("ix_users_email", "users", ["email"])
    op.create_index("ix_users_reports_to_id", "users", ["reports_to_id"])

    op.create_table(
        "recurring_schedules",
        sa.Column("id", UUID(as_uuid=True), **_UUID_PK),
        sa.Column("employee_id", UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("reporter_id", UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("frequency", sa.String(20), server_default=sa.text("'BIWEEKLY'")),
        sa.Column("day_of_week", sa.SmallInteger(), nullable=False),
        sa.Column("time_of_day", sa.String(5), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true")),
        sa.Column("next_meeting_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_generated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_recurring_schedules_employee_id", "recurring_schedules", ["employee_id"])
    op.create_index("ix_recurring_schedules_reporter_id", "recurring_schedules", ["reporter_id"])
    op.create_index(
        "ix_recurring_schedules_due", "recurring_schedules", ["is_active", "next_meeting_date"]
    )

    op.create_table(
        "meetings",
        sa.Column("id", UUID(as_uuid=True), **_UUID_PK),
        sa.Column("employee_id", UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("reporter_id", UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("meeting_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(20), server_default=sa.text("'SCHEDULED'")),
        sa.Column(
            "recurring_schedule_id",
            UUID(as_uuid=True),
            sa.ForeignKey("recurring_schedules.id"),
            nullable=True,
        ),
        sa.Column("proposed_by_id", UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("check_in_personal", sa.Text(), nullable=True),
        sa.Column("check_in_professional", sa.Text(), nullable=True),
        sa.Column("priority_goal_professional", sa.Text(), nullable=True),
        sa.Column("priority_goal_agency", sa.Text(), nullable=True),
        sa.Column("progress_report", sa.Text(), nullable=True),
        sa.Column("good_news", sa.Text(), nullable=True),
        sa.Column("support_needed", sa.Text(), nullable=True),
        sa.Column("priority_discussions", sa.Text(), nullable=True),
        sa.Column("heads_up", sa.Text(), nullable=True),
        sa.Column("anything_else", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("reminder_24h_sent", sa.Boolean(), server_default=sa.text("false")),
        sa.Column("reminder_1h_sent", sa.Boolean(), server_default=sa.text("false")),
        *_timestamps(),
    )
    op.create_index("ix_meetings_employee_id", "meetings", ["employee_id"])
    op.create_index("ix_meetings_reporter_id", "meetings", ["reporter_id"])
    op.create_index("ix_meetings_schedule_date", "meetings", ["recurring_schedule_id", "meeting_date"])
    op.create_index("ix_meetings_status_date", "meetings", ["status", "meeting_date"])

    op.create_table(
        "attachments",
        sa.Column("id", UUID(as_uuid=True), **_UUID_PK),
        sa.Column("meeting_id", UUID(as_uuid=True), sa.ForeignKey("meetings.id"), nullable=False),
        sa.Column("uploaded_by_id", UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("file_name", sa.String(500), nullable=False),
        sa.Column("content_type", sa.String(200), nullable=False),
        sa.Column("size_bytes", sa.BigInteger(), nullable=False),
        sa.Column("storage_key", sa.String(1000), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_attachments_meeting_id", "attachments", ["meeting_id"])

    op.create_table(
        "meeting_recordings",
        sa.Column("id", UUID(as_uuid=True), **_UUID_PK),
        sa.Column(
            "meeting_id",
            UUID(as_uuid=True),
            sa.ForeignKey("meetings.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("status", sa.String(20), server_default=sa.text("'UPLOADING'")),
        sa.Column("audio_key", sa.String(500), nullable=True),
        sa.Column("file_size", sa.BigInteger(), nullable=True),
        sa.Column("language", sa.String(20), nullable=True),
        sa.Column("transcript", sa.Text(), nullable=True),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("key_points", JSON(), nullable=True),
        sa.Column("sentiment", JSON(), nullable=True),
        sa.Column("quality_score", sa.Integer(), nullable=True),
        sa.Column("quality_details", JSON(), nullable=True),
        sa.Column("suggested_todos", JSON(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("duration_seconds", sa.Integer(), nullable=True),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_meeting_recordings_status", "meeting_recordings", ["status"])

    op.create_table(
        "todos",
        sa.Column("id", UUID(as_uuid=True), **_UUID_PK),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("assigned_to_id", UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("created_by_id", UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("meeting_id", UUID(as_uuid=True), sa.ForeignKey("meetings.id"), nullable=True),
        sa.Column("status", sa.String(20), server_default=sa.text("'NOT_STARTED'")),
        sa.Column("priority", sa.String(10), server_default=sa.text("'MEDIUM'")),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_todos_assigned_to_id", "todos", ["assigned_to_id"])
    op.create_index("ix_todos_created_by_id", "todos", ["created_by_id"])
    op.create_index("ix_todos_meeting_id", "todos", ["meeting_id"])

    op.create_table(
        "audit_logs",
        sa.Column("id", UUID(as_uuid=True), **_UUID_PK),
        sa.Column("user_id", UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("action", sa.String(30), nullable=False),
        sa.Column("entity_type", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.String(100), nullable=True),
        sa.Column("details", JSON(), server_default=sa.text("'{}'::json")),
        sa.Column("ip_address", sa.String(64), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_audit_logs_user_id", "audit_logs", ["user_id"])
    op.create_index("ix_audit_logs_created_at", "audit_logs", ["created_at"])

    op.create_table(
        "system_settings",
        sa.Column("id", sa.String(20), primary_key=True),
        sa.Column("analysis_model", sa.String(100), nullable=True),
        sa.Column("transcription_model", sa.String(100), nullable=True),
        sa.Column("max_recording_minutes", sa.Integer(), server_default=sa.text("25")),
        sa.Column("enable_email_reminders", sa.Boolean(), server_default=sa.text("true")),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )


def downgrade() -> None:
    for table in (
        "system_settings",
        "audit_logs",
        "todos",
        "meeting_recordings",
        "attachments",
        "meetings",
        "recurring_schedules",
        "users",
        "departments",
    ):
        op.drop_table(table)
