"""Pydantic v2 schemas for audit logs and system settings."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

SYSTEM_SETTINGS_ID = "system"


class AuditAction(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    SETTINGS_CHANGE = "SETTINGS_CHANGE"
    EXPORT = "EXPORT"
    LOGIN = "LOGIN"


class AuditEntry(BaseModel):
    """What to record. Built by callers, persisted by AuditLogger."""

    user_id: uuid.UUID | None = None
    action: AuditAction
    entity_type: str
    entity_id: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)
    ip_address: str | None = None
    user_agent: str | None = None


class AuditLog(AuditEntry):
    id: uuid.UUID
    created_at: datetime | None = None


class AuditLogFilter(BaseModel):
    user_id: uuid.UUID | None = None
    action: AuditAction | None = None
    entity_type: str | None = None
    limit: int = Field(default=100, ge=1, le=1000)
    offset: int = Field(default=0, ge=0)


class SystemSettings(BaseModel):
    """Runtime settings. Model names fall back to env configuration when unset."""

    analysis_model: str | None = None
    transcription_model: str | None = None
    max_recording_minutes: int = Field(default=25, ge=1, le=240)
    enable_email_reminders: bool = True
    updated_at: datetime | None = None

    @property
    def max_recording_seconds(self) -> int:
        return self.max_recording_minutes * 60


class SystemSettingsUpdate(BaseModel):
    analysis_model: str | None = None
    transcription_model: str | None = None
    max_recording_minutes: int | None = Field(default=None, ge=1, le=240)
    enable_email_reminders: bool | None = None
