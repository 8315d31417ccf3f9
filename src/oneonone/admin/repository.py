"""Admin repository -- audit log writes/reads and the system settings row."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.oneonone.admin.models import AuditLogModel, SystemSettingsModel
from src.oneonone.admin.schemas import (
    SYSTEM_SETTINGS_ID,
    AuditAction,
    AuditEntry,
    AuditLog,
    AuditLogFilter,
    SystemSettings,
    SystemSettingsUpdate,
)


def _model_to_audit_log(model: AuditLogModel) -> AuditLog:
    return AuditLog(
        id=model.id,
        user_id=model.user_id,
        action=AuditAction(model.action),
        entity_type=model.entity_type,
        entity_id=model.entity_id,
        details=model.details or {},
        ip_address=model.ip_address,
        user_agent=model.user_agent,
        created_at=model.created_at,
    )


def _model_to_settings(model: SystemSettingsModel) -> SystemSettings:
    return SystemSettings(
        analysis_model=model.analysis_model,
        transcription_model=model.transcription_model,
        max_recording_minutes=model.max_recording_minutes,
        enable_email_reminders=model.enable_email_reminders,
        updated_at=model.updated_at,
    )


class AdminRepository:
    """Async persistence for audit logs and system settings.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(
        self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]
    ) -> None:
        self._session_factory = session_factory

    # ── Audit Log ────────────────────────────────────────────────────────

    async def add_audit_log(self, entry: AuditEntry) -> AuditLog:
        async for session in self._session_factory():
            model = AuditLogModel(
                user_id=entry.user_id,
                action=entry.action.value,
                entity_type=entry.entity_type,
                entity_id=entry.entity_id,
                details=entry.details,
                ip_address=entry.ip_address,
                user_agent=entry.user_agent,
            )
            session.add(model)
            await session.commit()
            await session.refresh(model)
            return _model_to_audit_log(model)

    async def list_audit_logs(self, filters: AuditLogFilter) -> list[AuditLog]:
        """Newest first."""
        async for session in self._session_factory():
            stmt = select(AuditLogModel)
            if filters.user_id is not None:
                stmt = stmt.where(AuditLogModel.user_id == filters.user_id)
            if filters.action is not None:
                stmt = stmt.where(AuditLogModel.action == filters.action.value)
            if filters.entity_type is not None:
                stmt = stmt.where(AuditLogModel.entity_type == filters.entity_type)
            stmt = (
                stmt.order_by(AuditLogModel.created_at.desc())
                .offset(filters.offset)
                .limit(filters.limit)
            )
            result = await session.execute(stmt)
            return [_model_to_audit_log(m) for m in result.scalars().all()]

    # ── System Settings ──────────────────────────────────────────────────

    async def get_system_settings(self) -> SystemSettings:
        """Return the settings row, or defaults when it was never written."""
        async for session in self._session_factory():
            model = await session.get(SystemSettingsModel, SYSTEM_SETTINGS_ID)
            return _model_to_settings(model) if model else SystemSettings()

    async def update_system_settings(self, data: SystemSettingsUpdate) -> SystemSettings:
        """Upsert the settings row with the provided fields."""
        async for session in self._session_factory():
            model = await session.get(SystemSettingsModel, SYSTEM_SETTINGS_ID)
            if model is None:
                defaults = SystemSettings()
                model = SystemSettingsModel(
                    id=SYSTEM_SETTINGS_ID,
                    max_recording_minutes=defaults.max_recording_minutes,
                    enable_email_reminders=defaults.enable_email_reminders,
                )
                session.add(model)

            for field, value in data.model_dump(exclude_unset=True).items():
                setattr(model, field, value)
            model.updated_at = datetime.now(timezone.utc)
            await session.commit()
            await session.refresh(model)
            return _model_to_settings(model)
