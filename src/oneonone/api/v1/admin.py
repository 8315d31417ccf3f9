"""Super-admin endpoints: system settings and the audit trail."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from src.oneonone.admin.repository import AdminRepository
from src.oneonone.admin.schemas import (
    AuditAction,
    AuditLog,
    AuditLogFilter,
    SystemSettings,
    SystemSettingsUpdate,
)
from src.oneonone.api.deps import record_audit, require_roles
from src.oneonone.directory.schemas import Role, User

router = APIRouter(prefix="/admin", tags=["admin"])

_require_admin = require_roles(Role.SUPER_ADMIN)


def _get_admin_repository(request: Request) -> AdminRepository:
    repo = getattr(request.app.state, "admin_repository", None)
    if repo is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin repository not initialized",
        )
    return repo


@router.get("/settings", response_model=SystemSettings)
async def get_system_settings(
    request: Request,
    user: User = Depends(_require_admin),
) -> SystemSettings:
    return await _get_admin_repository(request).get_system_settings()


@router.put("/settings", response_model=SystemSettings)
async def update_system_settings(
    body: SystemSettingsUpdate,
    request: Request,
    user: User = Depends(_require_admin),
) -> SystemSettings:
    """Persist settings and drop the cached copy so the change applies immediately."""
    repo = _get_admin_repository(request)
    updated = await repo.update_system_settings(body)

    cache = getattr(request.app.state, "settings_cache", None)
    if cache is not None:
        cache.invalidate()

    await record_audit(
        request, user, AuditAction.SETTINGS_CHANGE, "SystemSettings", "system",
        body.model_dump(mode="json", exclude_unset=True),
    )
    return updated


@router.get("/audit-logs", response_model=list[AuditLog])
async def list_audit_logs(
    request: Request,
    user_id: uuid.UUID | None = Query(default=None),
    action: AuditAction | None = Query(default=None),
    entity_type: str | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    user: User = Depends(_require_admin),
) -> list[AuditLog]:
    repo = _get_admin_repository(request)
    return await repo.list_audit_logs(
        AuditLogFilter(
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            limit=limit,
            offset=offset,
        )
    )
