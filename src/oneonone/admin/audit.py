"""Audit trail writer.

record() never raises: a failed audit write is logged and the operation
that triggered it carries on.
"""

from __future__ import annotations

import uuid
from typing import Any

import structlog
from fastapi import Request

from src.oneonone.admin.repository import AdminRepository
from src.oneonone.admin.schemas import AuditAction, AuditEntry

logger = structlog.get_logger(__name__)


class AuditLogger:
    def __init__(self, repository: AdminRepository) -> None:
        self._repository = repository

    async def record(
        self,
        user_id: uuid.UUID | None,
        action: AuditAction,
        entity_type: str,
        entity_id: Any = None,
        details: dict[str, Any] | None = None,
        request: Request | None = None,
    ) -> bool:
        """Persist one audit entry. Returns False when the write failed."""
        ip_address = None
        user_agent = None
        if request is not None:
            forwarded = request.headers.get("x-forwarded-for")
            if forwarded:
                ip_address = forwarded.split(",")[0].strip()
            elif request.client is not None:
                ip_address = request.client.host
            user_agent = request.headers.get("user-agent")

        entry = AuditEntry(
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id) if entity_id is not None else None,
            details=details or {},
            ip_address=ip_address,
            user_agent=user_agent,
        )
        try:
            await self._repository.add_audit_log(entry)
        except Exception:
            logger.warning(
                "audit.write_failed",
                action=action.value,
                entity_type=entity_type,
                entity_id=entry.entity_id,
                exc_info=True,
            )
            return False
        return True
