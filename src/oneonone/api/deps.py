"""FastAPI dependencies for authentication and role checks.

The bearer token names the user; the user row itself is loaded from the
directory on every request so deactivation takes effect immediately.
"""

from __future__ import annotations

import uuid

from fastapi import Depends, HTTPException, Request, status

from src.oneonone.admin.schemas import AuditAction
from src.oneonone.core.permissions import require_role
from src.oneonone.core.security import email_domain_allowed, verify_token
from src.oneonone.directory.repository import DirectoryRepository
from src.oneonone.directory.schemas import Role, User


def _get_directory_repository(request: Request) -> DirectoryRepository:
    repo = getattr(request.app.state, "directory_repository", None)
    if repo is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Directory repository not initialized",
        )
    return repo


async def get_current_user(request: Request) -> User:
    """Extract and validate the current user from the Bearer JWT.

    Raises:
        HTTPException(401): Missing/invalid token, unknown or inactive user.
        HTTPException(403): Email outside the allowed domain.
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = verify_token(auth_header[7:], token_type="access")
    try:
        user_id = uuid.UUID(str(payload["sub"]))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )

    user = await _get_directory_repository(request).get_user(user_id)
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
        )
    if not email_domain_allowed(user.email):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Email domain not allowed",
        )
    return user


def require_roles(*roles: Role):
    """Dependency factory: the current user, if they hold one of roles."""

    async def _dependency(user: User = Depends(get_current_user)) -> User:
        require_role(user, *roles)
        return user

    return _dependency


# Alias for cleaner endpoint signatures
require_auth = Depends(get_current_user)


async def record_audit(
    request: Request,
    user: User | None,
    action: AuditAction,
    entity_type: str,
    entity_id: object = None,
    details: dict | None = None,
) -> None:
    """Write an audit entry if an AuditLogger is configured. Never raises."""
    audit_logger = getattr(request.app.state, "audit_logger", None)
    if audit_logger is None:
        return
    await audit_logger.record(
        user.id if user else None,
        action,
        entity_type,
        entity_id=entity_id,
        details=details,
        request=request,
    )
