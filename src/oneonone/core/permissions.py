"""Role and ownership checks shared by the services.

Every helper either returns a bool or raises AuthorizationError; none of
them touch storage, so callers load the users involved first.
"""

from __future__ import annotations

import uuid

from src.oneonone.core.errors import AuthorizationError
from src.oneonone.directory.schemas import Role, User

MANAGER_ROLES = (Role.REPORTER, Role.SUPER_ADMIN)


def require_role(user: User, *roles: Role) -> None:
    """Raise AuthorizationError unless user has one of roles."""
    if user.role not in roles:
        raise AuthorizationError("Insufficient permissions")


def can_access_employee_data(user: User, employee: User) -> bool:
    """Super admins see everyone, users see themselves, reporters see direct reports."""
    if user.role == Role.SUPER_ADMIN:
        return True
    if user.id == employee.id:
        return True
    return user.role == Role.REPORTER and employee.reports_to_id == user.id


def can_view_meeting(
    user: User,
    employee_id: uuid.UUID,
    reporter_id: uuid.UUID,
    employee: User | None = None,
) -> bool:
    """Participants, the employee's reporter and super admins may view a meeting."""
    if user.role == Role.SUPER_ADMIN:
        return True
    if user.id in (employee_id, reporter_id):
        return True
    return employee is not None and can_access_employee_data(user, employee)


def can_manage_meeting(
    user: User,
    reporter_id: uuid.UUID,
    employee: User | None = None,
) -> bool:
    """Reporter-side actions: the running reporter, the employee's reporter, super admins."""
    if user.role == Role.SUPER_ADMIN:
        return True
    if user.role != Role.REPORTER:
        return False
    if user.id == reporter_id:
        return True
    return employee is not None and employee.reports_to_id == user.id
