"""User directory and department endpoints.

Listing is role-scoped: super admins see everyone, reporters their
direct reports, employees only themselves. Changes are super-admin only.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel

from src.oneonone.admin.schemas import AuditAction
from src.oneonone.api.deps import (
    _get_directory_repository,
    get_current_user,
    record_audit,
    require_roles,
)
from src.oneonone.core.permissions import can_access_employee_data
from src.oneonone.core.security import email_domain_allowed
from src.oneonone.directory.schemas import (
    Department,
    DepartmentCreate,
    Role,
    User,
    UserCreate,
    UserUpdate,
)

router = APIRouter(tags=["users"])


class UserResponse(BaseModel):
    id: str
    email: str
    name: str
    role: str
    department_id: str | None = None
    reports_to_id: str | None = None
    is_active: bool
    created_at: str | None = None


class DepartmentResponse(BaseModel):
    id: str
    name: str


def _user_to_response(u: User) -> UserResponse:
    return UserResponse(
        id=str(u.id),
        email=u.email,
        name=u.name,
        role=u.role.value,
        department_id=str(u.department_id) if u.department_id else None,
        reports_to_id=str(u.reports_to_id) if u.reports_to_id else None,
        is_active=u.is_active,
        created_at=u.created_at.isoformat() if u.created_at else None,
    )


def _department_to_response(d: Department) -> DepartmentResponse:
    return DepartmentResponse(id=str(d.id), name=d.name)


# ── Users ────────────────────────────────────────────────────────────────────


@router.get("/users/me", response_model=UserResponse)
async def get_me(user: User = Depends(get_current_user)) -> UserResponse:
    return _user_to_response(user)


@router.get("/users", response_model=list[UserResponse])
async def list_users(
    request: Request,
    user: User = Depends(get_current_user),
) -> list[UserResponse]:
    repo = _get_directory_repository(request)
    if user.role == Role.SUPER_ADMIN:
        users = await repo.list_users()
    elif user.role == Role.REPORTER:
        users = await repo.list_users(reports_to_id=user.id, active_only=True)
    else:
        users = [user]
    return [_user_to_response(u) for u in users]


@router.get("/users/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: uuid.UUID,
    request: Request,
    user: User = Depends(get_current_user),
) -> UserResponse:
    repo = _get_directory_repository(request)
    target = await repo.get_user(user_id)
    if target is None or not can_access_employee_data(user, target):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return _user_to_response(target)


@router.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    body: UserCreate,
    request: Request,
    user: User = Depends(require_roles(Role.SUPER_ADMIN)),
) -> UserResponse:
    repo = _get_directory_repository(request)
    if not email_domain_allowed(body.email):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Email domain not allowed",
        )
    if await repo.get_user_by_email(body.email) is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A user with this email already exists",
        )
    created = await repo.create_user(body)
    await record_audit(request, user, AuditAction.CREATE, "User", created.id, {"email": created.email})
    return _user_to_response(created)


@router.patch("/users/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: uuid.UUID,
    body: UserUpdate,
    request: Request,
    user: User = Depends(require_roles(Role.SUPER_ADMIN)),
) -> UserResponse:
    repo = _get_directory_repository(request)
    if body.reports_to_id is not None and body.reports_to_id == user_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A user cannot report to themselves",
        )
    try:
        updated = await repo.update_user(user_id, body)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    await record_audit(
        request, user, AuditAction.UPDATE, "User", user_id,
        body.model_dump(mode="json", exclude_unset=True),
    )
    return _user_to_response(updated)


# ── Departments ──────────────────────────────────────────────────────────────


@router.get("/departments", response_model=list[DepartmentResponse])
async def list_departments(
    request: Request,
    user: User = Depends(get_current_user),
) -> list[DepartmentResponse]:
    repo = _get_directory_repository(request)
    return [_department_to_response(d) for d in await repo.list_departments()]


@router.post(
    "/departments",
    response_model=DepartmentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_department(
    body: DepartmentCreate,
    request: Request,
    user: User = Depends(require_roles(Role.SUPER_ADMIN)),
) -> DepartmentResponse:
    repo = _get_directory_repository(request)
    if await repo.get_department_by_name(body.name) is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Department already exists",
        )
    department = await repo.create_department(body)
    await record_audit(request, user, AuditAction.CREATE, "Department", department.id)
    return _department_to_response(department)
