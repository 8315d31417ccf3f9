"""Pydantic v2 schemas for users and departments."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class Role(str, Enum):
    """Access role of a dashboard user."""

    EMPLOYEE = "EMPLOYEE"
    REPORTER = "REPORTER"
    SUPER_ADMIN = "SUPER_ADMIN"


class User(BaseModel):
    """A dashboard user as seen by services and access checks."""

    id: uuid.UUID
    email: str
    name: str
    role: Role = Role.EMPLOYEE
    department_id: uuid.UUID | None = None
    reports_to_id: uuid.UUID | None = None
    is_active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None


class UserCreate(BaseModel):
    email: str = Field(min_length=3, max_length=320)
    name: str = Field(min_length=1, max_length=200)
    role: Role = Role.EMPLOYEE
    department_id: uuid.UUID | None = None
    reports_to_id: uuid.UUID | None = None


class UserUpdate(BaseModel):
    """Admin-editable user fields (all optional)."""

    name: str | None = None
    role: Role | None = None
    department_id: uuid.UUID | None = None
    reports_to_id: uuid.UUID | None = None
    is_active: bool | None = None


class Department(BaseModel):
    id: uuid.UUID
    name: str
    created_at: datetime | None = None


class DepartmentCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
