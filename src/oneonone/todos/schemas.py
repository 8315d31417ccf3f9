"""Pydantic v2 schemas for todos."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class TodoStatus(str, Enum):
    NOT_STARTED = "NOT_STARTED"
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"


class TodoPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class Todo(BaseModel):
    id: uuid.UUID
    title: str
    description: str | None = None
    assigned_to_id: uuid.UUID
    created_by_id: uuid.UUID
    meeting_id: uuid.UUID | None = None
    status: TodoStatus = TodoStatus.NOT_STARTED
    priority: TodoPriority = TodoPriority.MEDIUM
    due_date: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class TodoCreate(BaseModel):
    title: str = Field(min_length=1, max_length=500)
    description: str | None = None
    assigned_to_id: uuid.UUID | None = Field(
        default=None, description="Defaults to the caller"
    )
    meeting_id: uuid.UUID | None = None
    priority: TodoPriority = TodoPriority.MEDIUM
    due_date: datetime | None = None


class TodoUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=500)
    description: str | None = None
    status: TodoStatus | None = None
    priority: TodoPriority | None = None
    due_date: datetime | None = None


class TodoFilter(BaseModel):
    """Visibility criteria built by TodoService from the caller's role.

    A todo matches when any of the id lists matches; empty lists are
    ignored and no lists at all means every todo.
    """

    assigned_to_ids: list[uuid.UUID] = Field(default_factory=list)
    created_by_ids: list[uuid.UUID] = Field(default_factory=list)
    status: TodoStatus | None = None
    meeting_id: uuid.UUID | None = None
