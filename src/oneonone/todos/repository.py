"""Todo repository -- async CRUD on todos."""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator, Callable
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import case, delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.oneonone.todos.models import TodoModel
from src.oneonone.todos.schemas import Todo, TodoFilter, TodoPriority, TodoStatus

_UPDATABLE = frozenset({"title", "description", "status", "priority", "due_date", "completed_at"})

# Open work first, then by due date, then most urgent
_STATUS_ORDER = case(
    {"NOT_STARTED": 0, "IN_PROGRESS": 1, "DONE": 2}, value=TodoModel.status, else_=3
)
_PRIORITY_ORDER = case(
    {"HIGH": 0, "MEDIUM": 1, "LOW": 2}, value=TodoModel.priority, else_=3
)


def _model_to_todo(model: TodoModel) -> Todo:
    return Todo(
        id=model.id,
        title=model.title,
        description=model.description,
        assigned_to_id=model.assigned_to_id,
        created_by_id=model.created_by_id,
        meeting_id=model.meeting_id,
        status=TodoStatus(model.status),
        priority=TodoPriority(model.priority),
        due_date=model.due_date,
        completed_at=model.completed_at,
        created_at=model.created_at,
        updated_at=model.updated_at or model.created_at,
    )


class TodoRepository:
    """Async persistence for todos.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(
        self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]
    ) -> None:
        self._session_factory = session_factory

    async def create_todo(
        self,
        title: str,
        assigned_to_id: uuid.UUID,
        created_by_id: uuid.UUID,
        description: str | None = None,
        meeting_id: uuid.UUID | None = None,
        priority: TodoPriority = TodoPriority.MEDIUM,
        due_date: datetime | None = None,
    ) -> Todo:
        async for session in self._session_factory():
            model = TodoModel(
                title=title,
                description=description,
                assigned_to_id=assigned_to_id,
                created_by_id=created_by_id,
                meeting_id=meeting_id,
                status=TodoStatus.NOT_STARTED.value,
                priority=priority.value,
                due_date=due_date,
            )
            session.add(model)
            await session.commit()
            await session.refresh(model)
            return _model_to_todo(model)

    async def get_todo(self, todo_id: uuid.UUID) -> Todo | None:
        async for session in self._session_factory():
            model = await session.get(TodoModel, todo_id)
            return _model_to_todo(model) if model else None

    async def list_todos(self, filters: TodoFilter) -> list[Todo]:
        """Ordered by status, due date (undated last), then priority."""
        async for session in self._session_factory():
            stmt = select(TodoModel)
            visibility = []
            if filters.assigned_to_ids:
                visibility.append(TodoModel.assigned_to_id.in_(filters.assigned_to_ids))
            if filters.created_by_ids:
                visibility.append(TodoModel.created_by_id.in_(filters.created_by_ids))
            if visibility:
                stmt = stmt.where(or_(*visibility))
            if filters.status is not None:
                stmt = stmt.where(TodoModel.status == filters.status.value)
            if filters.meeting_id is not None:
                stmt = stmt.where(TodoModel.meeting_id == filters.meeting_id)
            stmt = stmt.order_by(
                _STATUS_ORDER,
                TodoModel.due_date.asc().nulls_last(),
                _PRIORITY_ORDER,
                TodoModel.created_at.desc(),
            )
            result = await session.execute(stmt)
            return [_model_to_todo(m) for m in result.scalars().all()]

    async def update_todo(self, todo_id: uuid.UUID, values: dict[str, Any]) -> Todo:
        """Raises ValueError if the todo does not exist or a field is not updatable."""
        unknown = set(values) - _UPDATABLE
        if unknown:
            raise ValueError(f"Cannot update todo fields: {sorted(unknown)}")

        async for session in self._session_factory():
            model = await session.get(TodoModel, todo_id)
            if model is None:
                raise ValueError(f"Todo not found: {todo_id}")
            for field, value in values.items():
                if isinstance(value, (TodoStatus, TodoPriority)):
                    value = value.value
                setattr(model, field, value)
            model.updated_at = datetime.now(timezone.utc)
            await session.commit()
            await session.refresh(model)
            return _model_to_todo(model)

    async def delete_todo(self, todo_id: uuid.UUID) -> bool:
        async for session in self._session_factory():
            result = await session.execute(delete(TodoModel).where(TodoModel.id == todo_id))
            await session.commit()
            return bool(result.rowcount)
