"""REST endpoints for todos."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from pydantic import BaseModel

from src.oneonone.api.deps import get_current_user
from src.oneonone.directory.schemas import User
from src.oneonone.todos.schemas import Todo, TodoCreate, TodoStatus, TodoUpdate
from src.oneonone.todos.service import TodoService

router = APIRouter(prefix="/todos", tags=["todos"])


# ── Response Schemas ─────────────────────────────────────────────────────────


class TodoResponse(BaseModel):
    id: str
    title: str
    description: str | None = None
    assigned_to_id: str
    created_by_id: str
    meeting_id: str | None = None
    status: str
    priority: str
    due_date: str | None = None
    completed_at: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


# ── Dependency Injection Helpers ─────────────────────────────────────────────


def _get_todo_service(request: Request) -> TodoService:
    service = getattr(request.app.state, "todo_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Todo service not initialized",
        )
    return service


def _todo_to_response(t: Todo) -> TodoResponse:
    return TodoResponse(
        id=str(t.id),
        title=t.title,
        description=t.description,
        assigned_to_id=str(t.assigned_to_id),
        created_by_id=str(t.created_by_id),
        meeting_id=str(t.meeting_id) if t.meeting_id else None,
        status=t.status.value,
        priority=t.priority.value,
        due_date=t.due_date.isoformat() if t.due_date else None,
        completed_at=t.completed_at.isoformat() if t.completed_at else None,
        created_at=t.created_at.isoformat() if t.created_at else None,
        updated_at=t.updated_at.isoformat() if t.updated_at else None,
    )


# ── Endpoints ────────────────────────────────────────────────────────────────


@router.get("", response_model=list[TodoResponse])
async def list_todos(
    request: Request,
    status_filter: TodoStatus | None = Query(default=None, alias="status"),
    meeting_id: uuid.UUID | None = Query(default=None),
    user: User = Depends(get_current_user),
) -> list[TodoResponse]:
    """Todos visible to the caller: open first, then by due date and priority."""
    service = _get_todo_service(request)
    todos = await service.list_todos(user, status=status_filter, meeting_id=meeting_id)
    return [_todo_to_response(t) for t in todos]


@router.post("", response_model=TodoResponse, status_code=status.HTTP_201_CREATED)
async def create_todo(
    body: TodoCreate,
    request: Request,
    user: User = Depends(get_current_user),
) -> TodoResponse:
    service = _get_todo_service(request)
    return _todo_to_response(await service.create_todo(user, body))


@router.get("/{todo_id}", response_model=TodoResponse)
async def get_todo(
    todo_id: uuid.UUID,
    request: Request,
    user: User = Depends(get_current_user),
) -> TodoResponse:
    service = _get_todo_service(request)
    return _todo_to_response(await service.get_todo(user, todo_id))


@router.patch("/{todo_id}", response_model=TodoResponse)
async def update_todo(
    todo_id: uuid.UUID,
    body: TodoUpdate,
    request: Request,
    user: User = Depends(get_current_user),
) -> TodoResponse:
    service = _get_todo_service(request)
    return _todo_to_response(await service.update_todo(user, todo_id, body))


@router.delete("/{todo_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_todo(
    todo_id: uuid.UUID,
    request: Request,
    user: User = Depends(get_current_user),
) -> Response:
    service = _get_todo_service(request)
    await service.delete_todo(user, todo_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
