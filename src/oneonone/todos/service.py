"""Todo operations with role-based visibility, and suggestion promotion.

EMPLOYEE sees todos assigned to them; REPORTER sees todos assigned to or
created by them plus those assigned to direct reports; SUPER_ADMIN sees all.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from datetime import datetime, timezone

import structlog

from src.oneonone.core.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from src.oneonone.core.permissions import can_access_employee_data
from src.oneonone.directory.repository import DirectoryRepository
from src.oneonone.directory.schemas import Role, User
from src.oneonone.meetings.service import MeetingService
from src.oneonone.notifications import NotificationService, deliver_best_effort
from src.oneonone.recordings.repository import RecordingRepository
from src.oneonone.recordings.schemas import RecordingStatus
from src.oneonone.todos.repository import TodoRepository
from src.oneonone.todos.schemas import (
    Todo,
    TodoCreate,
    TodoFilter,
    TodoStatus,
    TodoUpdate,
)

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TodoService:
    """Args:
        todo_repository: Todo persistence.
        directory_repository: User lookups for visibility and assignment.
        meeting_service: Access-checked meeting lookups.
        recording_repository: Source of suggested todos for promotion.
        notifier: Optional email sender for assignment notices.
        clock: Returns the current UTC instant.
    """

    def __init__(
        self,
        todo_repository: TodoRepository,
        directory_repository: DirectoryRepository,
        meeting_service: MeetingService,
        recording_repository: RecordingRepository,
        notifier: NotificationService | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._todos = todo_repository
        self._directory = directory_repository
        self._meetings = meeting_service
        self._recordings = recording_repository
        self._notifier = notifier
        self._clock = clock

    async def _direct_report_ids(self, reporter: User) -> list[uuid.UUID]:
        reports = await self._directory.list_users(reports_to_id=reporter.id, active_only=False)
        return [u.id for u in reports]

    async def _can_edit(self, actor: User, todo: Todo) -> bool:
        if actor.role == Role.SUPER_ADMIN or actor.id in (todo.assigned_to_id, todo.created_by_id):
            return True
        if actor.role != Role.REPORTER:
            return False
        assignee = await self._directory.get_user(todo.assigned_to_id)
        return assignee is not None and assignee.reports_to_id == actor.id

    async def _get_editable(self, actor: User, todo_id: uuid.UUID) -> Todo:
        todo = await self._todos.get_todo(todo_id)
        if todo is None:
            raise NotFoundError("Todo not found")
        if not await self._can_edit(actor, todo):
            raise AuthorizationError("You do not have access to this todo")
        return todo

    async def _notify_assignee(self, actor: User, assignee: User, todo: Todo) -> None:
        if self._notifier is None or assignee.id == actor.id:
            return
        await deliver_best_effort(
            self._notifier.send_todo_assigned(
                assignee, actor, todo.title, todo.description, todo.due_date
            ),
            "todo.assignment_email_failed",
            todo_id=str(todo.id),
        )

    # ── Queries ──────────────────────────────────────────────────────────

    async def list_todos(
        self,
        actor: User,
        status: TodoStatus | None = None,
        meeting_id: uuid.UUID | None = None,
    ) -> list[Todo]:
        filters = TodoFilter(status=status, meeting_id=meeting_id)
        if actor.role == Role.EMPLOYEE:
            filters.assigned_to_ids = [actor.id]
        elif actor.role == Role.REPORTER:
            filters.assigned_to_ids = [actor.id, *await self._direct_report_ids(actor)]
            filters.created_by_ids = [actor.id]
        return await self._todos.list_todos(filters)

    async def get_todo(self, actor: User, todo_id: uuid.UUID) -> Todo:
        return await self._get_editable(actor, todo_id)

    # ── Mutations ────────────────────────────────────────────────────────

    async def create_todo(self, actor: User, data: TodoCreate) -> Todo:
        assignee = actor
        if data.assigned_to_id is not None and data.assigned_to_id != actor.id:
            found = await self._directory.get_user(data.assigned_to_id)
            if found is None or not found.is_active:
                raise NotFoundError("Assignee not found")
            if not can_access_employee_data(actor, found):
                raise AuthorizationError("You can only assign todos to yourself or your direct reports")
            assignee = found

        if data.meeting_id is not None:
            await self._meetings.get_viewable(actor, data.meeting_id)

        todo = await self._todos.create_todo(
            title=data.title,
            description=data.description,
            assigned_to_id=assignee.id,
            created_by_id=actor.id,
            meeting_id=data.meeting_id,
            priority=data.priority,
            due_date=data.due_date,
        )
        logger.info(
            "todo.created",
            todo_id=str(todo.id),
            assigned_to_id=str(assignee.id),
            created_by_id=str(actor.id),
        )
        await self._notify_assignee(actor, assignee, todo)
        return todo

    async def update_todo(self, actor: User, todo_id: uuid.UUID, data: TodoUpdate) -> Todo:
        todo = await self._get_editable(actor, todo_id)
        values = data.model_dump(exclude_unset=True)
        if "title" in values and values["title"] is None:
            raise ValidationError("Title cannot be empty")
        if "status" in values and values["status"] is None:
            raise ValidationError("Status cannot be empty")
        if "priority" in values and values["priority"] is None:
            raise ValidationError("Priority cannot be empty")

        new_status = values.get("status")
        if new_status is not None and new_status != todo.status:
            values["completed_at"] = self._clock() if new_status == TodoStatus.DONE else None

        if not values:
            return todo
        updated = await self._todos.update_todo(todo.id, values)
        logger.info("todo.updated", todo_id=str(todo.id), fields=sorted(values))
        return updated

    async def delete_todo(self, actor: User, todo_id: uuid.UUID) -> None:
        todo = await self._todos.get_todo(todo_id)
        if todo is None:
            raise NotFoundError("Todo not found")
        if actor.role != Role.SUPER_ADMIN and actor.id != todo.created_by_id:
            raise AuthorizationError("Only the creator can delete this todo")
        await self._todos.delete_todo(todo.id)
        logger.info("todo.deleted", todo_id=str(todo.id))

    # ── Promotion ────────────────────────────────────────────────────────

    async def promote_suggestion(self, actor: User, meeting_id: uuid.UUID, index: int) -> Todo:
        """Turn suggested action item `index` of a completed recording into a Todo.

        The suggestion is assigned to the meeting's employee or reporter as
        it says, and is marked promoted so a second promotion is refused.
        """
        meeting, _ = await self._meetings.get_manageable(actor, meeting_id)
        recording = await self._recordings.get_by_meeting(meeting.id)
        if recording is None:
            raise NotFoundError("No recording found for this meeting")
        if recording.status != RecordingStatus.COMPLETED:
            raise ConflictError("Suggestions are only available on completed recordings")
        if index < 0 or index >= len(recording.suggested_todos):
            raise NotFoundError("Suggested todo not found")

        suggestion = recording.suggested_todos[index]
        if suggestion.promoted:
            raise ConflictError("This suggestion has already been added as a todo")

        assignee_id = meeting.reporter_id if suggestion.assign_to == "reporter" else meeting.employee_id
        todo = await self._todos.create_todo(
            title=suggestion.title,
            description=suggestion.description,
            assigned_to_id=assignee_id,
            created_by_id=actor.id,
            meeting_id=meeting.id,
            priority=suggestion.priority,
        )

        suggestions = list(recording.suggested_todos)
        suggestions[index] = suggestion.model_copy(update={"promoted": True, "promoted_todo_id": todo.id})
        await self._recordings.update_suggested_todos(recording.id, suggestions)

        logger.info(
            "todo.promoted",
            todo_id=str(todo.id),
            recording_id=str(recording.id),
            suggestion_index=index,
            assign_to=suggestion.assign_to,
        )
        assignee = await self._directory.get_user(assignee_id)
        if assignee is not None:
            await self._notify_assignee(actor, assignee, todo)
        return todo
