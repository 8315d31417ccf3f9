"""Shared test fixtures and in-memory test doubles.

Provides:
- In-memory repositories mirroring the SQLAlchemy repository interfaces
- In-memory blob storage, a recording notifier and a scripted analysis service
- A settable clock and a seeded organization (admin, reporters, employees)
- `world`: every service wired onto the in-memory doubles
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from src.oneonone.admin.schemas import (
    SystemSettings,
    SystemSettingsUpdate,
    AuditEntry,
    AuditLog,
    AuditLogFilter,
)
from src.oneonone.admin.settings_cache import SettingsCache
from src.oneonone.core.errors import ServiceNotConfiguredError
from src.oneonone.directory.schemas import (
    Department,
    DepartmentCreate,
    Role,
    User,
    UserCreate,
    UserUpdate,
)
from src.oneonone.insights.schemas import InsightInput, OrganizationInsights
from src.oneonone.insights.service import InsightsService
from src.oneonone.meetings.schemas import (
    OPEN_STATUSES,
    Attachment,
    Meeting,
    MeetingCreate,
    MeetingFilter,
    MeetingForm,
    MeetingStatus,
)
from src.oneonone.meetings.service import MeetingService
from src.oneonone.recordings.processor import RecordingProcessor
from src.oneonone.recordings.repository import _to_column
from src.oneonone.recordings.schemas import (
    AnalysisResult,
    MeetingRecording,
    RecordingStatus,
    SuggestedTodo,
    TranscriptionResult,
)
from src.oneonone.recordings.service import RecordingService
from src.oneonone.recordings.state import InvalidTransition, check_transition
from src.oneonone.scheduling.jobs import MeetingJobs
from src.oneonone.scheduling.recurrence import RecurrenceRule
from src.oneonone.scheduling.schemas import RecurringSchedule
from src.oneonone.scheduling.service import ScheduleService
from src.oneonone.todos.schemas import Todo, TodoFilter, TodoPriority
from src.oneonone.todos.service import TodoService

# Wednesday 2026-03-04 09:00 UTC
NOW = datetime(2026, 3, 4, 9, 0, tzinfo=timezone.utc)


class Clock:
    """Settable UTC clock passed to services as `clock`."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


# ── In-Memory Repositories ───────────────────────────────────────────────────


class InMemoryDirectoryRepository:
    def __init__(self) -> None:
        self.users: dict[uuid.UUID, User] = {}
        self.departments: dict[uuid.UUID, Department] = {}

    def add(self, name: str, role: Role = Role.EMPLOYEE, **kwargs: Any) -> User:
        slug = name.lower().replace(" ", ".")
        user = User(
            id=uuid.uuid4(),
            email=kwargs.pop("email", f"{slug}@example.com"),
            name=name,
            role=role,
            created_at=NOW,
            **kwargs,
        )
        self.users[user.id] = user
        return user

    async def get_user(self, user_id: uuid.UUID) -> User | None:
        return self.users.get(user_id)

    async def get_user_by_email(self, email: str) -> User | None:
        for user in self.users.values():
            if user.email == email.lower():
                return user
        return None

    async def get_users(self, user_ids: list[uuid.UUID]) -> dict[uuid.UUID, User]:
        return {uid: self.users[uid] for uid in user_ids if uid in self.users}

    async def list_users(
        self, reports_to_id: uuid.UUID | None = None, active_only: bool = False
    ) -> list[User]:
        users = list(self.users.values())
        if reports_to_id is not None:
            users = [u for u in users if u.reports_to_id == reports_to_id]
        if active_only:
            users = [u for u in users if u.is_active]
        return sorted(users, key=lambda u: u.name)

    async def create_user(self, data: UserCreate) -> User:
        user = User(id=uuid.uuid4(), created_at=NOW, **data.model_dump())
        user = user.model_copy(update={"email": data.email.lower()})
        self.users[user.id] = user
        return user

    async def update_user(self, user_id: uuid.UUID, data: UserUpdate) -> User:
        if user_id not in self.users:
            raise ValueError(f"User not found: {user_id}")
        updated = self.users[user_id].model_copy(update=data.model_dump(exclude_unset=True))
        self.users[user_id] = updated
        return updated

    async def list_departments(self) -> list[Department]:
        return sorted(self.departments.values(), key=lambda d: d.name)

    async def get_department_by_name(self, name: str) -> Department | None:
        for department in self.departments.values():
            if department.name == name:
                return department
        return None

    async def create_department(self, data: DepartmentCreate) -> Department:
        department = Department(id=uuid.uuid4(), name=data.name, created_at=NOW)
        self.departments[department.id] = department
        return department


class InMemoryScheduleRepository:
    def __init__(self) -> None:
        self.schedules: dict[uuid.UUID, RecurringSchedule] = {}
        self.fail_updates_for: set[uuid.UUID] = set()

    async def create_schedule(
        self,
        employee_id: uuid.UUID,
        reporter_id: uuid.UUID,
        rule: RecurrenceRule,
        next_meeting_date: datetime,
    ) -> RecurringSchedule:
        schedule = RecurringSchedule(
            id=uuid.uuid4(),
            employee_id=employee_id,
            reporter_id=reporter_id,
            frequency=rule.frequency,
            day_of_week=rule.day_of_week,
            time_of_day=rule.time_of_day,
            next_meeting_date=next_meeting_date,
            created_at=NOW,
            updated_at=NOW,
        )
        self.schedules[schedule.id] = schedule
        return schedule

    async def get_schedule(self, schedule_id: uuid.UUID) -> RecurringSchedule | None:
        return self.schedules.get(schedule_id)

    async def list_schedules(self, reporter_id: uuid.UUID | None = None) -> list[RecurringSchedule]:
        return [
            s
            for s in self.schedules.values()
            if s.deleted_at is None and (reporter_id is None or s.reporter_id == reporter_id)
        ]

    async def find_active(
        self,
        reporter_id: uuid.UUID | None = None,
        employee_id: uuid.UUID | None = None,
        day_of_week: int | None = None,
        time_of_day: str | None = None,
    ) -> list[RecurringSchedule]:
        found = []
        for s in self.schedules.values():
            if not s.is_active or s.deleted_at is not None:
                continue
            if reporter_id is not None and s.reporter_id != reporter_id:
                continue
            if employee_id is not None and s.employee_id != employee_id:
                continue
            if day_of_week is not None and s.day_of_week != day_of_week:
                continue
            if time_of_day is not None and s.time_of_day != time_of_day:
                continue
            found.append(s)
        return found

    async def list_due(self, before: datetime) -> list[RecurringSchedule]:
        due = [
            s
            for s in self.schedules.values()
            if s.is_active
            and s.deleted_at is None
            and s.next_meeting_date is not None
            and s.next_meeting_date <= before
        ]
        return sorted(due, key=lambda s: s.next_meeting_date)

    async def update_schedule(self, schedule_id: uuid.UUID, values: dict[str, Any]) -> RecurringSchedule:
        if schedule_id in self.fail_updates_for:
            raise RuntimeError("database unavailable")
        if schedule_id not in self.schedules:
            raise ValueError(f"Recurring schedule not found: {schedule_id}")
        updated = self.schedules[schedule_id].model_copy(update=values)
        self.schedules[schedule_id] = updated
        return updated


class InMemoryMeetingRepository:
    def __init__(self) -> None:
        self.meetings: dict[uuid.UUID, Meeting] = {}
        self.attachments: list[Attachment] = []

    async def create_meeting(self, data: MeetingCreate) -> Meeting:
        meeting = Meeting(id=uuid.uuid4(), created_at=NOW, updated_at=NOW, **data.model_dump())
        self.meetings[meeting.id] = meeting
        return meeting

    async def get_meeting(self, meeting_id: uuid.UUID) -> Meeting | None:
        return self.meetings.get(meeting_id)

    async def list_meetings(self, filters: MeetingFilter) -> list[Meeting]:
        found = []
        for m in self.meetings.values():
            if filters.status is not None and m.status != filters.status:
                continue
            if filters.employee_id is not None and m.employee_id != filters.employee_id:
                continue
            if (
                filters.recurring_schedule_id is not None
                and m.recurring_schedule_id != filters.recurring_schedule_id
            ):
                continue
            if filters.visible_to_reporter_id is not None and not (
                m.reporter_id == filters.visible_to_reporter_id
                or m.employee_id in filters.visible_employee_ids
            ):
                continue
            found.append(m)
        found.sort(key=lambda m: m.meeting_date, reverse=True)
        return found[: filters.limit]

    def _replace(self, meeting_id: uuid.UUID, **changes: Any) -> Meeting:
        if meeting_id not in self.meetings:
            raise ValueError(f"Meeting not found: {meeting_id}")
        updated = self.meetings[meeting_id].model_copy(update=changes)
        self.meetings[meeting_id] = updated
        return updated

    async def update_status(self, meeting_id: uuid.UUID, status: MeetingStatus) -> Meeting:
        return self._replace(meeting_id, status=status)

    async def update_notes(self, meeting_id: uuid.UUID, notes: str | None) -> Meeting:
        return self._replace(meeting_id, notes=notes)

    async def save_form(self, meeting_id: uuid.UUID, form: MeetingForm) -> Meeting:
        return self._replace(meeting_id, form=form, status=MeetingStatus.COMPLETED)

    async def cancel_upcoming_for_schedule(self, schedule_id: uuid.UUID, after: datetime) -> int:
        count = 0
        for m in list(self.meetings.values()):
            if (
                m.recurring_schedule_id == schedule_id
                and m.status in OPEN_STATUSES
                and m.meeting_date > after
            ):
                self._replace(m.id, status=MeetingStatus.CANCELLED)
                count += 1
        return count

    async def list_reminder_candidates(
        self, start: datetime, end: datetime, window: str
    ) -> list[Meeting]:
        flag = "reminder_24h_sent" if window == "24h" else "reminder_1h_sent"
        found = [
            m
            for m in self.meetings.values()
            if m.status == MeetingStatus.SCHEDULED
            and not getattr(m, flag)
            and start <= m.meeting_date <= end
        ]
        return sorted(found, key=lambda m: m.meeting_date)

    async def mark_reminder_sent(self, meeting_id: uuid.UUID, window: str) -> None:
        flag = "reminder_24h_sent" if window == "24h" else "reminder_1h_sent"
        self._replace(meeting_id, **{flag: True})

    async def add_attachment(self, **kwargs: Any) -> Attachment:
        attachment = Attachment(id=uuid.uuid4(), created_at=NOW, **kwargs)
        self.attachments.append(attachment)
        return attachment

    async def list_attachments(self, meeting_id: uuid.UUID) -> list[Attachment]:
        return [a for a in self.attachments if a.meeting_id == meeting_id]

    async def get_attachment(self, attachment_id: uuid.UUID) -> Attachment | None:
        return next((a for a in self.attachments if a.id == attachment_id), None)


class InMemoryRecordingRepository:
    def __init__(self, meetings: InMemoryMeetingRepository) -> None:
        self.recordings: dict[uuid.UUID, MeetingRecording] = {}
        self._meetings = meetings

    async def create_recording(self, meeting_id: uuid.UUID) -> MeetingRecording:
        if any(r.meeting_id == meeting_id for r in self.recordings.values()):
            raise ValueError(f"Recording already exists for meeting {meeting_id}")
        recording = MeetingRecording(id=uuid.uuid4(), meeting_id=meeting_id, created_at=NOW)
        self.recordings[recording.id] = recording
        return recording

    async def get_recording(self, recording_id: uuid.UUID) -> MeetingRecording | None:
        return self.recordings.get(recording_id)

    async def get_by_meeting(self, meeting_id: uuid.UUID) -> MeetingRecording | None:
        for recording in self.recordings.values():
            if recording.meeting_id == meeting_id:
                return recording
        return None

    async def transition(
        self,
        recording_id: uuid.UUID,
        target: RecordingStatus,
        values: dict[str, Any] | None = None,
        expected: RecordingStatus | None = None,
    ) -> MeetingRecording:
        current = self.recordings.get(recording_id)
        if current is None:
            raise ValueError(f"Recording not found: {recording_id}")
        if expected is not None and current.status != expected:
            raise InvalidTransition(current.status, target)
        check_transition(current.status, target)
        # Round-trip through JSON like the JSON columns do
        data = current.model_dump(mode="json")
        data.update({k: _to_column(v) for k, v in (values or {}).items()})
        data["status"] = target.value
        updated = MeetingRecording.model_validate(data)
        self.recordings[recording_id] = updated
        return updated

    async def update_suggested_todos(
        self, recording_id: uuid.UUID, todos: list[SuggestedTodo]
    ) -> MeetingRecording:
        updated = self.recordings[recording_id].model_copy(update={"suggested_todos": todos})
        self.recordings[recording_id] = updated
        return updated

    async def delete_recording(self, recording_id: uuid.UUID) -> bool:
        return self.recordings.pop(recording_id, None) is not None

    async def list_completed_since(
        self, since: datetime, reporter_id: uuid.UUID | None = None
    ) -> list[tuple[MeetingRecording, Meeting]]:
        rows = []
        for recording in self.recordings.values():
            meeting = self._meetings.meetings.get(recording.meeting_id)
            if meeting is None or recording.status != RecordingStatus.COMPLETED:
                continue
            if recording.sentiment is None or meeting.meeting_date < since:
                continue
            if reporter_id is not None and meeting.reporter_id != reporter_id:
                continue
            rows.append((recording, meeting))
        rows.sort(key=lambda row: row[1].meeting_date, reverse=True)
        return rows


class InMemoryTodoRepository:
    def __init__(self) -> None:
        self.todos: dict[uuid.UUID, Todo] = {}

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
        todo = Todo(
            id=uuid.uuid4(),
            title=title,
            description=description,
            assigned_to_id=assigned_to_id,
            created_by_id=created_by_id,
            meeting_id=meeting_id,
            priority=priority,
            due_date=due_date,
            created_at=NOW,
        )
        self.todos[todo.id] = todo
        return todo

    async def get_todo(self, todo_id: uuid.UUID) -> Todo | None:
        return self.todos.get(todo_id)

    async def list_todos(self, filters: TodoFilter) -> list[Todo]:
        found = []
        for t in self.todos.values():
            if filters.assigned_to_ids or filters.created_by_ids:
                if not (
                    t.assigned_to_id in filters.assigned_to_ids
                    or t.created_by_id in filters.created_by_ids
                ):
                    continue
            if filters.status is not None and t.status != filters.status:
                continue
            if filters.meeting_id is not None and t.meeting_id != filters.meeting_id:
                continue
            found.append(t)
        return found

    async def update_todo(self, todo_id: uuid.UUID, values: dict[str, Any]) -> Todo:
        if todo_id not in self.todos:
            raise ValueError(f"Todo not found: {todo_id}")
        updated = self.todos[todo_id].model_copy(update=values)
        self.todos[todo_id] = updated
        return updated

    async def delete_todo(self, todo_id: uuid.UUID) -> bool:
        return self.todos.pop(todo_id, None) is not None


class InMemoryAdminRepository:
    def __init__(self) -> None:
        self.audit_logs: list[AuditLog] = []
        self.settings = SystemSettings()
        self.settings_loads = 0

    async def add_audit_log(self, entry: AuditEntry) -> AuditLog:
        log = AuditLog(id=uuid.uuid4(), created_at=NOW, **entry.model_dump())
        self.audit_logs.append(log)
        return log

    async def list_audit_logs(self, filters: AuditLogFilter) -> list[AuditLog]:
        logs = [
            log
            for log in reversed(self.audit_logs)
            if (filters.action is None or log.action == filters.action)
            and (filters.entity_type is None or log.entity_type == filters.entity_type)
            and (filters.user_id is None or log.user_id == filters.user_id)
        ]
        return logs[filters.offset : filters.offset + filters.limit]

    async def get_system_settings(self) -> SystemSettings:
        self.settings_loads += 1
        return self.settings

    async def update_system_settings(self, data: SystemSettingsUpdate) -> SystemSettings:
        self.settings = self.settings.model_copy(update=data.model_dump(exclude_unset=True))
        return self.settings


# ── Collaborator Doubles ─────────────────────────────────────────────────────


class InMemoryStorage:
    def __init__(self) -> None:
        self.blobs: dict[str, bytes] = {}
        self.content_types: dict[str, str] = {}

    async def save(self, key: str, data: bytes, content_type: str) -> str:
        self.blobs[key] = data
        self.content_types[key] = content_type
        return key

    async def load(self, key: str) -> bytes:
        if key not in self.blobs:
            raise FileNotFoundError(key)
        return self.blobs[key]

    async def delete(self, key: str) -> None:
        self.blobs.pop(key, None)


class RecordingNotifier:
    """Stands in for NotificationService; records every email it is asked to send."""

    def __init__(self, enabled: bool = True, fail: bool = False) -> None:
        self._enabled = enabled
        self.fail = fail
        self.sent: list[tuple[str, tuple]] = []

    @property
    def enabled(self) -> bool:
        return self._enabled

    async def _record(self, kind: str, *args: Any) -> bool:
        if self.fail:
            raise RuntimeError("smtp down")
        self.sent.append((kind, args))
        return True

    async def send_meeting_scheduled(self, employee, reporter, meeting) -> bool:
        return await self._record("scheduled", employee, reporter, meeting)

    async def send_meeting_proposed(self, employee, reporter, meeting) -> bool:
        return await self._record("proposed", employee, reporter, meeting)

    async def send_meeting_reminder(self, recipient, counterpart, meeting, hours) -> bool:
        return await self._record("reminder", recipient, counterpart, meeting, hours)

    async def send_form_submitted(self, reporter, employee, meeting) -> bool:
        return await self._record("form", reporter, employee, meeting)

    async def send_todo_assigned(self, assignee, created_by, title, description, due_date) -> bool:
        return await self._record("todo", assignee, created_by, title)

    def kinds(self) -> list[str]:
        return [kind for kind, _ in self.sent]


class ScriptedAnalysis:
    """Stands in for AnalysisService with canned transcription and analysis."""

    def __init__(self, configured: bool = True) -> None:
        self._configured = configured
        self.transcription = TranscriptionResult(
            text="We talked about the roadmap.", language="en", duration_seconds=600
        )
        self.result = AnalysisResult.model_validate(
            {
                "summary": "Productive check-in.",
                "keyPoints": ["Roadmap on track"],
                "suggestedTodos": [
                    {"title": "Share roadmap doc", "assignTo": "reporter", "priority": "HIGH"},
                    {"title": "Draft Q3 goals", "assignTo": "employee", "priority": "medium"},
                ],
                "sentiment": {"score": 0.6, "label": "positive"},
                "qualityScore": 82,
                "qualityDetails": {"clarity": 8, "actionability": 7},
            }
        )
        self.transcribe_error: Exception | None = None
        self.analyze_error: Exception | None = None
        self.insights_error: Exception | None = None
        self.insight_inputs: list[InsightInput] | None = None

    @property
    def configured(self) -> bool:
        return self._configured

    async def transcribe(self, audio: bytes, filename: str = "recording.webm", language: str | None = None):
        if not self._configured:
            raise ServiceNotConfiguredError("Speech/LLM API key not configured")
        if self.transcribe_error is not None:
            raise self.transcribe_error
        return self.transcription

    async def analyze(self, transcript: str, employee_name: str, reporter_name: str):
        if self.analyze_error is not None:
            raise self.analyze_error
        return self.result

    async def organization_insights(self, summaries: list[InsightInput]) -> OrganizationInsights:
        self.insight_inputs = summaries
        if self.insights_error is not None:
            raise self.insights_error
        return OrganizationInsights(overall_score=75, top_issues=["Workload"], trend_analysis="Stable")


# ── Seeded World ─────────────────────────────────────────────────────────────


@dataclass
class World:
    """Every repository double, collaborator and service, wired together."""

    clock: Clock
    directory: InMemoryDirectoryRepository
    schedule_repo: InMemoryScheduleRepository
    meeting_repo: InMemoryMeetingRepository
    recording_repo: InMemoryRecordingRepository
    todo_repo: InMemoryTodoRepository
    admin_repo: InMemoryAdminRepository
    storage: InMemoryStorage
    notifier: RecordingNotifier
    analysis: ScriptedAnalysis
    settings_cache: SettingsCache
    schedules: ScheduleService
    meetings: MeetingService
    recordings: RecordingService
    processor: RecordingProcessor
    todos: TodoService
    insights: InsightsService
    jobs: MeetingJobs
    admin: User
    reporter: User
    other_reporter: User
    employee: User
    colleague: User
    outsider: User
    engineering: Department


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def world(clock: Clock) -> World:
    directory = InMemoryDirectoryRepository()
    engineering = Department(id=uuid.uuid4(), name="Engineering")
    directory.departments[engineering.id] = engineering

    admin = directory.add("Ada Admin", Role.SUPER_ADMIN)
    reporter = directory.add("Rita Reporter", Role.REPORTER, department_id=engineering.id)
    other_reporter = directory.add("Omar Reporter", Role.REPORTER)
    employee = directory.add(
        "Evan Employee", reports_to_id=reporter.id, department_id=engineering.id
    )
    colleague = directory.add("Cora Colleague", reports_to_id=reporter.id)
    outsider = directory.add("Otto Outsider", reports_to_id=other_reporter.id)

    schedule_repo = InMemoryScheduleRepository()
    meeting_repo = InMemoryMeetingRepository()
    recording_repo = InMemoryRecordingRepository(meeting_repo)
    todo_repo = InMemoryTodoRepository()
    admin_repo = InMemoryAdminRepository()
    storage = InMemoryStorage()
    notifier = RecordingNotifier()
    analysis = ScriptedAnalysis()
    settings_cache = SettingsCache(admin_repo.get_system_settings, ttl_seconds=300)

    schedules = ScheduleService(
        schedule_repo, meeting_repo, directory, notifier=notifier, clock=clock
    )
    meetings = MeetingService(meeting_repo, directory, storage=storage, notifier=notifier)
    recordings = RecordingService(
        recording_repo, meetings, storage, settings_cache, analysis=analysis
    )
    processor = RecordingProcessor(recording_repo, storage, analysis, settings_cache, clock=clock)
    todos = TodoService(
        todo_repo, directory, meetings, recording_repo, notifier=notifier, clock=clock
    )
    insights = InsightsService(recording_repo, directory, analysis=analysis, clock=clock)
    jobs = MeetingJobs(
        schedules, meeting_repo, directory, notifier, settings_cache, clock=clock
    )

    return World(
        clock=clock,
        directory=directory,
        schedule_repo=schedule_repo,
        meeting_repo=meeting_repo,
        recording_repo=recording_repo,
        todo_repo=todo_repo,
        admin_repo=admin_repo,
        storage=storage,
        notifier=notifier,
        analysis=analysis,
        settings_cache=settings_cache,
        schedules=schedules,
        meetings=meetings,
        recordings=recordings,
        processor=processor,
        todos=todos,
        insights=insights,
        jobs=jobs,
        admin=admin,
        reporter=reporter,
        other_reporter=other_reporter,
        employee=employee,
        colleague=colleague,
        outsider=outsider,
        engineering=engineering,
    )
