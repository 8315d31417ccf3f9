"""Recurring schedule lifecycle: create, materialize, pause, resume, delete, edit.

State lives on the schedule row (is_active, deleted_at). Transitions:

    ACTIVE --pause--> PAUSED --resume--> ACTIVE
    ACTIVE/PAUSED --delete--> DELETED

Destructive operations report how many open meetings they cancelled.
Only reporters and super admins manage schedules; reporters only their own.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import structlog

from src.oneonone.core.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from src.oneonone.core.monitoring import meetings_materialized_total
from src.oneonone.core.permissions import MANAGER_ROLES, require_role
from src.oneonone.directory.repository import DirectoryRepository
from src.oneonone.directory.schemas import Role, User
from src.oneonone.meetings.repository import MeetingRepository
from src.oneonone.meetings.schemas import Meeting, MeetingCreate, MeetingFilter, MeetingStatus
from src.oneonone.notifications import NotificationService, deliver_best_effort
from src.oneonone.scheduling.recurrence import (
    DEFAULT_SAME_DAY_CUTOFF_HOUR,
    RecurrenceRule,
    following_occurrence,
    next_occurrence,
)
from src.oneonone.scheduling.repository import ScheduleRepository
from src.oneonone.scheduling.schemas import (
    MaterializeFailure,
    MaterializeReport,
    RecurringSchedule,
    ScheduleCreate,
    ScheduleResult,
    ScheduleState,
    ScheduleUpdate,
)

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ScheduleService:
    """Owns every recurring schedule state change.

    Args:
        schedule_repository: Persistence for schedules.
        meeting_repository: Persistence for the meetings schedules produce.
        directory_repository: User lookups for validation and emails.
        notifier: Optional email sender; failures are logged, never raised.
        tz_name: Local timezone for recurrence arithmetic.
        cutoff_hour: Local hour after which same-day slots roll a week.
        clock: Returns the current UTC instant.
    """

    def __init__(
        self,
        schedule_repository: ScheduleRepository,
        meeting_repository: MeetingRepository,
        directory_repository: DirectoryRepository,
        notifier: NotificationService | None = None,
        tz_name: str = "UTC",
        cutoff_hour: int = DEFAULT_SAME_DAY_CUTOFF_HOUR,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._schedules = schedule_repository
        self._meetings = meeting_repository
        self._directory = directory_repository
        self._notifier = notifier
        self._tz_name = tz_name
        self._cutoff_hour = cutoff_hour
        self._clock = clock

    # ── Reads ────────────────────────────────────────────────────────────

    async def _get_managed(self, actor: User, schedule_id: uuid.UUID) -> RecurringSchedule:
        require_role(actor, *MANAGER_ROLES)
        schedule = await self._schedules.get_schedule(schedule_id)
        if schedule is None or schedule.state == ScheduleState.DELETED:
            raise NotFoundError("Recurring schedule not found")
        if actor.role == Role.REPORTER and schedule.reporter_id != actor.id:
            raise AuthorizationError("You can only manage your own recurring schedules")
        return schedule

    async def list_schedules(self, actor: User) -> list[RecurringSchedule]:
        """Reporters see their own schedules; super admins see all."""
        require_role(actor, *MANAGER_ROLES)
        reporter_id = actor.id if actor.role == Role.REPORTER else None
        return await self._schedules.list_schedules(reporter_id=reporter_id)

    async def get_schedule(self, actor: User, schedule_id: uuid.UUID) -> RecurringSchedule:
        return await self._get_managed(actor, schedule_id)

    # ── Create ───────────────────────────────────────────────────────────

    async def _check_conflicts(
        self,
        reporter_id: uuid.UUID,
        employee_id: uuid.UUID,
        rule: RecurrenceRule,
        exclude_id: uuid.UUID | None = None,
        check_pair: bool = True,
    ) -> None:
        def _others(found: list[RecurringSchedule]) -> list[RecurringSchedule]:
            return [s for s in found if s.id != exclude_id]

        if check_pair and _others(
            await self._schedules.find_active(reporter_id=reporter_id, employee_id=employee_id)
        ):
            raise ConflictError("A recurring schedule already exists for this employee")

        if _others(await self._schedules.find_active(
            reporter_id=reporter_id, day_of_week=rule.day_of_week, time_of_day=rule.time_of_day
        )):
            raise ConflictError(
                "You already have a recurring schedule at this day and time. "
                "Please choose a different time."
            )

        if _others(await self._schedules.find_active(
            employee_id=employee_id, day_of_week=rule.day_of_week, time_of_day=rule.time_of_day
        )):
            raise ConflictError(
                "This employee already has a recurring schedule at this day and time. "
                "Please choose a different time."
            )

    async def create_schedule(self, actor: User, data: ScheduleCreate) -> ScheduleResult:
        """Create an ACTIVE schedule and, by default, propose its first meeting.

        Duplicate and double-booking checks run here, not in the database,
        so two concurrent creates for the same pair can both succeed.
        """
        require_role(actor, *MANAGER_ROLES)
        if data.employee_id is None:
            raise ValidationError("Employee is required")

        employee = await self._directory.get_user(data.employee_id)
        if employee is None or not employee.is_active:
            raise NotFoundError("Employee not found")

        reporter = actor
        if actor.role == Role.SUPER_ADMIN and data.reporter_id and data.reporter_id != actor.id:
            found = await self._directory.get_user(data.reporter_id)
            if found is None:
                raise NotFoundError("Reporter not found")
            reporter = found

        if reporter.id == employee.id:
            raise ValidationError("A one-on-one needs two different people")

        rule = RecurrenceRule(
            frequency=data.frequency,
            day_of_week=data.day_of_week,
            time_of_day=data.time_of_day,
        )
        await self._check_conflicts(reporter.id, employee.id, rule)

        first = next_occurrence(rule, self._clock(), self._tz_name, self._cutoff_hour)
        schedule = await self._schedules.create_schedule(employee.id, reporter.id, rule, first)
        logger.info(
            "schedule.created",
            schedule_id=str(schedule.id),
            employee_id=str(employee.id),
            reporter_id=str(reporter.id),
            frequency=rule.frequency.value,
            next_meeting_date=first.isoformat(),
        )

        if not data.propose_first_meeting:
            return ScheduleResult(schedule=schedule)

        meeting, schedule = await self.materialize(
            schedule, status=MeetingStatus.PROPOSED, proposed_by_id=actor.id
        )
        if self._notifier is not None:
            await deliver_best_effort(
                self._notifier.send_meeting_proposed(employee, reporter, meeting),
                "schedule.proposal_email_failed",
                meeting_id=str(meeting.id),
            )
        return ScheduleResult(schedule=schedule, proposed_meeting_id=meeting.id)

    # ── Materialize ──────────────────────────────────────────────────────

    async def materialize(
        self,
        schedule: RecurringSchedule,
        status: MeetingStatus = MeetingStatus.SCHEDULED,
        proposed_by_id: uuid.UUID | None = None,
    ) -> tuple[Meeting, RecurringSchedule]:
        """Create the meeting at next_meeting_date and advance the schedule.

        Returns:
            The new meeting and the updated schedule.
        """
        if schedule.next_meeting_date is None:
            raise ValidationError("Schedule has no next meeting date")

        meeting = await self._meetings.create_meeting(
            MeetingCreate(
                employee_id=schedule.employee_id,
                reporter_id=schedule.reporter_id,
                meeting_date=schedule.next_meeting_date,
                status=status,
                recurring_schedule_id=schedule.id,
                proposed_by_id=proposed_by_id,
            )
        )
        following = following_occurrence(schedule.rule, schedule.next_meeting_date, self._tz_name)
        updated = await self._schedules.update_schedule(
            schedule.id,
            {"next_meeting_date": following, "last_generated_at": self._clock()},
        )
        meetings_materialized_total.inc()
        logger.info(
            "schedule.materialized",
            schedule_id=str(schedule.id),
            meeting_id=str(meeting.id),
            meeting_date=meeting.meeting_date.isoformat(),
            next_meeting_date=following.isoformat(),
        )
        return meeting, updated

    async def materialize_due(self, lookahead: timedelta = timedelta(0)) -> MaterializeReport:
        """Materialize every active schedule due within `lookahead` of now.

        Each schedule is materialized at most once per call. A failing
        schedule is recorded in the report and does not stop the others.
        """
        report = MaterializeReport()
        due = await self._schedules.list_due(self._clock() + lookahead)

        for schedule in due:
            try:
                meeting, _ = await self.materialize(schedule)
            except Exception as exc:
                logger.warning(
                    "schedule.materialize_failed",
                    schedule_id=str(schedule.id),
                    exc_info=True,
                )
                report.failures.append(
                    MaterializeFailure(schedule_id=schedule.id, error=str(exc) or type(exc).__name__)
                )
                continue

            report.created_meeting_ids.append(meeting.id)
            if self._notifier is not None:
                await self._notify_scheduled(meeting)

        logger.info(
            "schedule.materialize_due_complete",
            due=len(due),
            created=len(report.created_meeting_ids),
            failed=len(report.failures),
        )
        return report

    async def _notify_scheduled(self, meeting: Meeting) -> None:
        users = await self._directory.get_users([meeting.employee_id, meeting.reporter_id])
        employee = users.get(meeting.employee_id)
        reporter = users.get(meeting.reporter_id)
        if employee is None or reporter is None:
            return
        await deliver_best_effort(
            self._notifier.send_meeting_scheduled(employee, reporter, meeting),
            "schedule.scheduled_email_failed",
            meeting_id=str(meeting.id),
        )

    # ── Pause / Resume / Delete ──────────────────────────────────────────

    async def pause_schedule(
        self,
        actor: User,
        schedule_id: uuid.UUID,
        cancel_future_meetings: bool = False,
    ) -> ScheduleResult:
        """ACTIVE -> PAUSED, optionally cancelling open future meetings."""
        schedule = await self._get_managed(actor, schedule_id)
        if schedule.state != ScheduleState.ACTIVE:
            raise ConflictError("Only active schedules can be paused")

        updated = await self._schedules.update_schedule(schedule.id, {"is_active": False})
        cancelled = 0
        if cancel_future_meetings:
            cancelled = await self._meetings.cancel_upcoming_for_schedule(
                schedule.id, self._clock()
            )

        logger.info(
            "schedule.paused",
            schedule_id=str(schedule.id),
            cancelled_meeting_count=cancelled,
        )
        return ScheduleResult(schedule=updated, cancelled_meeting_count=cancelled)

    async def resume_schedule(
        self,
        actor: User,
        schedule_id: uuid.UUID,
        recompute_next_date: bool = False,
    ) -> ScheduleResult:
        """PAUSED -> ACTIVE.

        The stored next_meeting_date is kept unless recompute_next_date is
        set, so a long pause can leave it in the past and the next
        materialization run will create that overdue meeting.
        """
        schedule = await self._get_managed(actor, schedule_id)
        if schedule.state != ScheduleState.PAUSED:
            raise ConflictError("Only paused schedules can be resumed")

        values: dict = {"is_active": True}
        if recompute_next_date:
            values["next_meeting_date"] = next_occurrence(
                schedule.rule, self._clock(), self._tz_name, self._cutoff_hour
            )
        updated = await self._schedules.update_schedule(schedule.id, values)

        logger.info(
            "schedule.resumed",
            schedule_id=str(schedule.id),
            recomputed=recompute_next_date,
            next_meeting_date=(
                updated.next_meeting_date.isoformat() if updated.next_meeting_date else None
            ),
        )
        return ScheduleResult(schedule=updated)

    async def delete_schedule(self, actor: User, schedule_id: uuid.UUID) -> ScheduleResult:
        """Soft delete; cancels open future meetings, keeps history."""
        schedule = await self._get_managed(actor, schedule_id)
        now = self._clock()

        updated = await self._schedules.update_schedule(
            schedule.id, {"is_active": False, "deleted_at": now}
        )
        cancelled = await self._meetings.cancel_upcoming_for_schedule(schedule.id, now)

        logger.info(
            "schedule.deleted",
            schedule_id=str(schedule.id),
            cancelled_meeting_count=cancelled,
        )
        return ScheduleResult(schedule=updated, cancelled_meeting_count=cancelled)

    # ── Edit ─────────────────────────────────────────────────────────────

    async def edit_schedule(
        self,
        actor: User,
        schedule_id: uuid.UUID,
        data: ScheduleUpdate,
    ) -> ScheduleResult:
        """Change frequency/day/time for future materializations.

        Meetings already created keep their dates. A frequency-only change
        keeps next_meeting_date, since the stored slot is still on the rule.
        A new day or time on an active schedule recomputes it from the later
        of now and the newest meeting already created for the schedule, so it
        never lands on or before a materialized slot.
        """
        schedule = await self._get_managed(actor, schedule_id)
        changes = data.model_dump(exclude_none=True)
        if not changes:
            return ScheduleResult(schedule=schedule)

        new_rule = schedule.rule.model_copy(update=changes)
        if new_rule == schedule.rule:
            return ScheduleResult(schedule=schedule)

        values: dict = dict(changes)
        if schedule.state == ScheduleState.ACTIVE:
            await self._check_conflicts(
                schedule.reporter_id,
                schedule.employee_id,
                new_rule,
                exclude_id=schedule.id,
                check_pair=False,
            )
            slot_changed = (new_rule.day_of_week, new_rule.time_of_day) != (
                schedule.day_of_week,
                schedule.time_of_day,
            )
            if slot_changed or schedule.next_meeting_date is None:
                values["next_meeting_date"] = next_occurrence(
                    new_rule, await self._recompute_from(schedule), self._tz_name, self._cutoff_hour
                )

        updated = await self._schedules.update_schedule(schedule.id, values)
        logger.info(
            "schedule.edited",
            schedule_id=str(schedule.id),
            changes={k: getattr(v, "value", v) for k, v in changes.items()},
        )
        return ScheduleResult(schedule=updated)
