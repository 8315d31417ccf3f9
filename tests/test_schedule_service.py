"""Tests for the recurring schedule lifecycle.

Uses the in-memory repositories from conftest; the clock starts on
Wednesday 2026-03-04 09:00 UTC.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import pytest

from src.oneonone.core.errors import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from src.oneonone.meetings.schemas import MeetingFilter, MeetingStatus
from src.oneonone.scheduling.recurrence import Frequency
from src.oneonone.scheduling.schemas import ScheduleCreate, ScheduleState, ScheduleUpdate

MONDAY_10 = datetime(2026, 3, 9, 10, 0, tzinfo=timezone.utc)


def _create(employee_id, day: int = 1, at: str = "10:00", **kwargs) -> ScheduleCreate:
    return ScheduleCreate(employee_id=employee_id, day_of_week=day, time_of_day=at, **kwargs)


async def _schedule_meetings(world, schedule_id):
    return await world.meeting_repo.list_meetings(MeetingFilter(recurring_schedule_id=schedule_id))


# ── Create ───────────────────────────────────────────────────────────────────


class TestCreateSchedule:
    @pytest.mark.asyncio
    async def test_proposes_first_meeting_and_advances_next_date(self, world) -> None:
        result = await world.schedules.create_schedule(world.reporter, _create(world.employee.id))

        schedule = result.schedule
        assert schedule.state == ScheduleState.ACTIVE
        assert schedule.frequency == Frequency.BIWEEKLY
        assert schedule.next_meeting_date == MONDAY_10 + timedelta(days=14)
        assert schedule.last_generated_at == world.clock.now

        proposed = world.meeting_repo.meetings[result.proposed_meeting_id]
        assert proposed.status == MeetingStatus.PROPOSED
        assert proposed.meeting_date == MONDAY_10
        assert proposed.proposed_by_id == world.reporter.id
        assert proposed.recurring_schedule_id == schedule.id
        assert world.notifier.kinds() == ["proposed"]

    @pytest.mark.asyncio
    async def test_without_proposal_keeps_first_date(self, world) -> None:
        result = await world.schedules.create_schedule(
            world.reporter, _create(world.employee.id, propose_first_meeting=False)
        )
        assert result.proposed_meeting_id is None
        assert result.schedule.next_meeting_date == MONDAY_10
        assert world.meeting_repo.meetings == {}

    @pytest.mark.asyncio
    async def test_proposal_email_failure_does_not_fail_create(self, world) -> None:
        world.notifier.fail = True
        result = await world.schedules.create_schedule(world.reporter, _create(world.employee.id))
        assert result.proposed_meeting_id in world.meeting_repo.meetings

    @pytest.mark.asyncio
    async def test_missing_employee_is_validation_error(self, world) -> None:
        with pytest.raises(ValidationError, match="Employee is required"):
            await world.schedules.create_schedule(world.reporter, _create(None))

    @pytest.mark.asyncio
    async def test_unknown_employee_is_not_found(self, world) -> None:
        with pytest.raises(NotFoundError):
            await world.schedules.create_schedule(world.reporter, _create(uuid.uuid4()))

    @pytest.mark.asyncio
    async def test_employee_cannot_create(self, world) -> None:
        with pytest.raises(AuthorizationError):
            await world.schedules.create_schedule(world.employee, _create(world.colleague.id))

    @pytest.mark.asyncio
    async def test_duplicate_pair_is_conflict(self, world) -> None:
        await world.schedules.create_schedule(world.reporter, _create(world.employee.id))
        with pytest.raises(ConflictError, match="already exists for this employee"):
            await world.schedules.create_schedule(
                world.reporter, _create(world.employee.id, day=4, at="15:00")
            )

    @pytest.mark.asyncio
    async def test_reporter_double_booking_is_conflict(self, world) -> None:
        await world.schedules.create_schedule(world.reporter, _create(world.employee.id))
        with pytest.raises(ConflictError, match="You already have"):
            await world.schedules.create_schedule(world.reporter, _create(world.colleague.id))

    @pytest.mark.asyncio
    async def test_employee_double_booking_is_conflict(self, world) -> None:
        await world.schedules.create_schedule(world.reporter, _create(world.employee.id))
        with pytest.raises(ConflictError, match="This employee already has"):
            await world.schedules.create_schedule(world.other_reporter, _create(world.employee.id))

    @pytest.mark.asyncio
    async def test_paused_schedule_does_not_block_same_slot(self, world) -> None:
        first = await world.schedules.create_schedule(world.reporter, _create(world.employee.id))
        await world.schedules.pause_schedule(world.reporter, first.schedule.id)
        result = await world.schedules.create_schedule(world.reporter, _create(world.colleague.id))
        assert result.schedule.state == ScheduleState.ACTIVE

    @pytest.mark.asyncio
    async def test_super_admin_creates_on_behalf_of_reporter(self, world) -> None:
        result = await world.schedules.create_schedule(
            world.admin, _create(world.employee.id, reporter_id=world.reporter.id)
        )
        assert result.schedule.reporter_id == world.reporter.id


# ── Materialize ──────────────────────────────────────────────────────────────


class TestMaterializeDue:
    @pytest.mark.asyncio
    async def test_materializes_at_fourteen_day_cadence(self, world) -> None:
        result = await world.schedules.create_schedule(world.reporter, _create(world.employee.id))
        schedule_id = result.schedule.id

        # Not due yet
        report = await world.schedules.materialize_due()
        assert report.created_meeting_ids == []

        world.clock.now = MONDAY_10 + timedelta(days=14)
        report = await world.schedules.materialize_due()
        assert len(report.created_meeting_ids) == 1

        meeting = world.meeting_repo.meetings[report.created_meeting_ids[0]]
        assert meeting.status == MeetingStatus.SCHEDULED
        assert meeting.meeting_date == MONDAY_10 + timedelta(days=14)
        assert world.schedule_repo.schedules[schedule_id].next_meeting_date == MONDAY_10 + timedelta(days=28)
        assert world.notifier.kinds() == ["proposed", "scheduled"]

    @pytest.mark.asyncio
    async def test_each_schedule_materialized_once_per_run(self, world) -> None:
        await world.schedules.create_schedule(
            world.reporter, _create(world.employee.id, frequency=Frequency.WEEKLY, propose_first_meeting=False)
        )
        # Four weeks overdue: one meeting per run, not four
        world.clock.now = MONDAY_10 + timedelta(days=28)
        report = await world.schedules.materialize_due()
        assert len(report.created_meeting_ids) == 1

    @pytest.mark.asyncio
    async def test_lookahead_materializes_ahead_of_time(self, world) -> None:
        await world.schedules.create_schedule(
            world.reporter, _create(world.employee.id, propose_first_meeting=False)
        )
        report = await world.schedules.materialize_due(lookahead=timedelta(hours=168))
        assert len(report.created_meeting_ids) == 1

    @pytest.mark.asyncio
    async def test_failing_schedule_does_not_stop_others(self, world) -> None:
        broken = await world.schedules.create_schedule(
            world.reporter, _create(world.employee.id, propose_first_meeting=False)
        )
        await world.schedules.create_schedule(
            world.reporter, _create(world.colleague.id, day=2, propose_first_meeting=False)
        )
        world.schedule_repo.fail_updates_for.add(broken.schedule.id)

        world.clock.now = MONDAY_10 + timedelta(days=2)
        report = await world.schedules.materialize_due()

        assert len(report.created_meeting_ids) == 1
        assert [f.schedule_id for f in report.failures] == [broken.schedule.id]
        assert "database unavailable" in report.failures[0].error

    @pytest.mark.asyncio
    async def test_paused_schedule_is_not_materialized(self, world) -> None:
        result = await world.schedules.create_schedule(
            world.reporter, _create(world.employee.id, propose_first_meeting=False)
        )
        await world.schedules.pause_schedule(world.reporter, result.schedule.id)
        world.clock.now = MONDAY_10 + timedelta(days=1)
        report = await world.schedules.materialize_due()
        assert report.created_meeting_ids == []


# ── Pause / Resume ───────────────────────────────────────────────────────────


class TestPauseResume:
    @pytest.mark.asyncio
    async def test_pause_with_cancellation_leaves_no_open_future_meetings(self, world) -> None:
        result = await world.schedules.create_schedule(world.reporter, _create(world.employee.id))
        schedule = result.schedule
        for _ in range(2):
            _, schedule = await world.schedules.materialize(schedule)

        paused = await world.schedules.pause_schedule(
            world.reporter, schedule.id, cancel_future_meetings=True
        )

        assert paused.schedule.state == ScheduleState.PAUSED
        assert paused.cancelled_meeting_count == 3
        meetings = await _schedule_meetings(world, schedule.id)
        assert {m.status for m in meetings} == {MeetingStatus.CANCELLED}

    @pytest.mark.asyncio
    async def test_pause_without_cancellation_keeps_meetings(self, world) -> None:
        result = await world.schedules.create_schedule(world.reporter, _create(world.employee.id))
        paused = await world.schedules.pause_schedule(world.reporter, result.schedule.id)
        assert paused.cancelled_meeting_count == 0
        meeting = world.meeting_repo.meetings[result.proposed_meeting_id]
        assert meeting.status == MeetingStatus.PROPOSED

    @pytest.mark.asyncio
    async def test_pause_twice_is_conflict(self, world) -> None:
        result = await world.schedules.create_schedule(world.reporter, _create(world.employee.id))
        await world.schedules.pause_schedule(world.reporter, result.schedule.id)
        with pytest.raises(ConflictError):
            await world.schedules.pause_schedule(world.reporter, result.schedule.id)

    @pytest.mark.asyncio
    async def test_resume_active_is_conflict(self, world) -> None:
        result = await world.schedules.create_schedule(world.reporter, _create(world.employee.id))
        with pytest.raises(ConflictError):
            await world.schedules.resume_schedule(world.reporter, result.schedule.id)

    @pytest.mark.asyncio
    async def test_resume_keeps_stale_next_date_by_default(self, world) -> None:
        result = await world.schedules.create_schedule(
            world.reporter, _create(world.employee.id, propose_first_meeting=False)
        )
        await world.schedules.pause_schedule(world.reporter, result.schedule.id)
        world.clock.now = MONDAY_10 + timedelta(days=60)

        resumed = await world.schedules.resume_schedule(world.reporter, result.schedule.id)
        assert resumed.schedule.state == ScheduleState.ACTIVE
        assert resumed.schedule.next_meeting_date == MONDAY_10

    @pytest.mark.asyncio
    async def test_resume_can_recompute_next_date(self, world) -> None:
        result = await world.schedules.create_schedule(
            world.reporter, _create(world.employee.id, propose_first_meeting=False)
        )
        await world.schedules.pause_schedule(world.reporter, result.schedule.id)
        world.clock.now = MONDAY_10 + timedelta(days=60)  # a Friday

        resumed = await world.schedules.resume_schedule(
            world.reporter, result.schedule.id, recompute_next_date=True
        )
        assert resumed.schedule.next_meeting_date == MONDAY_10 + timedelta(days=63)


# ── Delete ───────────────────────────────────────────────────────────────────


class TestDeleteSchedule:
    @pytest.mark.asyncio
    async def test_cancels_three_upcoming_meetings_and_keeps_them(self, world) -> None:
        result = await world.schedules.create_schedule(
            world.reporter, _create(world.employee.id, propose_first_meeting=False)
        )
        schedule = result.schedule
        for _ in range(3):
            _, schedule = await world.schedules.materialize(schedule)

        deleted = await world.schedules.delete_schedule(world.reporter, schedule.id)

        assert deleted.cancelled_meeting_count == 3
        assert deleted.schedule.state == ScheduleState.DELETED
        meetings = await _schedule_meetings(world, schedule.id)
        assert len(meetings) == 3
        assert all(m.status == MeetingStatus.CANCELLED for m in meetings)

    @pytest.mark.asyncio
    async def test_past_and_completed_meetings_are_untouched(self, world) -> None:
        result = await world.schedules.create_schedule(world.reporter, _create(world.employee.id))
        schedule = result.schedule
        completed, schedule = await world.schedules.materialize(schedule)
        await world.meeting_repo.update_status(completed.id, MeetingStatus.COMPLETED)

        world.clock.now = MONDAY_10 + timedelta(days=1)  # proposed meeting now in the past
        deleted = await world.schedules.delete_schedule(world.reporter, schedule.id)

        assert deleted.cancelled_meeting_count == 0
        assert world.meeting_repo.meetings[result.proposed_meeting_id].status == MeetingStatus.PROPOSED
        assert world.meeting_repo.meetings[completed.id].status == MeetingStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_deleted_schedule_is_gone_for_callers(self, world) -> None:
        result = await world.schedules.create_schedule(world.reporter, _create(world.employee.id))
        await world.schedules.delete_schedule(world.reporter, result.schedule.id)

        assert await world.schedules.list_schedules(world.reporter) == []
        with pytest.raises(NotFoundError):
            await world.schedules.get_schedule(world.reporter, result.schedule.id)
        with pytest.raises(NotFoundError):
            await world.schedules.resume_schedule(world.reporter, result.schedule.id)

    @pytest.mark.asyncio
    async def test_deleted_schedule_frees_the_pair(self, world) -> None:
        result = await world.schedules.create_schedule(world.reporter, _create(world.employee.id))
        await world.schedules.delete_schedule(world.reporter, result.schedule.id)
        again = await world.schedules.create_schedule(world.reporter, _create(world.employee.id))
        assert again.schedule.id != result.schedule.id


# ── Edit / Access ────────────────────────────────────────────────────────────


class TestEditAndAccess:
    @pytest.mark.asyncio
    async def test_new_slot_lands_after_materialized_meeting(self, world) -> None:
        result = await world.schedules.create_schedule(world.reporter, _create(world.employee.id))
        edited = await world.schedules.edit_schedule(
            world.reporter, result.schedule.id, ScheduleUpdate(day_of_week=5, time_of_day="16:00")
        )
        assert edited.schedule.day_of_week == 5
        # First Friday after the proposed Monday 03-09 meeting, not Friday 03-06
        assert edited.schedule.next_meeting_date == datetime(2026, 3, 13, 16, 0, tzinfo=timezone.utc)
        # The already proposed meeting keeps its date
        assert world.meeting_repo.meetings[result.proposed_meeting_id].meeting_date == MONDAY_10

    @pytest.mark.asyncio
    async def test_new_slot_without_meetings_counts_from_now(self, world) -> None:
        result = await world.schedules.create_schedule(
            world.reporter, _create(world.employee.id, propose_first_meeting=False)
        )
        edited = await world.schedules.edit_schedule(
            world.reporter, result.schedule.id, ScheduleUpdate(day_of_week=5, time_of_day="16:00")
        )
        assert edited.schedule.next_meeting_date == datetime(2026, 3, 6, 16, 0, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_frequency_change_never_repeats_materialized_slot(self, world) -> None:
        result = await world.schedules.create_schedule(world.reporter, _create(world.employee.id))
        edited = await world.schedules.edit_schedule(
            world.reporter, result.schedule.id, ScheduleUpdate(frequency=Frequency.WEEKLY)
        )
        assert edited.schedule.frequency == Frequency.WEEKLY
        assert edited.schedule.next_meeting_date == MONDAY_10 + timedelta(days=14)

        assert (await world.schedules.materialize_due(timedelta(hours=168))).created_meeting_ids == []

        world.clock.now = datetime(2026, 3, 22, 9, 0, tzinfo=timezone.utc)
        report = await world.schedules.materialize_due(timedelta(hours=168))
        assert len(report.created_meeting_ids) == 1

        dates = sorted(m.meeting_date for m in await _schedule_meetings(world, result.schedule.id))
        assert dates == [MONDAY_10, MONDAY_10 + timedelta(days=14)]
        schedule = world.schedule_repo.schedules[result.schedule.id]
        assert schedule.next_meeting_date == MONDAY_10 + timedelta(days=21)

    @pytest.mark.asyncio
    async def test_edit_into_booked_slot_is_conflict(self, world) -> None:
        await world.schedules.create_schedule(world.reporter, _create(world.colleague.id, day=5))
        result = await world.schedules.create_schedule(world.reporter, _create(world.employee.id))
        with pytest.raises(ConflictError):
            await world.schedules.edit_schedule(
                world.reporter, result.schedule.id, ScheduleUpdate(day_of_week=5)
            )

    @pytest.mark.asyncio
    async def test_edit_paused_schedule_keeps_next_date(self, world) -> None:
        result = await world.schedules.create_schedule(world.reporter, _create(world.employee.id))
        await world.schedules.pause_schedule(world.reporter, result.schedule.id)
        before = world.schedule_repo.schedules[result.schedule.id].next_meeting_date
        edited = await world.schedules.edit_schedule(
            world.reporter, result.schedule.id, ScheduleUpdate(frequency=Frequency.WEEKLY)
        )
        assert edited.schedule.frequency == Frequency.WEEKLY
        assert edited.schedule.next_meeting_date == before

    @pytest.mark.asyncio
    async def test_other_reporter_cannot_manage(self, world) -> None:
        result = await world.schedules.create_schedule(world.reporter, _create(world.employee.id))
        with pytest.raises(AuthorizationError):
            await world.schedules.pause_schedule(world.other_reporter, result.schedule.id)

    @pytest.mark.asyncio
    async def test_listing_is_role_scoped(self, world) -> None:
        await world.schedules.create_schedule(world.reporter, _create(world.employee.id))
        await world.schedules.create_schedule(world.other_reporter, _create(world.outsider.id, day=2))

        assert len(await world.schedules.list_schedules(world.reporter)) == 1
        assert len(await world.schedules.list_schedules(world.admin)) == 2
        with pytest.raises(AuthorizationError):
            await world.schedules.list_schedules(world.employee)
