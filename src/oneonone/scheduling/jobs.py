"""Periodic meeting job: materialize due schedules, then send reminders.

Triggered by POST /api/v1/cron/meetings or by the in-process scheduler.
A run never raises for a single bad schedule or undeliverable email;
those end up in JobReport.errors and the next run picks them up again.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Literal

import structlog
from pydantic import BaseModel, Field

from src.oneonone.admin.settings_cache import SettingsCache
from src.oneonone.directory.repository import DirectoryRepository
from src.oneonone.meetings.repository import MeetingRepository
from src.oneonone.notifications import NotificationService
from src.oneonone.scheduling.service import ScheduleService

logger = structlog.get_logger(__name__)

ReminderWindow = Literal["24h", "1h"]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobReport(BaseModel):
    recurring_meetings_created: int = 0
    reminders_24h_sent: int = 0
    reminders_1h_sent: int = 0
    errors: list[str] = Field(default_factory=list)


class MeetingJobs:
    """Runs one pass of the periodic meeting work.

    Args:
        schedule_service: Materializes due schedules.
        meeting_repository: Reminder candidates and sent flags.
        directory_repository: Looks up reminder recipients.
        notifier: Email sender.
        settings_cache: System settings (enable_email_reminders).
        lookahead: How far ahead of now schedules are materialized.
        clock: Returns the current UTC instant.
    """

    def __init__(
        self,
        schedule_service: ScheduleService,
        meeting_repository: MeetingRepository,
        directory_repository: DirectoryRepository,
        notifier: NotificationService,
        settings_cache: SettingsCache,
        lookahead: timedelta = timedelta(hours=168),
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._schedules = schedule_service
        self._meetings = meeting_repository
        self._directory = directory_repository
        self._notifier = notifier
        self._settings_cache = settings_cache
        self._lookahead = lookahead
        self._clock = clock

    async def run(self) -> JobReport:
        report = JobReport()

        materialized = await self._schedules.materialize_due(self._lookahead)
        report.recurring_meetings_created = len(materialized.created_meeting_ids)
        report.errors.extend(
            f"schedule {f.schedule_id}: {f.error}" for f in materialized.failures
        )

        settings = await self._settings_cache.get()
        if not settings.enable_email_reminders:
            logger.info("meeting_jobs.reminders_disabled")
        elif not self._notifier.enabled:
            logger.info("meeting_jobs.reminders_skipped", reason="email not configured")
        else:
            now = self._clock()
            # 24h reminders skip meetings already inside the 1h window
            report.reminders_24h_sent = await self._send_reminders(
                "24h", now + timedelta(hours=1), now + timedelta(hours=24), report.errors
            )
            report.reminders_1h_sent = await self._send_reminders(
                "1h", now, now + timedelta(hours=1), report.errors
            )

        logger.info(
            "meeting_jobs.completed",
            recurring_meetings_created=report.recurring_meetings_created,
            reminders_24h_sent=report.reminders_24h_sent,
            reminders_1h_sent=report.reminders_1h_sent,
            error_count=len(report.errors),
        )
        return report

    async def _send_reminders(
        self,
        window: ReminderWindow,
        start: datetime,
        end: datetime,
        errors: list[str],
    ) -> int:
        hours = 24 if window == "24h" else 1
        sent = 0
        meetings = await self._meetings.list_reminder_candidates(start, end, window)
        if not meetings:
            return 0

        user_ids = {m.employee_id for m in meetings} | {m.reporter_id for m in meetings}
        users = await self._directory.get_users(list(user_ids))

        for meeting in meetings:
            employee = users.get(meeting.employee_id)
            reporter = users.get(meeting.reporter_id)
            if employee is None or reporter is None:
                errors.append(f"meeting {meeting.id}: participant not found")
                continue
            try:
                await self._notifier.send_meeting_reminder(employee, reporter, meeting, hours)
                await self._meetings.mark_reminder_sent(meeting.id, window)
            except Exception as exc:
                logger.warning(
                    "meeting_jobs.reminder_failed",
                    meeting_id=str(meeting.id),
                    window=window,
                    exc_info=True,
                )
                errors.append(f"meeting {meeting.id} {window} reminder: {exc}")
                continue
            sent += 1
        return sent
