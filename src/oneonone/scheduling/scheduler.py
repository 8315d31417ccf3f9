"""In-process interval scheduler for the periodic meeting job.

Thin APScheduler wrapper started from the app lifespan when
SCHEDULER_ENABLED is set. Deployments that call the cron endpoint
instead leave it off.
"""

from __future__ import annotations

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

import structlog

from src.oneonone.scheduling.jobs import MeetingJobs

logger = structlog.get_logger(__name__)


class MeetingScheduler:
    """Runs MeetingJobs.run() every `interval_minutes`.

    Args:
        jobs: The job runner.
        interval_minutes: Minutes between runs.
    """

    def __init__(self, jobs: MeetingJobs, interval_minutes: int = 60) -> None:
        self._jobs = jobs
        self._interval_minutes = interval_minutes
        self._scheduler: AsyncIOScheduler | None = None
        self._started = False

    @property
    def running(self) -> bool:
        return self._started

    def start(self) -> None:
        self._scheduler = AsyncIOScheduler()
        self._scheduler.add_job(
            self._run_jobs,
            trigger=IntervalTrigger(minutes=self._interval_minutes),
            id="meeting_jobs",
            name="Materialize recurring meetings and send reminders",
            max_instances=1,
            coalesce=True,
            misfire_grace_time=300,
        )
        self._scheduler.start()
        self._started = True
        logger.info("meeting_scheduler.started", interval_minutes=self._interval_minutes)

    async def _run_jobs(self) -> None:
        logger.info("meeting_scheduler.triggered")
        try:
            await self._jobs.run()
        except Exception as exc:
            logger.error("meeting_scheduler.run_failed", error=str(exc), exc_info=True)

    def stop(self) -> None:
        if self._scheduler is not None and self._started:
            self._scheduler.shutdown(wait=False)
            self._started = False
            logger.info("meeting_scheduler.stopped")
