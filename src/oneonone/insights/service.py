"""Insights over analyzed meetings in a recent period.

Aggregates COMPLETED recordings by department, language and sentiment,
and asks the analysis model for organization-level insights when at
least MIN_RECORDINGS_FOR_AI analyzed meetings are available. A failed
model call is logged and leaves ai_insights empty.
"""

from __future__ import annotations

import uuid
from collections import Counter
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import structlog

from src.oneonone.core.permissions import MANAGER_ROLES, require_role
from src.oneonone.directory.repository import DirectoryRepository
from src.oneonone.directory.schemas import Role, User
from src.oneonone.insights.schemas import (
    DepartmentStats,
    InsightInput,
    InsightsReport,
    InsightStats,
    RecentMeeting,
    SentimentDistribution,
)
from src.oneonone.recordings.repository import RecordingRepository
from src.oneonone.services.analysis import AnalysisService

logger = structlog.get_logger(__name__)

MIN_RECORDINGS_FOR_AI = 3
RECENT_MEETINGS_LIMIT = 10
UNASSIGNED_DEPARTMENT = "Unassigned"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InsightsService:
    def __init__(
        self,
        recording_repository: RecordingRepository,
        directory_repository: DirectoryRepository,
        analysis: AnalysisService | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._recordings = recording_repository
        self._directory = directory_repository
        self._analysis = analysis
        self._clock = clock

    async def get_insights(
        self,
        actor: User,
        period_days: int = 30,
        department_id: uuid.UUID | None = None,
    ) -> InsightsReport:
        require_role(actor, *MANAGER_ROLES)
        since = self._clock() - timedelta(days=period_days)
        reporter_id = actor.id if actor.role == Role.REPORTER else None
        rows = await self._recordings.list_completed_since(since, reporter_id=reporter_id)

        employees = await self._directory.get_users(list({m.employee_id for _, m in rows}))
        departments = {d.id: d.name for d in await self._directory.list_departments()}

        if department_id is not None:
            in_department = {
                e.id for e in employees.values() if e.department_id == department_id
            }
            rows = [(r, m) for r, m in rows if m.employee_id in in_department]

        def department_of(employee_id: uuid.UUID) -> str:
            employee = employees.get(employee_id)
            if employee is None or employee.department_id is None:
                return UNASSIGNED_DEPARTMENT
            return departments.get(employee.department_id, UNASSIGNED_DEPARTMENT)

        scored = [(r, m) for r, m in rows if r.quality_score]
        avg_quality = round(sum(r.quality_score for r, _ in scored) / len(scored)) if scored else 0

        department_stats: dict[str, DepartmentStats] = {}
        quality_totals: Counter[str] = Counter()
        quality_counts: Counter[str] = Counter()
        languages: Counter[str] = Counter()
        sentiments = SentimentDistribution()

        for recording, meeting in rows:
            name = department_of(meeting.employee_id)
            stats = department_stats.setdefault(name, DepartmentStats())
            stats.meetings += 1
            stats.themes.extend(recording.key_points)
            if recording.quality_score:
                quality_totals[name] += recording.quality_score
                quality_counts[name] += 1
            if recording.language:
                languages[recording.language] += 1
            if recording.sentiment is not None:
                label = recording.sentiment.label
                setattr(sentiments, label, getattr(sentiments, label) + 1)

        for name, stats in department_stats.items():
            if quality_counts[name]:
                stats.avg_quality = round(quality_totals[name] / quality_counts[name])

        recent = []
        for recording, meeting in rows[:RECENT_MEETINGS_LIMIT]:
            employee = employees.get(meeting.employee_id)
            recent.append(
                RecentMeeting(
                    id=meeting.id,
                    date=meeting.meeting_date,
                    employee=employee.name if employee else "Unknown",
                    department=department_of(meeting.employee_id),
                    quality_score=recording.quality_score,
                    sentiment=recording.sentiment.label if recording.sentiment else None,
                )
            )

        report = InsightsReport(
            period_days=period_days,
            stats=InsightStats(
                total_meetings=len(rows),
                total_recordings=len(scored),
                avg_quality_score=avg_quality,
            ),
            department_stats=department_stats,
            language_distribution=dict(languages),
            sentiment_distribution=sentiments,
            recent_meetings=recent,
        )

        ai_available = self._analysis is not None and self._analysis.configured
        if len(scored) >= MIN_RECORDINGS_FOR_AI and ai_available:
            summaries = [
                InsightInput(
                    department=department_of(m.employee_id),
                    sentiment_score=r.sentiment.score if r.sentiment else None,
                    sentiment_label=r.sentiment.label if r.sentiment else None,
                    key_points=r.key_points,
                    quality_score=r.quality_score or 0,
                )
                for r, m in scored
            ]
            try:
                report.ai_insights = await self._analysis.organization_insights(summaries)
            except Exception:
                logger.warning("insights.ai_generation_failed", recordings=len(scored), exc_info=True)

        logger.info(
            "insights.generated",
            period_days=period_days,
            meetings=len(rows),
            ai_insights=report.ai_insights is not None,
        )
        return report
