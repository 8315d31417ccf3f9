"""Pydantic v2 schemas for aggregated insights."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class InsightInput(BaseModel):
    """One analyzed meeting, as sent to the organization insights prompt."""

    department: str
    sentiment_score: float | None = None
    sentiment_label: str | None = None
    key_points: list[str] = Field(default_factory=list)
    common_themes: list[str] = Field(default_factory=list)
    quality_score: int = 0


class OrganizationInsights(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    overall_score: int = 0
    top_issues: list[str] = Field(default_factory=list, max_length=5)
    top_strengths: list[str] = Field(default_factory=list, max_length=5)
    department_scores: dict[str, float] = Field(default_factory=dict)
    recommendations: list[str] = Field(default_factory=list, max_length=5)
    trend_analysis: str = ""


class InsightStats(BaseModel):
    total_meetings: int = 0
    total_recordings: int = 0
    avg_quality_score: int = 0


class DepartmentStats(BaseModel):
    meetings: int = 0
    avg_quality: int = 0
    themes: list[str] = Field(default_factory=list)


class SentimentDistribution(BaseModel):
    positive: int = 0
    neutral: int = 0
    negative: int = 0


class RecentMeeting(BaseModel):
    id: uuid.UUID
    date: datetime
    employee: str
    department: str | None = None
    quality_score: int | None = None
    sentiment: str | None = None


class InsightsReport(BaseModel):
    period_days: int
    stats: InsightStats
    department_stats: dict[str, DepartmentStats] = Field(default_factory=dict)
    language_distribution: dict[str, int] = Field(default_factory=dict)
    sentiment_distribution: SentimentDistribution = Field(default_factory=SentimentDistribution)
    recent_meetings: list[RecentMeeting] = Field(default_factory=list)
    ai_insights: OrganizationInsights | None = None
