"""Pydantic v2 schemas for meeting recordings and their analysis payloads.

The analysis collaborator answers in camelCase JSON; every payload model
accepts both camelCase and snake_case keys and is validated when produced
and again when read back from storage. Out-of-range scores are clamped
rather than rejected.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from src.oneonone.todos.schemas import TodoPriority


class RecordingStatus(str, Enum):
    UPLOADING = "UPLOADING"
    UPLOADED = "UPLOADED"
    TRANSCRIBING = "TRANSCRIBING"
    ANALYZING = "ANALYZING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


TERMINAL_STATUSES = frozenset({RecordingStatus.COMPLETED, RecordingStatus.FAILED})


def _clamp(value: float | int | None, low: float, high: float) -> float | None:
    if value is None:
        return None
    return max(low, min(high, value))


class _Payload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Sentiment(_Payload):
    score: float = 0.0
    label: Literal["positive", "neutral", "negative"] = "neutral"
    employee_mood: str | None = None
    reporter_engagement: str | None = None
    overall_tone: str | None = None

    @field_validator("score", mode="before")
    @classmethod
    def _clamp_score(cls, value: float | None) -> float:
        return _clamp(value, -1.0, 1.0) if value is not None else 0.0

    @field_validator("label", mode="before")
    @classmethod
    def _normalize_label(cls, value: str | None) -> str:
        label = str(value or "").strip().lower()
        return label if label in ("positive", "neutral", "negative") else "neutral"


class QualityDetails(_Payload):
    clarity: int | None = None
    actionability: int | None = None
    engagement: int | None = None
    goal_alignment: int | None = None
    follow_up: int | None = None
    overall_feedback: str | None = None

    @field_validator(
        "clarity", "actionability", "engagement", "goal_alignment", "follow_up", mode="before"
    )
    @classmethod
    def _clamp_dimension(cls, value: float | None) -> int | None:
        clamped = _clamp(value, 1, 10)
        return round(clamped) if clamped is not None else None


class SuggestedTodo(_Payload):
    """An action item proposed by the analysis, promotable to a Todo."""

    title: str
    description: str | None = None
    assign_to: Literal["employee", "reporter"] = "employee"
    priority: TodoPriority = TodoPriority.MEDIUM
    promoted: bool = False
    promoted_todo_id: uuid.UUID | None = None

    @field_validator("assign_to", mode="before")
    @classmethod
    def _normalize_assignee(cls, value: str | None) -> str:
        assignee = str(value or "").strip().lower()
        return "reporter" if assignee == "reporter" else "employee"

    @field_validator("priority", mode="before")
    @classmethod
    def _normalize_priority(cls, value: str | TodoPriority | None) -> str:
        if isinstance(value, TodoPriority):
            return value.value
        priority = str(value or "").strip().upper()
        return priority if priority in TodoPriority.__members__ else TodoPriority.MEDIUM.value


class AnalysisResult(_Payload):
    summary: str
    key_points: list[str] = Field(default_factory=list)
    suggested_todos: list[SuggestedTodo] = Field(default_factory=list)
    sentiment: Sentiment = Field(default_factory=Sentiment)
    quality_score: int = 0
    quality_details: QualityDetails = Field(default_factory=QualityDetails)
    common_themes: list[str] = Field(default_factory=list)

    @field_validator("quality_score", mode="before")
    @classmethod
    def _clamp_quality(cls, value: float | None) -> int:
        return round(_clamp(value, 0, 100)) if value is not None else 0


class TranscriptionResult(BaseModel):
    text: str
    language: str = "en"
    duration_seconds: float = 0.0


class MeetingRecording(BaseModel):
    id: uuid.UUID
    meeting_id: uuid.UUID
    status: RecordingStatus = RecordingStatus.UPLOADING
    audio_key: str | None = None
    file_size: int | None = None
    language: str | None = None
    transcript: str | None = None
    summary: str | None = None
    key_points: list[str] = Field(default_factory=list)
    sentiment: Sentiment | None = None
    quality_score: int | None = None
    quality_details: QualityDetails | None = None
    suggested_todos: list[SuggestedTodo] = Field(default_factory=list)
    error_message: str | None = None
    duration_seconds: int | None = None
    processed_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class RecordingStatusRead(BaseModel):
    """What a polling client needs on every tick."""

    status: RecordingStatus
    error_message: str | None = None
    is_terminal: bool

    @classmethod
    def of(cls, recording: MeetingRecording) -> RecordingStatusRead:
        return cls(
            status=recording.status,
            error_message=recording.error_message,
            is_terminal=recording.is_terminal,
        )


class ProcessRequest(BaseModel):
    language: str | None = Field(
        default=None, description="ISO-639-1 hint, e.g. en, hi, gu; omit or 'auto' to detect"
    )
