"""Speech-to-text and transcript analysis via LiteLLM.

Three calls:
- transcribe(): audio bytes -> TranscriptionResult (verbose_json, so the
  provider reports detected language and duration).
- analyze(): transcript -> AnalysisResult (JSON response format,
  validated into the typed payload models).
- organization_insights(): aggregated per-meeting summaries ->
  OrganizationInsights.

Model names come from the system settings row when set there, otherwise
from environment configuration. Provider failures surface as
ExternalServiceError with a readable message.
"""

from __future__ import annotations

import io
import json
from typing import Any

import litellm
import structlog
from pydantic import ValidationError as PydanticValidationError

from src.oneonone.admin.settings_cache import SettingsCache
from src.oneonone.config import Settings
from src.oneonone.core.errors import ExternalServiceError, ServiceNotConfiguredError
from src.oneonone.core.monitoring import track_llm_call
from src.oneonone.insights.schemas import InsightInput, OrganizationInsights
from src.oneonone.recordings.schemas import AnalysisResult, TranscriptionResult

logger = structlog.get_logger(__name__)

# Languages the transcription endpoint accepts as an explicit hint; anything
# else (e.g. Gujarati) is left to auto-detection.
SUPPORTED_LANGUAGE_HINTS = frozenset({
    "af", "ar", "hy", "az", "be", "bs", "bg", "ca", "zh", "hr", "cs", "da", "nl",
    "en", "et", "fi", "fr", "gl", "de", "el", "he", "hi", "hu", "is", "id", "it",
    "ja", "kk", "ko", "lv", "lt", "mk", "ms", "mr", "mi", "ne", "no", "fa", "pl",
    "pt", "ro", "ru", "sr", "sk", "sl", "es", "sw", "sv", "tl", "ta", "th", "tr",
    "uk", "ur", "vi", "cy",
})

ANALYSIS_SYSTEM_PROMPT = """You are an expert at analyzing one-on-one meeting transcripts.
Your task is to extract insights, action items, and assess meeting quality.
The transcript may be in English, Hindi, or Gujarati. Provide analysis in English.

Employee: {employee_name}
Reporter/Manager: {reporter_name}

Analyze the transcript and provide:
1. A concise summary (2-3 sentences)
2. Key points discussed (bullet points)
3. Suggested action items/todos with assignee and priority
4. Sentiment analysis
5. Meeting quality score and detailed breakdown

Be thorough but concise. Focus on actionable insights."""

ANALYSIS_USER_PROMPT = """Analyze this one-on-one meeting transcript:

---
{transcript}
---

Provide your analysis in the following JSON format:
{{
  "summary": "Brief 2-3 sentence summary",
  "keyPoints": ["point 1", "point 2"],
  "suggestedTodos": [
    {{
      "title": "Task title",
      "description": "Brief description",
      "assignTo": "employee" or "reporter",
      "priority": "HIGH", "MEDIUM", or "LOW"
    }}
  ],
  "sentiment": {{
    "score": number between -1 and 1,
    "label": "positive", "neutral", or "negative",
    "employeeMood": "description of employee's mood/attitude",
    "reporterEngagement": "description of reporter's engagement",
    "overallTone": "description of overall meeting tone"
  }},
  "qualityScore": number between 1-100,
  "qualityDetails": {{
    "clarity": number 1-10,
    "actionability": number 1-10,
    "engagement": number 1-10,
    "goalAlignment": number 1-10,
    "followUp": number 1-10,
    "overallFeedback": "brief feedback on meeting quality"
  }},
  "commonThemes": ["theme1", "theme2"]
}}

Only respond with valid JSON, no additional text."""

INSIGHTS_SYSTEM_PROMPT = (
    "You are an organizational analyst. Analyze aggregated one-on-one meeting data "
    "to provide organization-wide insights, identify common issues, and make recommendations."
)

INSIGHTS_USER_PROMPT = """Analyze these aggregated meeting summaries from across the organization:

{summaries}

Provide organization-wide insights in JSON format:
{{
  "overallScore": number 1-100,
  "topIssues": ["issue1", "issue2"] (max 5),
  "topStrengths": ["strength1", "strength2"] (max 5),
  "departmentScores": {{"dept1": score, "dept2": score}},
  "recommendations": ["recommendation1", "recommendation2"] (max 5),
  "trendAnalysis": "Brief analysis of trends and patterns"
}}

Only respond with valid JSON."""


def _provider_error(exc: Exception, operation: str) -> ExternalServiceError:
    if isinstance(exc, litellm.AuthenticationError):
        return ExternalServiceError(
            "Speech/LLM provider authentication failed. Please verify the API key."
        )
    if isinstance(exc, litellm.RateLimitError):
        return ExternalServiceError("Speech/LLM provider rate limit exceeded. Please try again later.")
    if isinstance(exc, litellm.BadRequestError) and operation == "transcription":
        return ExternalServiceError(f"Invalid audio file: {exc}")
    return ExternalServiceError(f"{operation.capitalize()} failed: {exc}")


def _response_field(response: Any, name: str) -> Any:
    value = getattr(response, name, None)
    if value is None and isinstance(response, dict):
        value = response.get(name)
    return value


class AnalysisService:
    """LiteLLM-backed transcription and analysis.

    Args:
        settings: Environment configuration (API key, default models, timeout).
        settings_cache: Optional system settings for model overrides.
    """

    def __init__(self, settings: Settings, settings_cache: SettingsCache | None = None) -> None:
        self._api_key = settings.OPENAI_API_KEY
        self._analysis_model = settings.ANALYSIS_MODEL
        self._transcription_model = settings.TRANSCRIPTION_MODEL
        self._timeout = settings.LLM_TIMEOUT
        self._settings_cache = settings_cache

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    def _require_configured(self) -> None:
        if not self.configured:
            raise ServiceNotConfiguredError("Speech/LLM API key not configured")

    async def _models(self) -> tuple[str, str]:
        analysis, transcription = self._analysis_model, self._transcription_model
        if self._settings_cache is not None:
            system = await self._settings_cache.get()
            analysis = system.analysis_model or analysis
            transcription = system.transcription_model or transcription
        return analysis, transcription

    async def _complete_json(self, model: str, operation: str, messages: list[dict]) -> dict:
        try:
            async with track_llm_call(model, operation):
                response = await litellm.acompletion(
                    model=model,
                    messages=messages,
                    temperature=0.3,
                    response_format={"type": "json_object"},
                    api_key=self._api_key,
                    timeout=self._timeout,
                )
        except Exception as exc:
            logger.warning(
                "analysis.provider_error", operation=operation, model=model, error=str(exc)
            )
            raise _provider_error(exc, operation) from exc

        content = response.choices[0].message.content
        if not content:
            raise ExternalServiceError(f"No response from model for {operation}")
        try:
            return json.loads(content)
        except json.JSONDecodeError as exc:
            raise ExternalServiceError(f"Model returned invalid JSON for {operation}") from exc

    async def transcribe(
        self,
        audio: bytes,
        filename: str = "recording.webm",
        language: str | None = None,
    ) -> TranscriptionResult:
        self._require_configured()
        _, model = await self._models()

        buffer = io.BytesIO(audio)
        buffer.name = filename
        kwargs: dict[str, Any] = {"response_format": "verbose_json"}
        if language and language != "auto" and language in SUPPORTED_LANGUAGE_HINTS:
            kwargs["language"] = language

        logger.info(
            "analysis.transcription_started",
            model=model,
            language=kwargs.get("language", "auto-detect"),
            size_bytes=len(audio),
        )
        try:
            async with track_llm_call(model, "transcription"):
                response = await litellm.atranscription(
                    model=model,
                    file=buffer,
                    api_key=self._api_key,
                    timeout=self._timeout,
                    **kwargs,
                )
        except Exception as exc:
            logger.warning(
                "analysis.provider_error",
                operation="transcription",
                model=model,
                error=str(exc),
            )
            raise _provider_error(exc, "transcription") from exc

        return TranscriptionResult(
            text=_response_field(response, "text") or "",
            language=_response_field(response, "language") or language or "en",
            duration_seconds=float(_response_field(response, "duration") or 0),
        )

    async def analyze(
        self,
        transcript: str,
        employee_name: str,
        reporter_name: str,
    ) -> AnalysisResult:
        self._require_configured()
        model, _ = await self._models()
        messages = [
            {
                "role": "system",
                "content": ANALYSIS_SYSTEM_PROMPT.format(
                    employee_name=employee_name, reporter_name=reporter_name
                ),
            },
            {"role": "user", "content": ANALYSIS_USER_PROMPT.format(transcript=transcript)},
        ]
        payload = await self._complete_json(model, "analysis", messages)
        try:
            result = AnalysisResult.model_validate(payload)
        except PydanticValidationError as exc:
            raise ExternalServiceError(
                f"Analysis response was incomplete: {exc.error_count()} invalid field(s)"
            ) from exc

        logger.info(
            "analysis.completed",
            model=model,
            quality_score=result.quality_score,
            suggested_todos=len(result.suggested_todos),
        )
        return result

    async def organization_insights(self, summaries: list[InsightInput]) -> OrganizationInsights:
        self._require_configured()
        model, _ = await self._models()
        messages = [
            {"role": "system", "content": INSIGHTS_SYSTEM_PROMPT},
            {
                "role": "user",
                "content": INSIGHTS_USER_PROMPT.format(
                    summaries=json.dumps([s.model_dump() for s in summaries], indent=2)
                ),
            },
        ]
        payload = await self._complete_json(model, "insights", messages)
        for key in ("topIssues", "topStrengths", "recommendations"):
            if isinstance(payload.get(key), list):
                payload[key] = payload[key][:5]
        try:
            return OrganizationInsights.model_validate(payload)
        except PydanticValidationError as exc:
            raise ExternalServiceError("Organization insights response was malformed") from exc
