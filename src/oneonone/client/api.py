"""Async HTTP client for the dashboard's recording endpoints.

Status reads retry transient transport failures (tenacity, 3 attempts,
exponential backoff 1-10s). Mutating calls are not retried.
"""

from __future__ import annotations

import uuid

import httpx
import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from src.oneonone.recordings.schemas import MeetingRecording, RecordingStatusRead

logger = structlog.get_logger(__name__)

_read_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((httpx.ConnectError, httpx.TimeoutException)),
    reraise=True,
)


class DashboardClient:
    """Bearer-authenticated client for /api/v1/meetings/{id}/recording.

    Args:
        base_url: Server root, e.g. "https://dashboard.example.com".
        token: Access token for the Authorization header.
        transport: Optional httpx transport (tests pass an ASGITransport).
    """

    TIMEOUT_UPLOAD = 300.0
    TIMEOUT_READ = 10.0

    def __init__(
        self,
        base_url: str,
        token: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._headers = {"Authorization": f"Bearer {token}"}
        self._transport = transport

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._headers,
            timeout=timeout,
            transport=self._transport,
        )

    def _path(self, meeting_id: uuid.UUID, suffix: str = "") -> str:
        return f"/api/v1/meetings/{meeting_id}/recording{suffix}"

    @_read_retry
    async def get_recording_status(self, meeting_id: uuid.UUID) -> RecordingStatusRead:
        async with self._client(self.TIMEOUT_READ) as client:
            response = await client.get(self._path(meeting_id, "/status"))
            response.raise_for_status()
            return RecordingStatusRead.model_validate(response.json())

    async def start_recording(self, meeting_id: uuid.UUID) -> MeetingRecording:
        async with self._client(self.TIMEOUT_READ) as client:
            response = await client.post(self._path(meeting_id, "/start"))
            response.raise_for_status()
            return MeetingRecording.model_validate(response.json())

    async def upload_recording(
        self,
        meeting_id: uuid.UUID,
        audio: bytes,
        duration_seconds: int,
        content_type: str = "audio/webm",
    ) -> MeetingRecording:
        async with self._client(self.TIMEOUT_UPLOAD) as client:
            response = await client.post(
                self._path(meeting_id, "/upload"),
                files={"file": ("recording.webm", audio, content_type)},
                data={"duration_seconds": str(duration_seconds)},
            )
            response.raise_for_status()
            logger.info(
                "client.recording_uploaded",
                meeting_id=str(meeting_id),
                size_bytes=len(audio),
                duration_seconds=duration_seconds,
            )
            return MeetingRecording.model_validate(response.json())

    async def process_recording(
        self, meeting_id: uuid.UUID, language: str | None = None
    ) -> RecordingStatusRead:
        async with self._client(self.TIMEOUT_READ) as client:
            response = await client.post(
                self._path(meeting_id, "/process"), json={"language": language}
            )
            response.raise_for_status()
            return RecordingStatusRead.model_validate(response.json())

    async def delete_recording(self, meeting_id: uuid.UUID) -> None:
        async with self._client(self.TIMEOUT_READ) as client:
            response = await client.delete(self._path(meeting_id))
            response.raise_for_status()
