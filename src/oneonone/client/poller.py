"""Client-side recording capture and status polling.

RecordingStatusPoller reads the status at a fixed interval while the
recording is non-terminal and stops on COMPLETED or FAILED, or when
stopped. Repeated or out-of-order statuses are passed through as read.

RecordingSession accumulates captured audio and force-stops at the
duration cap, so an uploaded artifact is never longer than the cap.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import AsyncIterator, Awaitable, Callable

import httpx
import structlog

from src.oneonone.recordings.schemas import RecordingStatusRead

logger = structlog.get_logger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 2.0
DEFAULT_MAX_RECORDING_SECONDS = 25 * 60


class RecordingStatusPoller:
    """Polls `fetch` as a cancellable asyncio task.

    Args:
        fetch: Coroutine function returning the current status.
        interval: Seconds between reads.
        on_update: Optional callback invoked with every read.
        max_consecutive_errors: Transport errors tolerated in a row before
            the poller gives up and re-raises.
        sleep: Awaitable sleep, replaceable in tests.
    """

    def __init__(
        self,
        fetch: Callable[[], Awaitable[RecordingStatusRead]],
        interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        on_update: Callable[[RecordingStatusRead], None] | None = None,
        max_consecutive_errors: int = 5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._fetch = fetch
        self._interval = interval
        self._on_update = on_update
        self._max_errors = max_consecutive_errors
        self._sleep = sleep
        self._task: asyncio.Task[RecordingStatusRead] | None = None
        self.reads = 0
        self.last_status: RecordingStatusRead | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task[RecordingStatusRead]:
        if self.running:
            return self._task  # type: ignore[return-value]
        self._task = asyncio.create_task(self._run(), name="recording_status_poller")
        return self._task

    async def wait(self) -> RecordingStatusRead:
        """Start if needed and return the terminal status."""
        return await self.start()

    def stop(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
            logger.info("poller.stopped", reads=self.reads)

    async def _run(self) -> RecordingStatusRead:
        errors = 0
        while True:
            try:
                status = await self._fetch()
            except (httpx.TransportError, httpx.HTTPStatusError):
                errors += 1
                logger.warning("poller.read_failed", attempt=errors, exc_info=True)
                if errors >= self._max_errors:
                    raise
                await self._sleep(self._interval)
                continue

            errors = 0
            self.reads += 1
            self.last_status = status
            if self._on_update is not None:
                self._on_update(status)
            if status.is_terminal:
                logger.info("poller.terminal", status=status.status.value, reads=self.reads)
                return status
            await self._sleep(self._interval)


class RecordingSession:
    """Accumulates audio chunks up to a duration cap.

    Each chunk carries the seconds of audio it covers. The session stops
    itself when the accumulated duration reaches the cap or when the wall
    clock since start() does; a chunk that would cross the cap is dropped.
    capture() also stops on the wall-clock cap while waiting for a chunk.

    Args:
        max_duration_seconds: Cap on the recording length.
        clock: Monotonic seconds source.
    """

    def __init__(
        self,
        max_duration_seconds: int = DEFAULT_MAX_RECORDING_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._max = max_duration_seconds
        self._clock = clock
        self._chunks: list[bytes] = []
        self._duration = 0.0
        self._started_at: float | None = None
        self.stopped = False
        self.stop_reason: str | None = None

    @property
    def duration_seconds(self) -> float:
        return self._duration

    @property
    def remaining_seconds(self) -> float:
        return max(0.0, self._max - self._duration)

    def start(self) -> None:
        self._started_at = self._clock()
        logger.info("recording_session.started", max_duration_seconds=self._max)

    def stop(self, reason: str = "user") -> None:
        if not self.stopped:
            self.stopped = True
            self.stop_reason = reason
            logger.info(
                "recording_session.stopped",
                reason=reason,
                duration_seconds=self._duration,
            )

    def add_chunk(self, data: bytes, seconds: float) -> bool:
        """Append a chunk. Returns False once the session is stopped."""
        if self.stopped:
            return False
        if self._started_at is None:
            self.start()

        if self._clock() - self._started_at >= self._max:  # type: ignore[operator]
            self.stop("max_duration")
            return False
        if self._duration + seconds > self._max:
            self.stop("max_duration")
            return False

        self._chunks.append(data)
        self._duration += seconds
        if self._duration >= self._max:
            self.stop("max_duration")
        return True

    async def capture(self, source: AsyncIterator[tuple[bytes, float]]) -> None:
        """Consume (chunk, seconds) pairs until the source ends or the session stops.

        A timer bounds the whole capture by the wall-clock time left before
        the cap, so a stalled source is still stopped at the boundary.
        """
        if self._started_at is None:
            self.start()
        remaining = self._max - (self._clock() - self._started_at)  # type: ignore[operator]
        try:
            async with asyncio.timeout(max(0.0, remaining)):
                async for data, seconds in source:
                    if not self.add_chunk(data, seconds):
                        break
        except TimeoutError:
            self.stop("max_duration")
        self.stop("source_ended")

    def artifact(self) -> tuple[bytes, int]:
        """Captured audio and its duration in whole seconds (never above the cap)."""
        return b"".join(self._chunks), min(int(self._duration), self._max)
