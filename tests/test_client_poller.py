"""Tests for the client-side RecordingStatusPoller and RecordingSession."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from src.oneonone.client.poller import RecordingSession, RecordingStatusPoller
from src.oneonone.recordings.schemas import RecordingStatus, RecordingStatusRead


def _status(status: RecordingStatus, error: str | None = None) -> RecordingStatusRead:
    return RecordingStatusRead(
        status=status,
        error_message=error,
        is_terminal=status in (RecordingStatus.COMPLETED, RecordingStatus.FAILED),
    )


class ScriptedFetch:
    """Returns (or raises) the scripted items in order, repeating the last one."""

    def __init__(self, *items) -> None:
        self.items = list(items)
        self.calls = 0

    async def __call__(self) -> RecordingStatusRead:
        item = self.items[min(self.calls, len(self.items) - 1)]
        self.calls += 1
        if isinstance(item, Exception):
            raise item
        return item


async def _no_sleep(seconds: float) -> None:
    await asyncio.sleep(0)


class TestRecordingStatusPoller:
    @pytest.mark.asyncio
    async def test_stops_on_completed(self) -> None:
        fetch = ScriptedFetch(
            _status(RecordingStatus.UPLOADED),
            _status(RecordingStatus.TRANSCRIBING),
            _status(RecordingStatus.ANALYZING),
            _status(RecordingStatus.COMPLETED),
        )
        seen: list[RecordingStatus] = []
        poller = RecordingStatusPoller(fetch, on_update=lambda s: seen.append(s.status), sleep=_no_sleep)

        final = await poller.wait()

        assert final.status == RecordingStatus.COMPLETED
        assert fetch.calls == 4
        assert seen[-1] == RecordingStatus.COMPLETED
        assert not poller.running

    @pytest.mark.asyncio
    async def test_stops_on_failed_with_message(self) -> None:
        fetch = ScriptedFetch(
            _status(RecordingStatus.TRANSCRIBING),
            _status(RecordingStatus.FAILED, "Transcription failed"),
        )
        final = await RecordingStatusPoller(fetch, sleep=_no_sleep).wait()
        assert final.status == RecordingStatus.FAILED
        assert final.error_message == "Transcription failed"

    @pytest.mark.asyncio
    async def test_repeated_statuses_pass_through(self) -> None:
        fetch = ScriptedFetch(
            _status(RecordingStatus.TRANSCRIBING),
            _status(RecordingStatus.TRANSCRIBING),
            _status(RecordingStatus.COMPLETED),
        )
        seen: list[RecordingStatus] = []
        await RecordingStatusPoller(fetch, on_update=lambda s: seen.append(s.status), sleep=_no_sleep).wait()
        assert seen == [RecordingStatus.TRANSCRIBING, RecordingStatus.TRANSCRIBING, RecordingStatus.COMPLETED]

    @pytest.mark.asyncio
    async def test_transport_errors_are_tolerated(self) -> None:
        fetch = ScriptedFetch(
            httpx.ConnectError("refused"),
            httpx.ConnectError("refused"),
            _status(RecordingStatus.COMPLETED),
        )
        poller = RecordingStatusPoller(fetch, max_consecutive_errors=3, sleep=_no_sleep)
        final = await poller.wait()
        assert final.status == RecordingStatus.COMPLETED
        assert poller.reads == 1

    @pytest.mark.asyncio
    async def test_gives_up_after_consecutive_errors(self) -> None:
        fetch = ScriptedFetch(httpx.ConnectError("refused"))
        poller = RecordingStatusPoller(fetch, max_consecutive_errors=3, sleep=_no_sleep)
        with pytest.raises(httpx.ConnectError):
            await poller.wait()
        assert fetch.calls == 3

    @pytest.mark.asyncio
    async def test_stop_cancels_polling(self) -> None:
        fetch = ScriptedFetch(_status(RecordingStatus.TRANSCRIBING))
        poller = RecordingStatusPoller(fetch, sleep=_no_sleep)
        task = poller.start()
        for _ in range(5):
            await asyncio.sleep(0)

        poller.stop()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert not poller.running
        assert poller.last_status.status == RecordingStatus.TRANSCRIBING


class FakeMonotonic:
    def __init__(self) -> None:
        self.value = 0.0

    def __call__(self) -> float:
        return self.value


class TestRecordingSession:
    def test_stops_exactly_at_cap(self) -> None:
        session = RecordingSession(max_duration_seconds=1500, clock=FakeMonotonic())
        for _ in range(25):
            assert session.add_chunk(b"x" * 10, 60)

        assert session.stopped
        assert session.stop_reason == "max_duration"
        assert not session.add_chunk(b"late", 1)
        audio, duration = session.artifact()
        assert duration == 1500
        assert len(audio) == 250

    def test_chunk_crossing_cap_is_dropped(self) -> None:
        session = RecordingSession(max_duration_seconds=100, clock=FakeMonotonic())
        assert session.add_chunk(b"a", 90)
        assert not session.add_chunk(b"b", 20)
        assert session.artifact() == (b"a", 90)

    def test_wall_clock_cap(self) -> None:
        clock = FakeMonotonic()
        session = RecordingSession(max_duration_seconds=1500, clock=clock)
        session.start()
        session.add_chunk(b"a", 10)
        clock.value = 1500

        assert not session.add_chunk(b"b", 10)
        assert session.stop_reason == "max_duration"
        assert session.remaining_seconds == 1490

    @pytest.mark.asyncio
    async def test_capture_consumes_until_source_ends(self) -> None:
        async def source():
            for _ in range(3):
                yield b"ab", 5.0

        session = RecordingSession(max_duration_seconds=1500, clock=FakeMonotonic())
        await session.capture(source())

        assert session.stop_reason == "source_ended"
        assert session.artifact() == (b"ababab", 15)

    @pytest.mark.asyncio
    async def test_capture_stops_stalled_source_at_cap(self) -> None:
        async def stalling_source():
            yield b"ab", 5.0
            await asyncio.Event().wait()
            yield b"never", 5.0

        clock = FakeMonotonic()
        session = RecordingSession(max_duration_seconds=1500, clock=clock)
        session.start()
        clock.value = 1499.95

        await asyncio.wait_for(session.capture(stalling_source()), timeout=5)

        assert session.stopped
        assert session.stop_reason == "max_duration"
        assert session.artifact() == (b"ab", 5)
