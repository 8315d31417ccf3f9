"""Integration tests for the v1 API endpoints.

Uses the in-memory `world` from conftest behind a minimal FastAPI app with
the v1 router, the domain error handlers, and get_current_user overridden
to return whichever seeded user the test selects.
"""

from __future__ import annotations

import uuid
from datetime import timedelta
from unittest.mock import patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from src.oneonone.admin.audit import AuditLogger
from src.oneonone.admin.schemas import AuditAction
from src.oneonone.config import Environment, Settings
from src.oneonone.meetings.schemas import MeetingCreate

AUDIO = b"\x1a\x45\xdf\xa3" * 1024
SCHEDULES = "/api/v1/recurring-schedules"


def _make_mock_app(world=None):
    """Create a minimal FastAPI app wired to the in-memory services."""
    from fastapi import FastAPI

    from src.oneonone.api.v1.router import router
    from src.oneonone.core.errors import install_error_handlers

    app = FastAPI()
    install_error_handlers(app)
    app.include_router(router)

    if world is not None:
        app.state.directory_repository = world.directory
        app.state.meeting_repository = world.meeting_repo
        app.state.admin_repository = world.admin_repo
        app.state.settings_cache = world.settings_cache
        app.state.audit_logger = AuditLogger(world.admin_repo)
        app.state.schedule_service = world.schedules
        app.state.meeting_service = world.meetings
        app.state.recording_service = world.recordings
        app.state.recording_processor = world.processor
        app.state.todo_service = world.todos
        app.state.insights_service = world.insights
        app.state.meeting_jobs = world.jobs
    return app


class AsUser:
    """Mutable stand-in for get_current_user."""

    def __init__(self, user) -> None:
        self.user = user

    async def __call__(self):
        return self.user


@pytest_asyncio.fixture
async def api(world):
    """Yield (client, world, as_user) with auth overridden to world.reporter."""
    from src.oneonone.api.deps import get_current_user

    app = _make_mock_app(world)
    as_user = AsUser(world.reporter)
    app.dependency_overrides[get_current_user] = as_user

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client, world, as_user


async def _meeting(world, days: int = 1):
    return await world.meeting_repo.create_meeting(
        MeetingCreate(
            employee_id=world.employee.id,
            reporter_id=world.reporter.id,
            meeting_date=world.clock.now + timedelta(days=days),
        )
    )


# ── Wiring ───────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_missing_service_returns_503(world):
    """GET /recurring-schedules without a schedule service -> 503."""
    from src.oneonone.api.deps import get_current_user

    app = _make_mock_app()
    app.dependency_overrides[get_current_user] = AsUser(world.reporter)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get(SCHEDULES)
        assert response.status_code == 503
        assert "not initialized" in response.json()["detail"]


@pytest.mark.asyncio
async def test_missing_bearer_token_returns_401(world):
    """Without the auth override a request needs a bearer token."""
    app = _make_mock_app(world)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/api/v1/todos")
        assert response.status_code == 401


# ── Recurring Schedules ──────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_create_schedule(api):
    """POST /recurring-schedules -> 201 with the proposed first meeting."""
    client, world, _ = api
    response = await client.post(
        SCHEDULES,
        json={"employee_id": str(world.employee.id), "day_of_week": 1, "time_of_day": "10:00"},
    )
    assert response.status_code == 201
    data = response.json()
    assert data["schedule"]["frequency"] == "BIWEEKLY"
    assert data["schedule"]["state"] == "ACTIVE"
    assert data["schedule"]["next_meeting_date"].startswith("2026-03-23T10:00")
    assert data["proposed_meeting_id"] is not None
    assert world.admin_repo.audit_logs[-1].action == AuditAction.CREATE


@pytest.mark.asyncio
async def test_create_schedule_without_employee_returns_400(api):
    client, _, _ = api
    response = await client.post(SCHEDULES, json={"day_of_week": 1, "time_of_day": "10:00"})
    assert response.status_code == 400
    assert response.json()["detail"] == "Employee is required"


@pytest.mark.asyncio
async def test_create_schedule_with_bad_time_returns_400(api):
    client, world, _ = api
    response = await client.post(
        SCHEDULES,
        json={"employee_id": str(world.employee.id), "day_of_week": 1, "time_of_day": "25:00"},
    )
    assert response.status_code == 400
    assert "time_of_day" in response.json()["detail"]


@pytest.mark.asyncio
async def test_employee_cannot_create_schedule(api):
    client, world, as_user = api
    as_user.user = world.employee
    response = await client.post(
        SCHEDULES,
        json={"employee_id": str(world.colleague.id), "day_of_week": 1, "time_of_day": "10:00"},
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_duplicate_schedule_returns_409(api):
    client, world, _ = api
    body = {"employee_id": str(world.employee.id), "day_of_week": 1, "time_of_day": "10:00"}
    assert (await client.post(SCHEDULES, json=body)).status_code == 201
    response = await client.post(SCHEDULES, json=body)
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_delete_schedule_cancels_upcoming_meetings(api):
    """DELETE /recurring-schedules/{id} -> cancelled_meeting_count=3, meetings listed CANCELLED."""
    client, world, _ = api
    created = await client.post(
        SCHEDULES,
        json={
            "employee_id": str(world.employee.id),
            "day_of_week": 1,
            "time_of_day": "10:00",
            "propose_first_meeting": False,
        },
    )
    schedule_id = created.json()["schedule"]["id"]
    schedule = world.schedule_repo.schedules[uuid.UUID(schedule_id)]
    for _ in range(3):
        _, schedule = await world.schedules.materialize(schedule)

    response = await client.delete(f"{SCHEDULES}/{schedule_id}")

    assert response.status_code == 200
    assert response.json()["cancelled_meeting_count"] == 3
    assert response.json()["schedule"]["state"] == "DELETED"

    listed = await client.get("/api/v1/meetings", params={"status": "CANCELLED"})
    assert len(listed.json()) == 3
    assert world.admin_repo.audit_logs[-1].details == {"cancelled_meeting_count": 3}

    assert (await client.get(f"{SCHEDULES}/{schedule_id}")).status_code == 404


@pytest.mark.asyncio
async def test_pause_resume_cycle(api):
    client, world, _ = api
    created = await client.post(
        SCHEDULES,
        json={"employee_id": str(world.employee.id), "day_of_week": 1, "time_of_day": "10:00"},
    )
    schedule_id = created.json()["schedule"]["id"]

    paused = await client.post(
        f"{SCHEDULES}/{schedule_id}/pause", json={"cancel_future_meetings": True}
    )
    assert paused.status_code == 200
    assert paused.json()["schedule"]["state"] == "PAUSED"
    assert paused.json()["cancelled_meeting_count"] == 1

    assert (await client.post(f"{SCHEDULES}/{schedule_id}/pause")).status_code == 409

    resumed = await client.post(f"{SCHEDULES}/{schedule_id}/resume")
    assert resumed.status_code == 200
    assert resumed.json()["schedule"]["state"] == "ACTIVE"


@pytest.mark.asyncio
async def test_get_schedule_includes_recent_meetings(api):
    client, world, _ = api
    created = await client.post(
        SCHEDULES,
        json={"employee_id": str(world.employee.id), "day_of_week": 1, "time_of_day": "10:00"},
    )
    schedule_id = created.json()["schedule"]["id"]

    response = await client.get(f"{SCHEDULES}/{schedule_id}")

    assert response.status_code == 200
    meetings = response.json()["recent_meetings"]
    assert [m["status"] for m in meetings] == ["PROPOSED"]


# ── Recordings ───────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_recording_flow_reaches_completed(api):
    """start -> upload -> process (202, background) -> status COMPLETED."""
    client, world, _ = api
    meeting = await _meeting(world)
    base = f"/api/v1/meetings/{meeting.id}/recording"

    started = await client.post(f"{base}/start")
    assert started.status_code == 201
    assert started.json()["status"] == "UPLOADING"

    uploaded = await client.post(
        f"{base}/upload",
        files={"file": ("recording.webm", AUDIO, "audio/webm")},
        data={"duration_seconds": "600"},
    )
    assert uploaded.status_code == 200
    assert uploaded.json()["status"] == "UPLOADED"

    queued = await client.post(f"{base}/process", json={"language": "en"})
    assert queued.status_code == 202
    assert queued.json() == {"status": "TRANSCRIBING", "error_message": None, "is_terminal": False}

    status = await client.get(f"{base}/status")
    assert status.json()["status"] == "COMPLETED"
    assert status.json()["is_terminal"] is True
    assert (await client.post(f"{base}/process")).status_code == 409

    full = await client.get(base)
    assert full.json()["quality_score"] == 82
    assert len(full.json()["suggested_todos"]) == 2

    promoted = await client.post(f"{base}/suggestions/1/promote")
    assert promoted.status_code == 201
    assert promoted.json()["assigned_to_id"] == str(world.employee.id)
    assert (await client.post(f"{base}/suggestions/1/promote")).status_code == 409


@pytest.mark.asyncio
async def test_failed_processing_is_visible_in_status(api):
    client, world, _ = api
    world.analysis.transcribe_error = RuntimeError("speech provider unavailable")
    meeting = await _meeting(world)
    base = f"/api/v1/meetings/{meeting.id}/recording"
    await client.post(f"{base}/start")
    await client.post(
        f"{base}/upload",
        files={"file": ("recording.webm", AUDIO, "audio/webm")},
        data={"duration_seconds": "60"},
    )

    assert (await client.post(f"{base}/process")).status_code == 202

    status = (await client.get(f"{base}/status")).json()
    assert status["status"] == "FAILED"
    assert status["error_message"] == "speech provider unavailable"

    assert (await client.delete(base)).status_code == 204
    assert (await client.post(f"{base}/start")).status_code == 201


@pytest.mark.asyncio
async def test_upload_over_cap_returns_400(api):
    client, world, _ = api
    meeting = await _meeting(world)
    base = f"/api/v1/meetings/{meeting.id}/recording"
    await client.post(f"{base}/start")

    response = await client.post(
        f"{base}/upload",
        files={"file": ("recording.webm", AUDIO, "audio/webm")},
        data={"duration_seconds": "1501"},
    )
    assert response.status_code == 400
    assert "25-minute" in response.json()["detail"]


@pytest.mark.asyncio
async def test_status_without_recording_returns_404(api):
    client, world, _ = api
    meeting = await _meeting(world)
    response = await client.get(f"/api/v1/meetings/{meeting.id}/recording/status")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_audio_download_checks_access(api):
    client, world, as_user = api
    meeting = await _meeting(world)
    base = f"/api/v1/meetings/{meeting.id}/recording"
    await client.post(f"{base}/start")
    assert (await client.get(f"{base}/audio")).status_code == 404

    await client.post(
        f"{base}/upload",
        files={"file": ("recording.webm", AUDIO, "audio/webm")},
        data={"duration_seconds": "60"},
    )
    audio = await client.get(f"{base}/audio")
    assert audio.status_code == 200
    assert audio.content == AUDIO
    assert audio.headers["content-type"] == "audio/webm"

    as_user.user = world.other_reporter
    assert (await client.get(f"{base}/audio")).status_code == 403


@pytest.mark.asyncio
async def test_attachment_download_checks_access(api):
    client, world, as_user = api
    meeting = await _meeting(world)
    base = f"/api/v1/meetings/{meeting.id}/attachments"
    uploaded = await client.post(
        base, files={"file": ("notes 1.txt", b"talking points", "text/plain")}
    )
    assert uploaded.status_code == 201
    attachment_id = uploaded.json()["id"]

    as_user.user = world.employee
    response = await client.get(f"{base}/{attachment_id}")
    assert response.status_code == 200
    assert response.content == b"talking points"
    assert response.headers["content-type"].startswith("text/plain")
    assert response.headers["content-disposition"] == "attachment; filename*=UTF-8''notes%201.txt"
    assert (await client.get(f"{base}/{uuid.uuid4()}")).status_code == 404

    as_user.user = world.outsider
    assert (await client.get(f"{base}/{attachment_id}")).status_code == 403


class StubLimiter:
    def __init__(self, allowed: bool = True, error: Exception | None = None) -> None:
        self.allowed = allowed
        self.error = error

    async def hit(self, scope, identity, limit, window_seconds=3600):
        if self.error is not None:
            raise self.error
        return self.allowed


@pytest.mark.asyncio
async def test_upload_rate_limited_returns_429(world):
    from src.oneonone.api.deps import get_current_user

    app = _make_mock_app(world)
    app.dependency_overrides[get_current_user] = AsUser(world.reporter)
    app.state.rate_limiter = StubLimiter(allowed=False)
    meeting = await _meeting(world)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.post(
            f"/api/v1/meetings/{meeting.id}/recording/upload",
            files={"file": ("recording.webm", AUDIO, "audio/webm")},
            data={"duration_seconds": "60"},
        )
        assert response.status_code == 429


@pytest.mark.asyncio
async def test_upload_proceeds_when_limiter_is_down(world):
    from src.oneonone.api.deps import get_current_user

    app = _make_mock_app(world)
    app.dependency_overrides[get_current_user] = AsUser(world.reporter)
    app.state.rate_limiter = StubLimiter(error=ConnectionError("redis down"))
    meeting = await _meeting(world)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        base = f"/api/v1/meetings/{meeting.id}/recording"
        await client.post(f"{base}/start")
        response = await client.post(
            f"{base}/upload",
            files={"file": ("recording.webm", AUDIO, "audio/webm")},
            data={"duration_seconds": "60"},
        )
        assert response.status_code == 200


# ── Users ────────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_user_listing_follows_role(api):
    client, world, as_user = api

    reports = {u["name"] for u in (await client.get("/api/v1/users")).json()}
    assert reports == {"Evan Employee", "Cora Colleague"}

    as_user.user = world.employee
    own = (await client.get("/api/v1/users")).json()
    assert [u["id"] for u in own] == [str(world.employee.id)]
    assert (await client.get(f"/api/v1/users/{world.colleague.id}")).status_code == 404

    me = (await client.get("/api/v1/users/me")).json()
    assert me["role"] == "EMPLOYEE"


@pytest.mark.asyncio
async def test_admin_creates_user_once(api):
    client, world, as_user = api
    body = {"email": "New.Hire@example.com", "name": "New Hire", "reports_to_id": str(world.reporter.id)}

    assert (await client.post("/api/v1/users", json=body)).status_code == 403

    as_user.user = world.admin
    created = await client.post("/api/v1/users", json=body)
    assert created.status_code == 201
    assert created.json()["email"] == "new.hire@example.com"
    assert (await client.post("/api/v1/users", json=body)).status_code == 409


@pytest.mark.asyncio
async def test_user_cannot_report_to_self(api):
    client, world, as_user = api
    as_user.user = world.admin
    response = await client.patch(
        f"/api/v1/users/{world.employee.id}", json={"reports_to_id": str(world.employee.id)}
    )
    assert response.status_code == 400


# ── Todos / Insights / Admin ─────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_todo_crud(api):
    client, world, as_user = api
    created = await client.post(
        "/api/v1/todos", json={"title": "Prepare review", "assigned_to_id": str(world.employee.id)}
    )
    assert created.status_code == 201
    todo_id = created.json()["id"]
    fetched = await client.get(f"/api/v1/todos/{todo_id}")
    assert fetched.status_code == 200
    assert fetched.json()["title"] == "Prepare review"
    assert (await client.get(f"/api/v1/todos/{uuid.uuid4()}")).status_code == 404

    as_user.user = world.outsider
    assert (await client.get(f"/api/v1/todos/{todo_id}")).status_code == 403

    as_user.user = world.employee
    done = await client.patch(f"/api/v1/todos/{todo_id}", json={"status": "DONE"})
    assert done.json()["completed_at"] is not None
    assert (await client.delete(f"/api/v1/todos/{todo_id}")).status_code == 403

    as_user.user = world.reporter
    assert (await client.delete(f"/api/v1/todos/{todo_id}")).status_code == 204


@pytest.mark.asyncio
async def test_insights_forbidden_for_employee(api):
    client, world, as_user = api
    as_user.user = world.employee
    assert (await client.get("/api/v1/insights")).status_code == 403

    as_user.user = world.admin
    response = await client.get("/api/v1/insights", params={"period": 7})
    assert response.status_code == 200
    assert response.json()["period_days"] == 7


@pytest.mark.asyncio
async def test_admin_settings_update_invalidates_cache(api):
    client, world, as_user = api
    assert (await world.settings_cache.get()).max_recording_minutes == 25

    assert (await client.put("/api/v1/admin/settings", json={"max_recording_minutes": 10})).status_code == 403

    as_user.user = world.admin
    response = await client.put("/api/v1/admin/settings", json={"max_recording_minutes": 10})
    assert response.status_code == 200
    assert (await world.settings_cache.get()).max_recording_minutes == 10
    assert world.admin_repo.audit_logs[-1].action == AuditAction.SETTINGS_CHANGE


# ── Cron / Test Login ────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_cron_requires_secret(api):
    client, _, _ = api
    settings = Settings(CRON_SECRET="s3cret")
    with patch("src.oneonone.api.v1.cron.get_settings", return_value=settings):
        assert (await client.post("/api/v1/cron/meetings")).status_code == 401
        wrong = await client.post("/api/v1/cron/meetings", headers={"X-Cron-Secret": "nope"})
        assert wrong.status_code == 401

        response = await client.post("/api/v1/cron/meetings", headers={"X-Cron-Secret": "s3cret"})
        assert response.status_code == 200
        assert response.json()["errors"] == []


@pytest.mark.asyncio
async def test_cron_without_secret_is_closed_in_production(api):
    client, _, _ = api
    settings = Settings(CRON_SECRET="", ENVIRONMENT=Environment.production)
    with patch("src.oneonone.api.v1.cron.get_settings", return_value=settings):
        assert (await client.post("/api/v1/cron/meetings")).status_code == 503


@pytest.mark.asyncio
async def test_test_login_issues_token(api):
    client, world, _ = api
    settings = Settings(ENVIRONMENT=Environment.development)
    with patch("src.oneonone.api.v1.auth.get_settings", return_value=settings):
        first = await client.post("/api/v1/auth/test-login", json={"role": "REPORTER"})
        second = await client.post("/api/v1/auth/test-login", json={"role": "REPORTER"})

    assert first.status_code == 200
    data = first.json()
    assert data["email"] == "test-reporter@test.com"
    assert data["role"] == "REPORTER"
    assert data["token_type"] == "bearer"
    assert second.json()["user_id"] == data["user_id"]


@pytest.mark.asyncio
async def test_test_login_hidden_in_production(api):
    client, _, _ = api
    settings = Settings(ENVIRONMENT=Environment.production, ENABLE_TEST_LOGIN=False)
    with patch("src.oneonone.api.v1.auth.get_settings", return_value=settings):
        response = await client.post("/api/v1/auth/test-login", json={"role": "EMPLOYEE"})
    assert response.status_code == 404
