"""FastAPI application factory.

Creates the app with logging middleware, metrics middleware, CORS, Sentry,
the domain error handlers, lifespan wiring of repositories and services
onto app.state, and the v1 API router.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import timedelta

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.requests import Request
from fastapi.responses import Response

from src.oneonone.admin.audit import AuditLogger
from src.oneonone.admin.repository import AdminRepository
from src.oneonone.admin.settings_cache import SettingsCache
from src.oneonone.api.middleware.logging import LoggingMiddleware, configure_structlog
from src.oneonone.api.v1.router import router as v1_router
from src.oneonone.config import Settings, get_settings
from src.oneonone.core.database import close_db, get_session, init_db
from src.oneonone.core.errors import install_error_handlers
from src.oneonone.core.monitoring import MetricsMiddleware, get_metrics_response, init_sentry
from src.oneonone.core.redis import RateLimiter, close_redis, get_redis_pool
from src.oneonone.directory.repository import DirectoryRepository
from src.oneonone.insights.service import InsightsService
from src.oneonone.meetings.repository import MeetingRepository
from src.oneonone.meetings.service import MeetingService
from src.oneonone.notifications import NotificationService
from src.oneonone.recordings.processor import RecordingProcessor
from src.oneonone.recordings.repository import RecordingRepository
from src.oneonone.recordings.service import RecordingService
from src.oneonone.scheduling.jobs import MeetingJobs
from src.oneonone.scheduling.repository import ScheduleRepository
from src.oneonone.scheduling.scheduler import MeetingScheduler
from src.oneonone.scheduling.service import ScheduleService
from src.oneonone.services.analysis import AnalysisService
from src.oneonone.services.gsuite import GmailService, GSuiteAuthManager
from src.oneonone.services.storage import build_storage
from src.oneonone.todos.repository import TodoRepository
from src.oneonone.todos.service import TodoService

log = structlog.get_logger(__name__)


def _build_gmail(settings: Settings) -> GmailService | None:
    """Gmail sender when a service account and sender address are configured."""
    if not settings.EMAIL_SENDER_ADDRESS:
        log.info("email.disabled", reason="EMAIL_SENDER_ADDRESS not set")
        return None
    try:
        sa_path = settings.get_service_account_path()
    except Exception:
        log.warning("email.service_account_decode_failed", exc_info=True)
        return None
    if not sa_path:
        log.info("email.disabled", reason="no service account configured")
        return None
    auth = GSuiteAuthManager(sa_path, settings.EMAIL_SENDER_ADDRESS)
    return GmailService(auth, default_user_email=settings.EMAIL_SENDER_ADDRESS)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: init DB, Sentry and services on startup, close on shutdown."""
    settings = get_settings()
    configure_structlog()
    await init_db()

    if settings.SENTRY_DSN:
        init_sentry(dsn=settings.SENTRY_DSN, environment=settings.ENVIRONMENT.value)

    # ── Repositories ────────────────────────────────────────────────────
    directory_repo = DirectoryRepository(session_factory=get_session)
    schedule_repo = ScheduleRepository(session_factory=get_session)
    meeting_repo = MeetingRepository(session_factory=get_session)
    recording_repo = RecordingRepository(session_factory=get_session)
    todo_repo = TodoRepository(session_factory=get_session)
    admin_repo = AdminRepository(session_factory=get_session)

    app.state.directory_repository = directory_repo
    app.state.meeting_repository = meeting_repo
    app.state.admin_repository = admin_repo

    # ── Collaborators ───────────────────────────────────────────────────
    settings_cache = SettingsCache(
        admin_repo.get_system_settings,
        ttl_seconds=settings.SETTINGS_CACHE_TTL_SECONDS,
    )
    app.state.settings_cache = settings_cache
    app.state.audit_logger = AuditLogger(admin_repo)

    storage = build_storage(settings)
    notifier = NotificationService(
        _build_gmail(settings),
        app_base_url=settings.APP_BASE_URL,
        tz_name=settings.SCHEDULE_TIMEZONE,
    )
    analysis = AnalysisService(settings, settings_cache=settings_cache)
    app.state.audio_storage = storage
    app.state.analysis_service = analysis
    app.state.notifier = notifier
    if not analysis.configured:
        log.warning("analysis.not_configured", hint="set OPENAI_API_KEY to enable processing")

    try:
        app.state.rate_limiter = RateLimiter(get_redis_pool())
    except Exception:
        log.warning("rate_limiter.init_failed", exc_info=True)
        app.state.rate_limiter = None

    # ── Services ────────────────────────────────────────────────────────
    schedule_service = ScheduleService(
        schedule_repo,
        meeting_repo,
        directory_repo,
        notifier=notifier,
        tz_name=settings.SCHEDULE_TIMEZONE,
        cutoff_hour=settings.SAME_DAY_CUTOFF_HOUR,
    )
    meeting_service = MeetingService(meeting_repo, directory_repo, storage=storage, notifier=notifier)
    app.state.schedule_service = schedule_service
    app.state.meeting_service = meeting_service
    app.state.recording_service = RecordingService(
        recording_repo, meeting_service, storage, settings_cache, analysis=analysis
    )
    app.state.recording_processor = RecordingProcessor(
        recording_repo, storage, analysis, settings_cache
    )
    app.state.todo_service = TodoService(
        todo_repo, directory_repo, meeting_service, recording_repo, notifier=notifier
    )
    app.state.insights_service = InsightsService(recording_repo, directory_repo, analysis=analysis)

    meeting_jobs = MeetingJobs(
        schedule_service,
        meeting_repo,
        directory_repo,
        notifier,
        settings_cache,
        lookahead=timedelta(hours=settings.MATERIALIZE_LOOKAHEAD_HOURS),
    )
    app.state.meeting_jobs = meeting_jobs

    # ── In-process scheduler (optional; cron endpoint works without it) ─
    scheduler = None
    if settings.SCHEDULER_ENABLED:
        scheduler = MeetingScheduler(meeting_jobs, interval_minutes=settings.SCHEDULER_INTERVAL_MINUTES)
        scheduler.start()
    app.state.meeting_scheduler = scheduler

    log.info("app.started", environment=settings.ENVIRONMENT.value, email_enabled=notifier.enabled)

    yield

    # ── Shutdown ────────────────────────────────────────────────────────
    if scheduler is not None:
        scheduler.stop()
    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="One-on-One Dashboard API",
        version="0.1.0",
        description="Recurring one-on-one meetings, recordings with AI analysis, todos and insights",
        lifespan=lifespan,
    )

    # Middleware is added in reverse order (last added = outermost)

    if settings.CORS_ALLOWED_ORIGINS == "*":
        origins = ["*"]
    else:
        origins = [o.strip() for o in settings.CORS_ALLOWED_ORIGINS.split(",")]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Logging middleware (logs every request with timing)
    app.add_middleware(LoggingMiddleware)

    # Metrics middleware (outermost -- records Prometheus metrics for all requests)
    app.add_middleware(MetricsMiddleware)

    install_error_handlers(app)
    app.include_router(v1_router)

    # Prometheus metrics endpoint (infrastructure route, outside v1 router)
    @app.get("/metrics", include_in_schema=False)
    async def metrics(request: Request) -> Response:
        """Prometheus metrics endpoint."""
        return get_metrics_response()

    return app


# Module-level app for uvicorn
app = create_app()
