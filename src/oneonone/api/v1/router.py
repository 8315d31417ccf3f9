"""V1 API router -- aggregates all v1 endpoint routers under /api/v1."""

from __future__ import annotations

from fastapi import APIRouter

from src.oneonone.api.v1 import (
    admin,
    auth,
    cron,
    health,
    insights,
    meetings,
    recordings,
    schedules,
    todos,
    users,
)

router = APIRouter(prefix="/api/v1")

router.include_router(health.router)
router.include_router(auth.router)
router.include_router(users.router)
router.include_router(schedules.router)
router.include_router(meetings.router)
router.include_router(recordings.router)
router.include_router(todos.router)
router.include_router(insights.router)
router.include_router(admin.router)
router.include_router(cron.router)
