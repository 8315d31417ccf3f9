"""Async SQLAlchemy engine, declarative base, and session factory.

Provides:
- Base: Declarative base for every table in the dashboard schema
- get_session(): Async generator yielding an AsyncSession
- init_db() / close_db(): lifespan hooks
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from src.oneonone.config import get_settings

# ── Module-level engine (lazy init) ────────────────────────────────────────

_engine: AsyncEngine | None = None


def get_engine() -> AsyncEngine:
    """Get or create the async engine singleton."""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_async_engine(
            settings.DATABASE_URL,
            pool_size=20,
            max_overflow=10,
            pool_pre_ping=True,
            echo=False,
        )
    return _engine


# ── Declarative Base ────────────────────────────────────────────────────────


class Base(DeclarativeBase):
    """Base class for all dashboard models."""


# ── Session Factory ─────────────────────────────────────────────────────────


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an AsyncSession bound to the shared engine."""
    engine = get_engine()
    async with AsyncSession(engine, expire_on_commit=False) as session:
        yield session


# ── Database Initialization ─────────────────────────────────────────────────


def _import_models() -> None:
    """Import every model module so Base.metadata knows all tables."""
    from src.oneonone.admin import models as _admin  # noqa: F401
    from src.oneonone.directory import models as _directory  # noqa: F401
    from src.oneonone.meetings import models as _meetings  # noqa: F401
    from src.oneonone.recordings import models as _recordings  # noqa: F401
    from src.oneonone.scheduling import models as _scheduling  # noqa: F401
    from src.oneonone.todos import models as _todos  # noqa: F401


async def init_db() -> None:
    """Create any missing tables (Alembic owns real migrations)."""
    _import_models()
    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Dispose of the engine and close all connections."""
    global _engine
    if _engine:
        await _engine.dispose()
        _engine = None
