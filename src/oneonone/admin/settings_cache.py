"""TTL cache for the system settings row.

One SettingsCache lives on app.state. Readers call get(); the settings
update endpoint calls invalidate() so the next read reloads.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable

import structlog

from src.oneonone.admin.schemas import SystemSettings

logger = structlog.get_logger(__name__)


class SettingsCache:
    """Caches the result of `loader` for `ttl_seconds`.

    Args:
        loader: Coroutine function returning the current SystemSettings.
        ttl_seconds: How long a loaded value stays fresh.
        clock: Monotonic seconds source.
    """

    def __init__(
        self,
        loader: Callable[[], Awaitable[SystemSettings]],
        ttl_seconds: float = 300,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._loader = loader
        self._ttl = ttl_seconds
        self._clock = clock
        self._value: SystemSettings | None = None
        self._loaded_at: float | None = None
        self._lock = asyncio.Lock()

    def _fresh(self) -> bool:
        return (
            self._value is not None
            and self._loaded_at is not None
            and self._clock() - self._loaded_at < self._ttl
        )

    async def get(self) -> SystemSettings:
        if self._fresh():
            return self._value  # type: ignore[return-value]
        async with self._lock:
            if self._fresh():
                return self._value  # type: ignore[return-value]
            self._value = await self._loader()
            self._loaded_at = self._clock()
            logger.debug("settings_cache.loaded")
            return self._value

    def invalidate(self) -> None:
        self._value = None
        self._loaded_at = None
        logger.debug("settings_cache.invalidated")
