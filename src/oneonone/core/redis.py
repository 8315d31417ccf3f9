"""Redis connection pool and a fixed-window rate limiter.

The limiter counts hits per (scope, identity) in windows of
window_seconds. Keys look like rl:{scope}:{identity}:{window_index} and
expire with the window, so no cleanup job is needed.
"""

from __future__ import annotations

import time
from collections.abc import Callable

import redis.asyncio as aioredis
import structlog

from src.oneonone.config import get_settings

logger = structlog.get_logger(__name__)

# ── Module-level Redis pool (lazy init) ─────────────────────────────────────

_redis_pool: aioredis.Redis | None = None


def get_redis_pool() -> aioredis.Redis:
    """Get or create the Redis connection pool singleton."""
    global _redis_pool
    if _redis_pool is None:
        settings = get_settings()
        _redis_pool = aioredis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
        )
    return _redis_pool


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _redis_pool
    if _redis_pool:
        await _redis_pool.close()
        _redis_pool = None


# ── Rate Limiter ────────────────────────────────────────────────────────────


class RateLimiter:
    """Fixed-window request counter backed by Redis INCR/EXPIRE.

    Args:
        redis_client: Async Redis client (decode_responses=True).
        clock: Returns the current unix time; injectable for tests.
    """

    def __init__(
        self,
        redis_client: aioredis.Redis,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._redis = redis_client
        self._clock = clock

    def _key(self, scope: str, identity: str, window_seconds: int) -> str:
        window_index = int(self._clock()) // window_seconds
        return f"rl:{scope}:{identity}:{window_index}"

    async def hit(
        self,
        scope: str,
        identity: str,
        limit: int,
        window_seconds: int = 3600,
    ) -> bool:
        """Count one hit. Returns False when the caller is over the limit."""
        key = self._key(scope, identity, window_seconds)
        count = await self._redis.incr(key)
        if count == 1:
            await self._redis.expire(key, window_seconds)
        if count > limit:
            logger.warning(
                "rate_limit.exceeded",
                scope=scope,
                identity=identity,
                count=count,
                limit=limit,
            )
            return False
        return True
