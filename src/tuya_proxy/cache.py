"""Redis-backed cache for the Tuya access token.

The cache only saves round trips to the token endpoint. Every failure here is
logged and reported as a miss or a skipped write, never raised to the caller.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from urllib.parse import quote

import redis.asyncio as redis
from redis.asyncio.retry import Retry
from redis.backoff import AbstractBackoff
from redis.exceptions import RedisError

from tuya_proxy.config import RedisConfig

logger = logging.getLogger(__name__)

TOKEN_CACHE_KEY = "tuya_token"


class CacheUnavailableError(Exception):
    """Raised when no Redis connection can be configured."""


class LinearBackoff(AbstractBackoff):
    """Wait ``step`` seconds per failed attempt, never more than ``cap``."""

    def __init__(self, step: float = 0.05, cap: float = 0.5) -> None:
        self._step = step
        self._cap = cap

    def compute(self, failures: int) -> float:
        return min(failures * self._step, self._cap)


def redis_url(config: RedisConfig) -> str:
    if not config.host or not config.port or not config.password:
        raise CacheUnavailableError("Redis environment variables are not defined")
    password = quote(config.password, safe="")
    return f"redis://default:{password}@{config.host}:{config.port}"


class TokenCache:
    """Get, set and delete a single credential in Redis.

    Each operation opens its own connection and closes it before returning.
    ``client_factory`` replaces the real connection constructor, mainly for
    tests.
    """

    def __init__(
        self,
        config: RedisConfig | None = None,
        *,
        client_factory: Callable[[], redis.Redis] | None = None,
    ) -> None:
        self.config = config or RedisConfig()
        self._client_factory = client_factory or self._connect

    def _connect(self) -> redis.Redis:
        url = redis_url(self.config)
        logger.info("Connecting to Redis: %s:%s", self.config.host, self.config.port)
        return redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=self.config.connect_timeout,
            retry=Retry(LinearBackoff(), self.config.max_retries),
        )

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[redis.Redis]:
        client = self._client_factory()
        try:
            yield client
        finally:
            try:
                await client.aclose()
            except (RedisError, OSError) as exc:
                logger.warning("Error closing Redis connection: %s", exc)

    # -- Operations ----------------------------------------------------------

    async def get(self, key: str) -> str | None:
        """Return the cached value, or ``None`` on a miss or any Redis failure."""
        try:
            async with self._connection() as conn:
                return await conn.get(key)
        except (CacheUnavailableError, RedisError, OSError) as exc:
            logger.error("Redis error (reading %s): %s", key, exc)
            return None

    async def set(self, key: str, value: str, ttl: int) -> bool:
        """Store *value* for *ttl* seconds. Returns ``False`` if it was not stored."""
        if ttl <= 0:
            logger.warning("TTL %d <= 0 for %s, value not cached", ttl, key)
            return False
        try:
            async with self._connection() as conn:
                await conn.set(key, value, ex=ttl)
        except (CacheUnavailableError, RedisError, OSError) as exc:
            logger.error("Error saving %s to Redis: %s", key, exc)
            return False
        logger.info("Saved %s to Redis (TTL %d s)", key, ttl)
        return True

    async def delete(self, key: str) -> bool:
        try:
            async with self._connection() as conn:
                await conn.delete(key)
        except (CacheUnavailableError, RedisError, OSError) as exc:
            logger.error("Error deleting %s from Redis: %s", key, exc)
            return False
        logger.info("Deleted %s from Redis", key)
        return True
