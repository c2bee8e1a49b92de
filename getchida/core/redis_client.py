"""Redis client for caching."""

import asyncio
import logging
from collections.abc import Callable, Coroutine
from functools import wraps
from typing import Any, TypeVar

from redis.asyncio import Redis
from redis.asyncio.connection import ConnectionPool
from redis.exceptions import RedisError

from getchida.core.config import Constants, settings


logger = logging.getLogger(__name__)

# Type variable for generic retry decorator
T = TypeVar("T")


def with_retry(
    max_retries: int = 3, base_delay: float = 0.1
) -> Callable[[Callable[..., Coroutine[Any, Any, T]]], Callable[..., Coroutine[Any, Any, T]]]:
    """Decorator to retry async Redis calls with exponential backoff.

    Args:
        max_retries: Maximum number of attempts (default: 3)
        base_delay: Base delay in seconds for exponential backoff (default: 0.1)

    Returns:
        Decorated function with retry logic
    """

    def decorator(func: Callable[..., Coroutine[Any, Any, T]]) -> Callable[..., Coroutine[Any, Any, T]]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:  # noqa: ANN401
            for attempt in range(max_retries):
                try:
                    return await func(*args, **kwargs)
                except RedisError as e:
                    if attempt == max_retries - 1:
                        logger.error("Redis operation failed after %d attempts: %s", max_retries, e)
                        raise
                    delay = base_delay * (2**attempt)
                    logger.warning(
                        "Redis operation failed (attempt %d/%d): %s. Retrying in %.2fs",
                        attempt + 1,
                        max_retries,
                        e,
                        delay,
                    )
                    await asyncio.sleep(delay)
            msg = "max_retries must be at least 1"
            raise ValueError(msg)

        return wrapper

    return decorator


class RedisClient:
    """Async Redis client wrapper with connection pooling.

    Every call degrades to a cache miss when Redis is not configured or fails,
    so callers fall back to the document store.
    """

    def __init__(self, url: str | None = None) -> None:
        """Initialize Redis client."""
        self._client: Redis | None = None
        self._pool: ConnectionPool | None = None
        url = url or settings.redis_url
        self._enabled = bool(url)

        if self._enabled and url:
            try:
                self._pool = ConnectionPool.from_url(
                    url,
                    decode_responses=True,
                    max_connections=Constants.REDIS_MAX_CONNECTIONS,
                )
                self._client = Redis(connection_pool=self._pool)
                logger.info("Redis client initialized with URL: %s", url)
            except (RedisError, ValueError) as e:
                logger.warning("Failed to initialize Redis client: %s. Running without cache.", e)
                self._enabled = False
                self._client = None
                self._pool = None
        else:
            logger.info("Redis URL not configured. Running without cache.")

    @property
    def is_available(self) -> bool:
        """Check if Redis is available."""
        return self._enabled and self._client is not None

    async def get(self, key: str) -> str | None:
        """Get value from Redis, or None if missing or on error."""
        if not self.is_available or not self._client:
            return None

        try:
            value = await self._client.get(key)
            if value:
                logger.debug("Cache hit for key: %s", key)
            return value
        except RedisError as e:
            logger.warning("Redis GET error for key %s: %s", key, e)
            return None

    async def set(self, key: str, value: str, ttl_seconds: int) -> bool:
        """Set value in Redis with TTL. Returns True if stored."""
        if not self.is_available or not self._client:
            return False

        try:
            await self._client.setex(key, ttl_seconds, value)
            logger.debug("Cached key: %s (TTL: %ds)", key, ttl_seconds)
            return True
        except RedisError as e:
            logger.warning("Redis SET error for key %s: %s", key, e)
            return False

    async def delete_with_retry(self, *keys: str) -> bool:
        """Delete keys, retrying transient failures. Returns True if deleted."""
        if not self.is_available or not self._client or not keys:
            return False

        @with_retry(max_retries=3, base_delay=0.1)
        async def _delete_operation() -> None:
            if self._client:
                await self._client.delete(*keys)

        try:
            await _delete_operation()
            logger.debug("Deleted %d cache key(s) with retry", len(keys))
            return True
        except RedisError as e:
            logger.error("Redis DELETE failed after retries: %s", e)
            return False

    async def keys(self, pattern: str) -> list[str]:
        """Find keys matching a pattern, empty list on error."""
        if not self.is_available or not self._client:
            return []

        try:
            keys = await self._client.keys(pattern)
            return [k.decode() if isinstance(k, bytes) else k for k in keys]
        except RedisError as e:
            logger.warning("Redis KEYS error for pattern %s: %s", pattern, e)
            return []

    async def ping(self) -> bool:
        """Ping Redis to check connection."""
        if not self.is_available or not self._client:
            return False

        try:
            result = await self._client.ping()  # type: ignore[misc]
            return bool(result)
        except RedisError as e:
            logger.warning("Redis PING failed: %s", e)
            return False

    async def close(self) -> None:
        """Close Redis connection."""
        if self._client:
            await self._client.aclose()
            logger.info("Redis client closed")


# Global Redis client instance
redis_client = RedisClient()
