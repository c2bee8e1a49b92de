"""Unit tests for Redis client retry and fallback functionality."""

from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from getchida.core.redis_client import RedisClient, with_retry


@pytest.mark.unit
class TestRedisRetryLogic:
    """Tests for Redis retry logic and cache-miss fallback."""

    async def test_delete_with_retry_success_first_attempt(self):
        """Verify delete_with_retry succeeds on first attempt."""
        client = RedisClient()
        client._enabled = True
        client._client = AsyncMock()
        client._client.delete = AsyncMock()

        result = await client.delete_with_retry("key1", "key2")

        assert result is True
        client._client.delete.assert_called_once_with("key1", "key2")

    async def test_delete_with_retry_success_after_retries(self):
        """Verify delete_with_retry succeeds after retries."""
        client = RedisClient()
        client._enabled = True
        client._client = AsyncMock()
        client._client.delete = AsyncMock(
            side_effect=[
                RedisConnectionError("First failure"),
                RedisConnectionError("Second failure"),
                None,
            ]
        )

        result = await client.delete_with_retry("key1")

        assert result is True
        assert client._client.delete.call_count == 3

    async def test_delete_with_retry_gives_up(self):
        """Verify delete_with_retry reports failure when all retries fail."""
        client = RedisClient()
        client._enabled = True
        client._client = AsyncMock()
        client._client.delete = AsyncMock(side_effect=RedisConnectionError("Always fails"))

        result = await client.delete_with_retry("key1", "key2")

        assert result is False
        assert client._client.delete.call_count == 3

    async def test_unavailable_client_is_a_cache_miss(self):
        """Verify every call degrades gracefully when Redis is not configured."""
        client = RedisClient()
        client._enabled = False
        client._client = None

        assert await client.get("k") is None
        assert await client.set("k", "v", 60) is False
        assert await client.delete_with_retry("k") is False
        assert await client.keys("getchida:*") == []
        assert await client.ping() is False

    async def test_get_error_is_a_cache_miss(self):
        """Verify a failing GET returns None instead of raising."""
        client = RedisClient()
        client._enabled = True
        client._client = AsyncMock()
        client._client.get = AsyncMock(side_effect=RedisConnectionError("down"))

        assert await client.get("getchida:leaderboard:chi") is None

    async def test_with_retry_reraises_after_last_attempt(self):
        """Verify the decorator re-raises once attempts are exhausted."""
        calls = 0

        @with_retry(max_retries=2, base_delay=0)
        async def flaky() -> None:
            nonlocal calls
            calls += 1
            raise RedisConnectionError("down")

        with pytest.raises(RedisConnectionError):
            await flaky()
        assert calls == 2
