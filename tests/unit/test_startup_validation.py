"""Tests for startup validation and the health endpoint."""

from unittest.mock import AsyncMock, Mock, patch

import pytest
from fastapi.testclient import TestClient

from getchida.main import app, check_redis_connectivity


@pytest.mark.asyncio
async def test_check_redis_connectivity_disabled() -> None:
    """Test Redis check when Redis is not configured."""
    mock_redis = Mock()
    mock_redis.is_available = False
    mock_redis.ping = AsyncMock()

    with patch("getchida.main.redis_client", mock_redis):
        await check_redis_connectivity()

    mock_redis.ping.assert_not_called()


@pytest.mark.asyncio
async def test_check_redis_connectivity_success() -> None:
    """Test successful Redis connectivity check."""
    mock_redis = Mock()
    mock_redis.is_available = True
    mock_redis.ping = AsyncMock(return_value=True)

    with patch("getchida.main.redis_client", mock_redis):
        await check_redis_connectivity()
        mock_redis.ping.assert_called_once()


@pytest.mark.asyncio
async def test_check_redis_connectivity_unavailable_does_not_fail() -> None:
    """Test that an unreachable Redis only logs a warning."""
    mock_redis = Mock()
    mock_redis.is_available = True
    mock_redis.ping = AsyncMock(return_value=False)

    with patch("getchida.main.redis_client", mock_redis):
        await check_redis_connectivity()


def test_health_check() -> None:
    """Test the health endpoint without running the lifespan."""
    response = TestClient(app).get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_routers_registered() -> None:
    """Test that both the web pages and the JSON API are mounted."""
    paths = {route.path for route in app.routes}

    assert {"/", "/chores", "/profiles", "/motivation"} <= paths
    assert {"/api/chores", "/api/chores/{chore_id}/complete", "/api/profiles/stream"} <= paths
