"""Pytest configuration and fixtures for integration tests."""

from unittest.mock import AsyncMock

import pytest

from getchida.core import db_client
from getchida.core.config import settings
from getchida.core.redis_client import redis_client


@pytest.fixture
async def sqlite_db(tmp_path, monkeypatch):
    """A freshly initialized SQLite document store in a temporary directory.

    The cache is switched to permanent misses so results always come from the store.
    """
    monkeypatch.setattr(settings, "sqlite_db_path", str(tmp_path / "getchida-test.db"))
    monkeypatch.setattr(redis_client, "get", AsyncMock(return_value=None))
    monkeypatch.setattr(redis_client, "set", AsyncMock(return_value=False))
    monkeypatch.setattr(redis_client, "keys", AsyncMock(return_value=[]))

    await db_client.init_db()
    yield tmp_path / "getchida-test.db"
    await db_client.close_connection()
