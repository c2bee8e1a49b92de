"""Pytest configuration and fixtures for unit tests."""

import pytest

from getchida.core.config import settings
from tests.unit.mocks import InMemoryDBClient


@pytest.fixture
def in_memory_db():
    """Provides a fresh InMemoryDBClient for each test."""
    return InMemoryDBClient()


async def _mock_invalidate_cache() -> None:
    """Mock cache invalidation that does nothing."""


@pytest.fixture
def patched_db(monkeypatch, in_memory_db):
    """Patches getchida.core.db_client functions to use InMemoryDBClient.

    Also disables leaderboard cache invalidation so no Redis calls are made.
    """
    monkeypatch.setattr("getchida.core.db_client.create_record", in_memory_db.create_record)
    monkeypatch.setattr("getchida.core.db_client.get_record", in_memory_db.get_record)
    monkeypatch.setattr("getchida.core.db_client.update_record", in_memory_db.update_record)
    monkeypatch.setattr("getchida.core.db_client.update_record_if", in_memory_db.update_record_if)
    monkeypatch.setattr("getchida.core.db_client.increment_field", in_memory_db.increment_field)
    monkeypatch.setattr("getchida.core.db_client.delete_record", in_memory_db.delete_record)
    monkeypatch.setattr("getchida.core.db_client.list_records", in_memory_db.list_records)

    monkeypatch.setattr(
        "getchida.services.analytics_service.invalidate_leaderboard_cache",
        _mock_invalidate_cache,
    )

    return in_memory_db


@pytest.fixture
def guarded_settlement(monkeypatch):
    """Enables the double-settlement guard for the duration of a test."""
    monkeypatch.setattr(settings, "guard_double_settlement", True)

