"""Unit tests for analytics_service module."""

import json
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from getchida.core.db_client import DatabaseError
from getchida.domain.element import Element
from getchida.models.service_models import LeaderboardEntry
from getchida.services import analytics_service, chore_service


@pytest.fixture
def mock_redis(monkeypatch):
    """Replaces the Redis cache calls used by analytics_service."""
    redis = analytics_service.redis_client
    monkeypatch.setattr(redis, "get", AsyncMock(return_value=None))
    monkeypatch.setattr(redis, "set", AsyncMock(return_value=True))
    monkeypatch.setattr(redis, "keys", AsyncMock(return_value=[]))
    monkeypatch.setattr(redis, "delete_with_retry", AsyncMock(return_value=True))
    return redis


def _seed_profile(db, name: str, element: str, chi: int) -> str:
    return db.seed("profiles", {"name": name, "element": element, "chi": chi})["id"]


@pytest.mark.unit
class TestGetLeaderboard:
    """Tests for get_leaderboard function."""

    async def test_ranks_by_chi_then_name(self, patched_db, mock_redis):
        """Highest chi first; ties are broken alphabetically."""
        _seed_profile(patched_db, "Sokka", "water", 50)
        _seed_profile(patched_db, "Aang", "air", 150)
        _seed_profile(patched_db, "Katara", "water", 50)
        _seed_profile(patched_db, "Toph", "earth", 0)

        leaderboard = await analytics_service.get_leaderboard()

        assert [(entry.profile_name, entry.chi) for entry in leaderboard] == [
            ("Aang", 150),
            ("Katara", 50),
            ("Sokka", 50),
            ("Toph", 0),
        ]
        assert leaderboard[0].element == Element.AIR

    async def test_result_is_cached(self, patched_db, mock_redis):
        """A freshly computed leaderboard is written to the cache with its TTL."""
        aang = _seed_profile(patched_db, "Aang", "air", 100)

        await analytics_service.get_leaderboard()

        mock_redis.set.assert_awaited_once()
        key, value, ttl = mock_redis.set.await_args.args
        assert key == "getchida:leaderboard:chi"
        assert json.loads(value) == [{"profile_id": aang, "profile_name": "Aang", "element": "air", "chi": 100}]
        assert ttl == 60

    async def test_cache_hit_skips_store(self, patched_db, mock_redis):
        """A cached leaderboard is returned without reading profiles."""
        cached = [LeaderboardEntry(profile_id="p1", profile_name="Zuko", element=Element.FIRE, chi=50)]
        mock_redis.get.return_value = json.dumps([entry.model_dump(mode="json") for entry in cached])

        leaderboard = await analytics_service.get_leaderboard()

        assert leaderboard == cached
        assert "list_records" not in patched_db.calls

    async def test_corrupt_cache_falls_back_to_store(self, patched_db, mock_redis):
        """An unreadable cache entry is ignored."""
        _seed_profile(patched_db, "Zuko", "fire", 50)
        mock_redis.get.return_value = "{not json"

        leaderboard = await analytics_service.get_leaderboard()

        assert [entry.profile_name for entry in leaderboard] == ["Zuko"]

    async def test_redis_failure_falls_back_to_store(self, patched_db, mock_redis):
        """Cache errors never fail the leaderboard."""
        _seed_profile(patched_db, "Zuko", "fire", 50)
        mock_redis.get.side_effect = RuntimeError("redis down")
        mock_redis.set.side_effect = RuntimeError("redis down")

        leaderboard = await analytics_service.get_leaderboard()

        assert [entry.chi for entry in leaderboard] == [50]

    async def test_skips_malformed_profiles(self, patched_db, mock_redis):
        """Profiles missing required fields are left out."""
        _seed_profile(patched_db, "Zuko", "fire", 50)
        patched_db.seed("profiles", {"name": "Nobody", "element": "lightning", "chi": 10})

        leaderboard = await analytics_service.get_leaderboard()

        assert [entry.profile_name for entry in leaderboard] == ["Zuko"]

    async def test_store_failure_propagates(self, patched_db, mock_redis):
        """Store read failures are raised to the caller."""
        patched_db.fail("list_records")

        with pytest.raises(DatabaseError):
            await analytics_service.get_leaderboard()


@pytest.mark.unit
class TestInvalidateLeaderboardCache:
    """Tests for invalidate_leaderboard_cache function."""

    async def test_deletes_matching_keys(self, mock_redis):
        """All leaderboard keys are deleted."""
        mock_redis.keys.return_value = ["getchida:leaderboard:chi"]

        await analytics_service.invalidate_leaderboard_cache()

        mock_redis.keys.assert_awaited_once_with("getchida:leaderboard:*")
        mock_redis.delete_with_retry.assert_awaited_once_with("getchida:leaderboard:chi")

    async def test_no_keys_no_delete(self, mock_redis):
        """Nothing is deleted when nothing is cached."""
        await analytics_service.invalidate_leaderboard_cache()

        mock_redis.delete_with_retry.assert_not_awaited()

    async def test_errors_are_swallowed(self, mock_redis):
        """A Redis failure does not propagate."""
        mock_redis.keys.side_effect = RuntimeError("redis down")

        await analytics_service.invalidate_leaderboard_cache()


@pytest.mark.unit
class TestChiProgressPercentage:
    """Tests for chi_progress_percentage function."""

    @pytest.mark.parametrize(
        ("chi", "goal", "expected"),
        [
            (0, 2000, 0.0),
            (500, 2000, 25.0),
            (1000, 2000, 50.0),
            (50, 300, 16.7),
            (2000, 2000, 100.0),
            (5000, 2000, 100.0),
            (100, 0, 0.0),
            (100, -10, 0.0),
        ],
    )
    def test_progress(self, chi, goal, expected):
        """Progress is a clamped, rounded percentage of the goal."""
        assert analytics_service.chi_progress_percentage(chi, goal) == expected

    def test_default_goal(self):
        """The weekly goal is used when none is given."""
        assert analytics_service.chi_progress_percentage(1500) == 75.0


@pytest.mark.unit
class TestGetHouseholdSummary:
    """Tests for get_household_summary function."""

    async def test_summary_counts(self, patched_db, profile_factory, chore_factory):
        """Counts profiles, chores, completions, overdue chores and total chi."""
        zuko = await profile_factory(name="Zuko", element="fire")
        katara = await profile_factory(name="Katara", element="water")
        today = datetime.now(UTC).date()
        overdue = (today - timedelta(days=3)).isoformat()
        upcoming = (today + timedelta(days=3)).isoformat()

        await chore_factory(assigned_to=zuko, due_date=overdue)
        await chore_factory(assigned_to=katara, due_date=today.isoformat())
        done = await chore_factory(assigned_to=katara, due_date=overdue)
        await chore_factory(assigned_to=zuko, due_date=upcoming)
        await chore_service.toggle_complete(done, True)

        summary = await analytics_service.get_household_summary()

        assert summary.profile_count == 2
        assert summary.total_chores == 4
        assert summary.completed_chores == 1
        assert summary.overdue_chores == 1
        assert summary.total_chi == 50

    async def test_empty_household(self, patched_db):
        """An empty store yields zeros."""
        summary = await analytics_service.get_household_summary()

        assert summary.model_dump() == {
            "profile_count": 0,
            "total_chores": 0,
            "completed_chores": 0,
            "overdue_chores": 0,
            "total_chi": 0,
        }
