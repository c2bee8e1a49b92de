"""Analytics service for chi standings and household statistics.

This module provides functions for:
- Ranking profiles by chi balance (leaderboard, cached in Redis)
- Converting a chi balance into progress toward the weekly goal (chi meter)
- Summarizing household chores and members for the dashboard
"""

import json
import logging
from datetime import UTC, datetime

from pydantic import ValidationError

from getchida.core import db_client
from getchida.core.config import Constants
from getchida.core.logging import span
from getchida.core.redis_client import redis_client
from getchida.models.service_models import HouseholdSummary, LeaderboardEntry


logger = logging.getLogger(__name__)

_CACHE_KEY_PREFIX = "getchida:leaderboard"
_CACHE_KEY = f"{_CACHE_KEY_PREFIX}:chi"


async def invalidate_leaderboard_cache() -> None:
    """Invalidate all leaderboard cache entries.

    Called after any write that changes chi balances or profile display fields.
    Failures are logged but never raised; a stale cache lives at most
    ``CACHE_TTL_LEADERBOARD_SECONDS``.
    """
    try:
        keys = await redis_client.keys(f"{_CACHE_KEY_PREFIX}:*")
        if not keys:
            logger.debug("No leaderboard cache entries to invalidate")
            return

        if await redis_client.delete_with_retry(*keys):
            logger.info("Invalidated %d leaderboard cache entries", len(keys))
        else:
            logger.warning("Failed to invalidate %d leaderboard cache entries", len(keys))
    except Exception as e:
        logger.warning("Failed to invalidate leaderboard cache: %s", e)


async def _cached_leaderboard() -> list[LeaderboardEntry] | None:
    cached_value = await redis_client.get(_CACHE_KEY)
    if not cached_value:
        return None
    try:
        return [LeaderboardEntry(**entry) for entry in json.loads(cached_value)]
    except (json.JSONDecodeError, ValidationError) as e:
        logger.warning("Failed to deserialize cached leaderboard: %s", e)
        return None


async def get_leaderboard() -> list[LeaderboardEntry]:
    """Rank profiles by chi balance.

    Returns:
        LeaderboardEntry objects sorted by chi descending, then name
    """
    try:
        cached = await _cached_leaderboard()
        if cached is not None:
            logger.debug("Returning cached leaderboard from Redis")
            return cached
    except Exception as e:
        logger.warning("Failed to retrieve cached leaderboard from Redis: %s", e)

    with span("analytics_service.get_leaderboard"):
        profiles = await db_client.list_records(
            collection="profiles",
            per_page=Constants.MAX_SNAPSHOT_RECORDS,
        )

        leaderboard: list[LeaderboardEntry] = []
        for profile in profiles:
            try:
                leaderboard.append(
                    LeaderboardEntry(
                        profile_id=profile["id"],
                        profile_name=profile["name"],
                        element=profile["element"],
                        chi=profile.get("chi") or 0,
                    )
                )
            except (KeyError, ValidationError) as e:
                logger.error("Failed to create LeaderboardEntry for profile %s: %s", profile.get("id"), e)
                continue

        leaderboard.sort(key=lambda entry: (-entry.chi, entry.profile_name))
        logger.info("Generated leaderboard: %d profiles", len(leaderboard))

        try:
            cache_value = json.dumps([entry.model_dump(mode="json") for entry in leaderboard])
            await redis_client.set(_CACHE_KEY, cache_value, Constants.CACHE_TTL_LEADERBOARD_SECONDS)
        except Exception as e:
            logger.warning("Failed to cache leaderboard in Redis: %s", e)

        return leaderboard


def chi_progress_percentage(chi: int, goal: int = Constants.CHI_WEEKLY_GOAL) -> float:
    """Progress of a chi balance toward a goal, clamped to [0, 100].

    Args:
        chi: Current balance
        goal: Target balance; a non-positive goal yields 0

    Returns:
        Percentage rounded to one decimal place
    """
    if goal <= 0:
        return 0.0
    percentage = chi / goal * 100
    return round(min(max(percentage, 0.0), 100.0), 1)


async def get_household_summary() -> HouseholdSummary:
    """Get overall household statistics for the dashboard."""
    with span("analytics_service.get_household_summary"):
        profiles = await db_client.list_records(collection="profiles", per_page=Constants.MAX_SNAPSHOT_RECORDS)
        chores = await db_client.list_records(collection="chores", per_page=Constants.MAX_SNAPSHOT_RECORDS)

        today = datetime.now(UTC).date().isoformat()
        completed = sum(1 for chore in chores if chore.get("isCompleted"))
        # dueDate is stored as an ISO timestamp, so its first 10 characters are the day
        overdue = sum(
            1 for chore in chores if not chore.get("isCompleted") and str(chore.get("dueDate", ""))[:10] < today
        )

        summary = HouseholdSummary(
            profile_count=len(profiles),
            total_chores=len(chores),
            completed_chores=completed,
            overdue_chores=overdue,
            total_chi=sum(profile.get("chi") or 0 for profile in profiles),
        )
        logger.info("Household summary: %s", summary.model_dump())
        return summary
