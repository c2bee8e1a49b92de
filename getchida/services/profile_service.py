"""Profile service for household members and their chi balances."""

import logging
from datetime import UTC, datetime

from getchida.core import db_client
from getchida.core.config import Constants
from getchida.core.errors import classify_store_error
from getchida.core.logging import span
from getchida.domain.create_models import ProfileCreate
from getchida.domain.profile import AssigneeSnapshot, Profile
from getchida.domain.update_models import ProfileUpdate
from getchida.models.service_models import OperationResult
from getchida.services import analytics_service


logger = logging.getLogger(__name__)

COLLECTION = "profiles"


def default_avatar_url(name: str) -> str:
    """Placeholder image labelled with the first letter of a name."""
    initial = name[:1].upper() or "?"
    return Constants.PROFILE_AVATAR_URL_TEMPLATE.format(initial=initial)


async def create_profile(profile: ProfileCreate) -> OperationResult:
    """Create a household member with an empty chi balance.

    Args:
        profile: Validated profile input

    Returns:
        OperationResult with the new profile id on success
    """
    with span("profile_service.create_profile"):
        data = {
            "name": profile.name,
            "element": profile.element.value,
            "chi": 0,
            "stepsToday": 0,
            "avatarUrl": profile.avatar_url or default_avatar_url(profile.name),
            "createdAt": datetime.now(UTC),
        }
        try:
            record = await db_client.create_record(collection=COLLECTION, data=data)
        except db_client.DatabaseError as e:
            logger.error("Failed to create profile %s: %s", profile.name, e)
            return OperationResult.failed(classify_store_error(e))

        logger.info("Created profile: %s (%s)", profile.name, profile.element)
        await analytics_service.invalidate_leaderboard_cache()
        return OperationResult.ok(record["id"])


async def update_profile(profile_id: str, update: ProfileUpdate) -> OperationResult:
    """Apply a partial update to a profile.

    Chore assignee snapshots are left untouched.

    Args:
        profile_id: Profile ID
        update: Fields to change (name, element, avatar)

    Returns:
        OperationResult; ``code`` is ERR_NOT_FOUND when the profile does not exist
    """
    with span("profile_service.update_profile", profile_id=profile_id):
        data = update.to_document()
        try:
            if data:
                await db_client.update_record(collection=COLLECTION, record_id=profile_id, data=data)
            else:
                await db_client.get_record(collection=COLLECTION, record_id=profile_id)
        except db_client.DatabaseError as e:
            logger.error("Failed to update profile %s: %s", profile_id, e)
            return OperationResult.failed(classify_store_error(e))

        logger.info("Updated profile %s fields: %s", profile_id, sorted(data))
        if data:
            await analytics_service.invalidate_leaderboard_cache()
        return OperationResult.ok(profile_id)


async def get_profile(profile_id: str) -> Profile:
    """Get a profile by ID.

    Raises:
        db_client.RecordNotFoundError: If the profile does not exist
    """
    record = await db_client.get_record(collection=COLLECTION, record_id=profile_id)
    return Profile.model_validate(record)


async def list_profiles(*, sort: str = "createdAt DESC") -> list[Profile]:
    """List all profiles, newest first by default."""
    with span("profile_service.list_profiles"):
        records = await db_client.list_records(
            collection=COLLECTION,
            per_page=Constants.MAX_SNAPSHOT_RECORDS,
            sort=sort,
        )
        return [Profile.model_validate(record) for record in records]


async def resolve_assignee(profile_id: str) -> AssigneeSnapshot | None:
    """Look up the display fields to copy onto a chore.

    Returns:
        The assignee snapshot, or None when the profile is missing or the read
        fails. Callers substitute placeholders; a miss never fails a write.
    """
    try:
        record = await db_client.get_record(collection=COLLECTION, record_id=profile_id)
    except db_client.DatabaseError as e:
        logger.warning("Could not resolve assignee %s: %s", profile_id, e)
        return None

    return AssigneeSnapshot(
        name=record.get("name") or Constants.UNKNOWN_ASSIGNEE_NAME,
        avatar_url=record.get("avatarUrl") or Constants.UNKNOWN_ASSIGNEE_AVATAR_URL,
    )


def placeholder_assignee() -> AssigneeSnapshot:
    """Snapshot used when the assignee cannot be resolved."""
    return AssigneeSnapshot(
        name=Constants.UNKNOWN_ASSIGNEE_NAME,
        avatar_url=Constants.UNKNOWN_ASSIGNEE_AVATAR_URL,
    )


async def award_chi(profile_id: str, amount: int) -> int:
    """Atomically add chi to a profile's balance.

    Args:
        profile_id: Profile ID
        amount: Chi to add (must be positive)

    Returns:
        The new balance

    Raises:
        ValueError: If amount is not positive
        db_client.RecordNotFoundError: If the profile does not exist
        db_client.DatabaseError: If the write fails
    """
    if amount <= 0:
        msg = f"Chi award must be positive, got {amount}"
        raise ValueError(msg)

    with span("profile_service.award_chi", profile_id=profile_id, amount=amount):
        balance = await db_client.increment_field(
            collection=COLLECTION,
            record_id=profile_id,
            field="chi",
            amount=amount,
        )
        logger.info("Awarded %d chi to profile %s (balance: %d)", amount, profile_id, balance)
        await analytics_service.invalidate_leaderboard_cache()
        return balance
