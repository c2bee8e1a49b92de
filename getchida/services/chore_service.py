"""Chore lifecycle service: CRUD, completion toggling and chi settlement.

Every mutating operation returns an OperationResult. Store failures are
classified and reported there; they are never raised past this module.
"""

import logging
from datetime import UTC, datetime

from getchida.core import db_client
from getchida.core.config import Constants, settings
from getchida.core.errors import classify_store_error
from getchida.core.logging import span
from getchida.domain.chore import Chore, sort_for_display
from getchida.domain.create_models import ChoreCreate
from getchida.domain.element import Element
from getchida.domain.profile import AssigneeSnapshot
from getchida.domain.update_models import ChoreUpdate
from getchida.models.service_models import OperationResult
from getchida.services import profile_service


logger = logging.getLogger(__name__)

COLLECTION = "chores"


async def _snapshot_assignee(profile_id: str) -> AssigneeSnapshot:
    """Resolve the assignee's display fields, substituting placeholders on a miss."""
    snapshot = await profile_service.resolve_assignee(profile_id)
    if snapshot is None:
        logger.info("Assignee %s unresolved, using placeholder snapshot", profile_id)
        return profile_service.placeholder_assignee()
    return snapshot


async def create_chore(chore: ChoreCreate) -> OperationResult:
    """Create a new, incomplete chore.

    The assignee's name and avatar are copied onto the chore. An unresolvable
    assignee does not fail the creation; placeholders are stored instead.

    Args:
        chore: Validated chore input

    Returns:
        OperationResult with the new chore id on success
    """
    with span("chore_service.create_chore", assigned_to=chore.assigned_to):
        snapshot = await _snapshot_assignee(chore.assigned_to)

        chore_data = {
            "name": chore.name,
            "description": chore.description or "",
            "assignedTo": chore.assigned_to,
            "assigneeName": snapshot.name,
            "assigneeAvatarUrl": snapshot.avatar_url,
            "dueDate": chore.due_date,
            "isCompleted": False,
            "elementType": chore.element_type.value,
            "createdAt": datetime.now(UTC),
        }

        try:
            record = await db_client.create_record(collection=COLLECTION, data=chore_data)
        except db_client.DatabaseError as e:
            logger.error("Failed to create chore %s: %s", chore.name, e)
            return OperationResult.failed(classify_store_error(e))

        logger.info("Created chore: %s (assigned to: %s)", chore.name, snapshot.name)
        return OperationResult.ok(record["id"])


async def update_chore(chore_id: str, update: ChoreUpdate) -> OperationResult:
    """Apply a partial update to a chore.

    Only fields present in ``update`` are written. When the payload names an
    assignee, the snapshot fields are re-resolved and overwritten; otherwise
    they are left untouched. Completion state cannot be changed here.

    Args:
        chore_id: Chore ID
        update: Fields to change

    Returns:
        OperationResult; ``code`` is ERR_NOT_FOUND when the chore does not exist
    """
    with span("chore_service.update_chore", chore_id=chore_id):
        data = update.to_document()
        if update.reassigns:
            snapshot = await _snapshot_assignee(update.assigned_to)
            data["assigneeName"] = snapshot.name
            data["assigneeAvatarUrl"] = snapshot.avatar_url

        try:
            if data:
                await db_client.update_record(collection=COLLECTION, record_id=chore_id, data=data)
            else:
                await db_client.get_record(collection=COLLECTION, record_id=chore_id)
        except db_client.DatabaseError as e:
            logger.error("Failed to update chore %s: %s", chore_id, e)
            return OperationResult.failed(classify_store_error(e))

        logger.info("Updated chore %s fields: %s", chore_id, sorted(data))
        return OperationResult.ok(chore_id)


async def _write_completion_flag(chore_id: str, is_completed: bool) -> bool:
    """Persist the completion flag and report whether settlement is due.

    With the double-settlement guard enabled, completing is a compare-and-set
    from incomplete, so only an actual transition settles. Otherwise the flag is
    overwritten and every completion request settles.
    """
    data = {"isCompleted": is_completed}
    if is_completed and settings.guard_double_settlement:
        return await db_client.update_record_if(
            collection=COLLECTION,
            record_id=chore_id,
            data=data,
            expected={"isCompleted": False},
        )

    await db_client.update_record(collection=COLLECTION, record_id=chore_id, data=data)
    return is_completed


async def _settle_reward(chore_id: str) -> None:
    """Award completion chi to the chore's current assignee.

    A missing assignee profile skips the award; other failures propagate.
    """
    record = await db_client.get_record(collection=COLLECTION, record_id=chore_id)
    assignee_id = record.get("assignedTo")
    if not assignee_id:
        logger.info("Chore %s has no assignee, no chi awarded", chore_id)
        return

    try:
        await profile_service.award_chi(assignee_id, Constants.CHORE_COMPLETION_CHI)
    except db_client.RecordNotFoundError:
        logger.warning(
            "Assignee profile missing, chi settlement skipped",
            extra={"chore_id": chore_id, "profile_id": assignee_id},
        )


async def toggle_complete(chore_id: str, is_completed: bool) -> OperationResult:
    """Set a chore's completion flag and settle the reward on completion.

    Completing awards ``CHORE_COMPLETION_CHI`` to the assignee. Un-completing
    never changes any balance. By default completing an already completed
    chore awards again; ``guard_double_settlement`` restricts awards to actual
    incomplete-to-complete transitions.

    Args:
        chore_id: Chore ID
        is_completed: Requested completion state

    Returns:
        OperationResult; a failure after the flag write leaves the flag persisted
    """
    with span("chore_service.toggle_complete", chore_id=chore_id, is_completed=is_completed):
        try:
            settle = await _write_completion_flag(chore_id, is_completed)
        except db_client.DatabaseError as e:
            logger.error("Failed to toggle chore %s: %s", chore_id, e)
            return OperationResult.failed(classify_store_error(e))

        if not settle:
            if is_completed:
                logger.info("Chore %s already completed, no chi awarded", chore_id)
            return OperationResult.ok(chore_id)

        try:
            await _settle_reward(chore_id)
        except db_client.DatabaseError as e:
            logger.error(
                "Chi settlement failed after completion flag was written",
                extra={"chore_id": chore_id, "error": str(e)},
            )
            return OperationResult.failed(classify_store_error(e))

        logger.info("Completed chore %s", chore_id)
        return OperationResult.ok(chore_id)


async def delete_chore(chore_id: str) -> OperationResult:
    """Delete a chore. Chi already awarded for it is kept."""
    with span("chore_service.delete_chore", chore_id=chore_id):
        try:
            await db_client.delete_record(collection=COLLECTION, record_id=chore_id)
        except db_client.DatabaseError as e:
            logger.error("Failed to delete chore %s: %s", chore_id, e)
            return OperationResult.failed(classify_store_error(e))

        logger.info("Deleted chore %s", chore_id)
        return OperationResult.ok(chore_id)


async def resync_assignee(chore_id: str) -> OperationResult:
    """Refresh a chore's assignee snapshot from the current profile.

    Args:
        chore_id: Chore ID

    Returns:
        OperationResult; ``code`` is ERR_NOT_FOUND when the chore does not exist
    """
    with span("chore_service.resync_assignee", chore_id=chore_id):
        try:
            record = await db_client.get_record(collection=COLLECTION, record_id=chore_id)
            snapshot = await _snapshot_assignee(record["assignedTo"])
            await db_client.update_record(
                collection=COLLECTION,
                record_id=chore_id,
                data={"assigneeName": snapshot.name, "assigneeAvatarUrl": snapshot.avatar_url},
            )
        except db_client.DatabaseError as e:
            logger.error("Failed to resync assignee for chore %s: %s", chore_id, e)
            return OperationResult.failed(classify_store_error(e))

        logger.info("Resynced assignee snapshot for chore %s", chore_id)
        return OperationResult.ok(chore_id)


async def get_chore(chore_id: str) -> Chore:
    """Get chore by ID.

    Raises:
        db_client.RecordNotFoundError: If chore not found
    """
    record = await db_client.get_record(collection=COLLECTION, record_id=chore_id)
    return Chore.model_validate(record)


def build_chore_filter(
    *,
    assigned_to: str | None = None,
    is_completed: bool | None = None,
    element: Element | None = None,
) -> str:
    """Build an equality filter query over chores."""
    filters = []
    if assigned_to:
        filters.append(f'assignedTo = "{db_client.sanitize_param(assigned_to)}"')
    if is_completed is not None:
        filters.append(f'isCompleted = "{str(is_completed).lower()}"')
    if element:
        filters.append(f'elementType = "{db_client.sanitize_param(element)}"')
    return " && ".join(filters)


async def list_chores(
    *,
    assigned_to: str | None = None,
    is_completed: bool | None = None,
    element: Element | None = None,
) -> list[Chore]:
    """List chores with optional filters, ordered for display.

    Returns:
        Chores sorted incomplete-first, then by due date
    """
    with span("chore_service.list_chores"):
        filter_query = build_chore_filter(assigned_to=assigned_to, is_completed=is_completed, element=element)
        records = await db_client.list_records(
            collection=COLLECTION,
            per_page=Constants.MAX_SNAPSHOT_RECORDS,
            filter_query=filter_query,
            sort="dueDate ASC",
        )
        logger.debug("Retrieved %d chores with filters: %s", len(records), filter_query)
        return sort_for_display(Chore.model_validate(record) for record in records)
