"""Unit tests for chore_service module."""

from datetime import UTC, datetime

import pytest

from getchida.core.db_client import DatabaseError, RecordNotFoundError
from getchida.core.errors import ErrorCode
from getchida.domain.create_models import ChoreCreate
from getchida.domain.element import Element
from getchida.domain.update_models import ChoreUpdate, ProfileUpdate
from getchida.services import chore_service, profile_service


async def chi_of(profile_id: str) -> int:
    """Current chi balance of a profile."""
    return (await profile_service.get_profile(profile_id)).chi


@pytest.mark.unit
class TestCreateChore:
    """Tests for create_chore function."""

    async def test_create_chore_success(self, patched_db, profile_factory):
        """Creating returns an id and stores an incomplete chore with an assignee snapshot."""
        zuko = await profile_factory(name="Zuko", element="fire")

        result = await chore_service.create_chore(
            ChoreCreate(
                name="Train Firebending",
                description="Breathing exercises at dawn",
                assigned_to=zuko,
                due_date="2024-07-15",
                element_type="fire",
            )
        )

        assert result.success is True
        assert result.id is not None
        chore = await chore_service.get_chore(result.id)
        assert chore.is_completed is False
        assert chore.name == "Train Firebending"
        assert chore.description == "Breathing exercises at dawn"
        assert chore.assigned_to == zuko
        assert chore.assignee_name == "Zuko"
        assert chore.assignee_avatar_url == "https://placehold.co/100x100.png?text=Z"
        assert chore.due_date == datetime(2024, 7, 15, tzinfo=UTC)
        assert chore.element_type == Element.FIRE
        assert chore.created_at is not None

    async def test_create_chore_without_description(self, patched_db, chore_factory, profile_factory):
        """An omitted description is stored as an empty string."""
        chore_id = await chore_factory(assigned_to=await profile_factory())

        assert patched_db._collections["chores"][chore_id]["description"] == ""

    async def test_create_chore_unknown_assignee(self, patched_db, chore_factory):
        """A non-existent assignee does not fail creation; placeholders are stored."""
        chore_id = await chore_factory(assigned_to="nonexistent")

        chore = await chore_service.get_chore(chore_id)
        assert chore.assignee_name == "Unknown"
        assert chore.assignee_avatar_url == "https://placehold.co/40x40.png"

    async def test_create_chore_assignee_read_failure(self, patched_db, monkeypatch):
        """A failed assignee lookup also falls back to placeholders."""

        async def failing_resolve(_profile_id):
            return None

        monkeypatch.setattr(profile_service, "resolve_assignee", failing_resolve)

        result = await chore_service.create_chore(
            ChoreCreate(name="Sweep", assigned_to="p1", due_date="2024-07-15", element_type="earth")
        )

        assert result.success is True
        assert patched_db._collections["chores"][result.id]["assigneeName"] == "Unknown"

    async def test_create_chore_store_failure(self, patched_db):
        """A failed write is reported with the underlying message and nothing is stored."""
        patched_db.fail("create_record", DatabaseError("Failed to create record in chores: database is locked"))

        result = await chore_service.create_chore(
            ChoreCreate(name="Sweep", assigned_to="p1", due_date="2024-07-15", element_type="earth")
        )

        assert result.success is False
        assert result.error == "Failed to create record in chores: database is locked"
        assert result.code == ErrorCode.ERR_STORE_WRITE_FAILED
        assert patched_db._collections.get("chores", {}) == {}

    async def test_create_chore_does_not_settle(self, patched_db, chore_factory, profile_factory):
        """Creation never changes chi."""
        zuko = await profile_factory()

        await chore_factory(assigned_to=zuko)

        assert await chi_of(zuko) == 0


@pytest.mark.unit
class TestUpdateChore:
    """Tests for update_chore function."""

    async def test_reassign_snapshots_new_assignee(self, patched_db, chore_factory, profile_factory):
        """Reassigning copies the new assignee's current name and avatar."""
        zuko = await profile_factory(name="Zuko", element="fire")
        katara = await profile_factory(name="Katara", element="water")
        chore_id = await chore_factory(assigned_to=zuko)

        result = await chore_service.update_chore(chore_id, ChoreUpdate(assigned_to=katara))

        assert result.success is True
        chore = await chore_service.get_chore(chore_id)
        assert chore.assigned_to == katara
        assert chore.assignee_name == "Katara"
        assert chore.assignee_avatar_url == "https://placehold.co/100x100.png?text=K"

    async def test_snapshot_not_refreshed_by_profile_edit(self, patched_db, chore_factory, profile_factory):
        """Later profile edits are not reflected on the chore."""
        katara = await profile_factory(name="Katara", element="water")
        chore_id = await chore_factory(assigned_to="someone-else")
        await chore_service.update_chore(chore_id, ChoreUpdate(assigned_to=katara))

        await profile_service.update_profile(katara, ProfileUpdate(name="Master Katara"))

        assert (await chore_service.get_chore(chore_id)).assignee_name == "Katara"

    async def test_update_without_assignee_keeps_snapshot(self, patched_db, chore_factory, profile_factory):
        """Editing other fields leaves the snapshot unchanged, even if the profile changed."""
        zuko = await profile_factory(name="Zuko", element="fire")
        chore_id = await chore_factory(assigned_to=zuko)
        await profile_service.update_profile(zuko, ProfileUpdate(name="Prince Zuko"))

        result = await chore_service.update_chore(chore_id, ChoreUpdate(name="Meditate"))

        assert result.success is True
        chore = await chore_service.get_chore(chore_id)
        assert chore.name == "Meditate"
        assert chore.assignee_name == "Zuko"

    async def test_reassign_to_missing_profile(self, patched_db, chore_factory, profile_factory):
        """Reassigning to an unknown profile stores placeholders."""
        chore_id = await chore_factory(assigned_to=await profile_factory())

        await chore_service.update_chore(chore_id, ChoreUpdate(assigned_to="ghost"))

        chore = await chore_service.get_chore(chore_id)
        assert chore.assignee_name == "Unknown"
        assert chore.assignee_avatar_url == "https://placehold.co/40x40.png"

    async def test_update_cannot_complete(self, patched_db, chore_factory, profile_factory):
        """isCompleted in an update payload is ignored and awards nothing."""
        zuko = await profile_factory()
        chore_id = await chore_factory(assigned_to=zuko)

        await chore_service.update_chore(chore_id, ChoreUpdate.model_validate({"isCompleted": True}))

        assert (await chore_service.get_chore(chore_id)).is_completed is False
        assert await chi_of(zuko) == 0

    async def test_update_missing_chore(self, patched_db):
        """Updating a missing chore fails with ERR_NOT_FOUND."""
        result = await chore_service.update_chore("missing", ChoreUpdate(name="Sweep"))

        assert result.success is False
        assert result.code == ErrorCode.ERR_NOT_FOUND

    async def test_empty_update(self, patched_db, chore_factory, profile_factory):
        """An empty payload on an existing chore succeeds without writing."""
        chore_id = await chore_factory(assigned_to=await profile_factory())
        patched_db.calls.clear()

        result = await chore_service.update_chore(chore_id, ChoreUpdate())

        assert result.success is True
        assert "update_record" not in patched_db.calls


@pytest.mark.unit
class TestToggleComplete:
    """Tests for toggle_complete and chi settlement."""

    async def test_completing_awards_chi(self, patched_db, chore_factory, profile_factory):
        """Completing awards 50 chi to the assignee."""
        zuko = await profile_factory()
        chore_id = await chore_factory(assigned_to=zuko)

        result = await chore_service.toggle_complete(chore_id, True)

        assert result.success is True
        assert (await chore_service.get_chore(chore_id)).is_completed is True
        assert await chi_of(zuko) == 50

    async def test_completing_twice_awards_twice(self, patched_db, chore_factory, profile_factory):
        """Without the guard, every completion request settles."""
        zuko = await profile_factory()
        chore_id = await chore_factory(assigned_to=zuko)

        await chore_service.toggle_complete(chore_id, True)
        await chore_service.toggle_complete(chore_id, True)

        assert await chi_of(zuko) == 100

    async def test_guard_settles_only_once(self, patched_db, guarded_settlement, chore_factory, profile_factory):
        """With the guard, only the incomplete-to-complete transition settles."""
        zuko = await profile_factory()
        chore_id = await chore_factory(assigned_to=zuko)

        first = await chore_service.toggle_complete(chore_id, True)
        second = await chore_service.toggle_complete(chore_id, True)

        assert first.success is True
        assert second.success is True
        assert await chi_of(zuko) == 50

    async def test_guard_settles_again_after_uncompleting(
        self, patched_db, guarded_settlement, chore_factory, profile_factory
    ):
        """Un-completing re-arms settlement under the guard."""
        zuko = await profile_factory()
        chore_id = await chore_factory(assigned_to=zuko)

        await chore_service.toggle_complete(chore_id, True)
        await chore_service.toggle_complete(chore_id, False)
        await chore_service.toggle_complete(chore_id, True)

        assert await chi_of(zuko) == 100

    async def test_uncompleting_never_changes_balance(self, patched_db, chore_factory, profile_factory):
        """Setting false changes no balance, whatever the prior state."""
        zuko = await profile_factory()
        chore_id = await chore_factory(assigned_to=zuko)

        await chore_service.toggle_complete(chore_id, False)
        assert await chi_of(zuko) == 0

        await chore_service.toggle_complete(chore_id, True)
        await chore_service.toggle_complete(chore_id, False)
        await chore_service.toggle_complete(chore_id, False)
        assert await chi_of(zuko) == 50

    async def test_settles_to_current_assignee(self, patched_db, chore_factory, profile_factory):
        """The award goes to whoever is assigned when the chore is completed."""
        zuko = await profile_factory(name="Zuko", element="fire")
        aang = await profile_factory(name="Aang", element="air")
        chore_id = await chore_factory(assigned_to=zuko)
        await chore_service.update_chore(chore_id, ChoreUpdate(assigned_to=aang))

        await chore_service.toggle_complete(chore_id, True)

        assert await chi_of(zuko) == 0
        assert await chi_of(aang) == 50

    async def test_missing_assignee_skips_settlement(self, patched_db, chore_factory):
        """A chore whose assignee profile is gone completes without an award."""
        chore_id = await chore_factory(assigned_to="ghost")

        result = await chore_service.toggle_complete(chore_id, True)

        assert result.success is True
        assert (await chore_service.get_chore(chore_id)).is_completed is True

    async def test_toggle_missing_chore(self, patched_db):
        """Toggling a missing chore fails with ERR_NOT_FOUND."""
        result = await chore_service.toggle_complete("missing", True)

        assert result.success is False
        assert result.code == ErrorCode.ERR_NOT_FOUND

    async def test_flag_write_failure(self, patched_db, chore_factory, profile_factory):
        """A failed flag write aborts before any award."""
        zuko = await profile_factory()
        chore_id = await chore_factory(assigned_to=zuko)
        patched_db.fail("update_record", DatabaseError("Failed to update record in chores: disk full"))

        result = await chore_service.toggle_complete(chore_id, True)

        assert result.success is False
        assert result.error == "Failed to update record in chores: disk full"
        assert patched_db._collections["profiles"][zuko]["chi"] == 0

    async def test_award_failure_leaves_flag_persisted(self, patched_db, chore_factory, profile_factory):
        """A failure after the flag write is reported while the flag stays written."""
        zuko = await profile_factory()
        chore_id = await chore_factory(assigned_to=zuko)
        patched_db.fail("increment_field", DatabaseError("Failed to increment field in profiles: locked"))

        result = await chore_service.toggle_complete(chore_id, True)

        assert result.success is False
        assert result.code == ErrorCode.ERR_STORE_WRITE_FAILED
        assert patched_db._collections["chores"][chore_id]["isCompleted"] is True
        assert patched_db._collections["profiles"][zuko]["chi"] == 0

    async def test_zuko_scenario(self, patched_db, chore_factory, profile_factory):
        """Zuko earns 50 chi for completing a chore and keeps it after un-completing."""
        zuko = await profile_factory(name="Zuko", element="fire")
        assert await chi_of(zuko) == 0
        chore_id = await chore_factory(assigned_to=zuko, name="Practice Forms", element_type="fire")

        await chore_service.toggle_complete(chore_id, True)
        assert await chi_of(zuko) == 50

        await chore_service.toggle_complete(chore_id, False)
        assert await chi_of(zuko) == 50
        assert (await chore_service.get_chore(chore_id)).is_completed is False


@pytest.mark.unit
class TestDeleteChore:
    """Tests for delete_chore function."""

    async def test_delete_keeps_awarded_chi(self, patched_db, chore_factory, profile_factory):
        """Deleting a completed chore does not reverse its award."""
        zuko = await profile_factory()
        chore_id = await chore_factory(assigned_to=zuko)
        await chore_service.toggle_complete(chore_id, True)

        result = await chore_service.delete_chore(chore_id)

        assert result.success is True
        assert await chi_of(zuko) == 50
        with pytest.raises(RecordNotFoundError):
            await chore_service.get_chore(chore_id)

    async def test_delete_missing_chore(self, patched_db):
        """Deleting a missing chore fails with ERR_NOT_FOUND."""
        result = await chore_service.delete_chore("missing")

        assert result.success is False
        assert result.code == ErrorCode.ERR_NOT_FOUND


@pytest.mark.unit
class TestResyncAssignee:
    """Tests for resync_assignee function."""

    async def test_resync_picks_up_profile_changes(self, patched_db, chore_factory, profile_factory):
        """An explicit resync copies the profile's current display fields."""
        zuko = await profile_factory(name="Zuko", element="fire")
        chore_id = await chore_factory(assigned_to=zuko)
        await profile_service.update_profile(zuko, ProfileUpdate(name="Fire Lord Zuko"))

        result = await chore_service.resync_assignee(chore_id)

        assert result.success is True
        assert (await chore_service.get_chore(chore_id)).assignee_name == "Fire Lord Zuko"

    async def test_resync_missing_chore(self, patched_db):
        """Resyncing a missing chore fails with ERR_NOT_FOUND."""
        result = await chore_service.resync_assignee("missing")

        assert result.code == ErrorCode.ERR_NOT_FOUND


@pytest.mark.unit
class TestListChores:
    """Tests for list_chores function."""

    async def test_list_sorted_for_display(self, patched_db, chore_factory, profile_factory):
        """Chores come back incomplete-first, then by due date."""
        zuko = await profile_factory()
        late = await chore_factory(assigned_to=zuko, name="Late", due_date="2024-07-20")
        early = await chore_factory(assigned_to=zuko, name="Early", due_date="2024-07-10")
        done = await chore_factory(assigned_to=zuko, name="Done", due_date="2024-07-01")
        await chore_service.toggle_complete(done, True)

        chores = await chore_service.list_chores()

        assert [c.id for c in chores] == [early, late, done]

    async def test_list_filters(self, patched_db, chore_factory, profile_factory):
        """Assignee, completion and element filters combine."""
        zuko = await profile_factory(name="Zuko", element="fire")
        katara = await profile_factory(name="Katara", element="water")
        fire_chore = await chore_factory(assigned_to=zuko, element_type="fire")
        await chore_factory(assigned_to=zuko, element_type="water")
        await chore_factory(assigned_to=katara, element_type="fire")
        done = await chore_factory(assigned_to=zuko, element_type="fire")
        await chore_service.toggle_complete(done, True)

        chores = await chore_service.list_chores(assigned_to=zuko, is_completed=False, element=Element.FIRE)

        assert [c.id for c in chores] == [fire_chore]

    def test_build_chore_filter(self):
        """Filters use the stored field names and escape values."""
        query = chore_service.build_chore_filter(assigned_to='a"b', is_completed=False, element=Element.AIR)

        assert query == 'assignedTo = "a\\"b" && isCompleted = "false" && elementType = "air"'
