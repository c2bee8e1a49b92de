"""Pytest configuration and shared fixtures."""

import pytest

from getchida.core.change_feed import change_feed
from getchida.domain.create_models import ChoreCreate, ProfileCreate
from getchida.services import chore_service, profile_service


@pytest.fixture(autouse=True)
def _no_leftover_listeners():
    """Every live query opened by a test must be released by the end of it."""
    yield
    assert not change_feed._listeners, "live query listeners leaked"


@pytest.fixture
def profile_factory():
    """Creates profiles through the service layer and returns their ids."""

    async def _create_profile(name: str = "Zuko", element: str = "fire", **kwargs) -> str:
        result = await profile_service.create_profile(ProfileCreate(name=name, element=element, **kwargs))
        assert result.success, result.error
        assert result.id is not None
        return result.id

    return _create_profile


@pytest.fixture
def chore_factory():
    """Creates chores through the service layer and returns their ids."""

    async def _create_chore(
        *,
        assigned_to: str,
        name: str = "Clean Kitchen",
        due_date: str = "2024-07-15",
        element_type: str = "water",
        **kwargs,
    ) -> str:
        chore = ChoreCreate(
            name=name,
            assigned_to=assigned_to,
            due_date=due_date,
            element_type=element_type,
            **kwargs,
        )
        result = await chore_service.create_chore(chore)
        assert result.success, result.error
        assert result.id is not None
        return result.id

    return _create_chore
