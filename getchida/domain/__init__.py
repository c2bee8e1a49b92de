"""Domain models and DTOs."""

from getchida.domain.chore import Chore, sort_for_display
from getchida.domain.create_models import ChoreCreate, ProfileCreate
from getchida.domain.element import Element
from getchida.domain.profile import AssigneeSnapshot, Profile
from getchida.domain.update_models import ChoreUpdate, ProfileUpdate


__all__ = [
    "AssigneeSnapshot",
    "Chore",
    "ChoreCreate",
    "ChoreUpdate",
    "Element",
    "Profile",
    "ProfileCreate",
    "ProfileUpdate",
    "sort_for_display",
]
