"""Partial update payloads for document store operations.

Only fields explicitly present in a payload are written. Completion state and
chi are not accepted here: they change only through toggle_complete and reward
settlement.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from getchida.domain.create_models import (
    parse_due_date,
    validate_assignee,
    validate_avatar_url,
    validate_chore_name,
    validate_profile_name,
)
from getchida.domain.element import Element


class _PartialUpdate(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        use_enum_values=True,
    )

    def to_document(self) -> dict[str, Any]:
        """Fields present in the payload, keyed by their stored names."""
        return self.model_dump(by_alias=True, exclude_unset=True, exclude_none=True)


class ChoreUpdate(_PartialUpdate):
    """Update payload for chore fields other than completion state."""

    name: str | None = None
    description: str | None = None
    assigned_to: str | None = None
    due_date: datetime | None = None
    element_type: Element | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        """Validate the chore name length when present."""
        return None if v is None else validate_chore_name(v)

    @field_validator("assigned_to")
    @classmethod
    def validate_assigned_to(cls, v: str | None) -> str | None:
        """Reject a blank assignee when present."""
        return None if v is None else validate_assignee(v)

    @field_validator("due_date", mode="before")
    @classmethod
    def validate_due_date(cls, v: object) -> datetime | None:
        """Parse the due date to UTC midnight of its day when present."""
        return None if v is None else parse_due_date(v)

    @property
    def reassigns(self) -> bool:
        """Whether the payload carries an assignee and needs a fresh snapshot."""
        return self.assigned_to is not None


class ProfileUpdate(_PartialUpdate):
    """Update payload for profile name, element and avatar."""

    name: str | None = None
    element: Element | None = None
    avatar_url: str | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        """Validate the display name when present."""
        return None if v is None else validate_profile_name(v)

    @field_validator("avatar_url")
    @classmethod
    def validate_avatar(cls, v: str | None) -> str | None:
        """Validate the avatar URL when present."""
        return validate_avatar_url(v)
