"""Pydantic models for creating records in the document store."""

import re
from datetime import UTC, date, datetime

from dateutil import parser as dateutil_parser
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from getchida.core.config import Constants
from getchida.domain.element import Element


_URL_PATTERN = re.compile(r"^https?://\S+$")


def parse_due_date(value: object) -> datetime:
    """Parse a due date input to UTC midnight of its calendar day.

    Accepts ``date``/``datetime`` objects and any date string dateutil understands.

    Raises:
        ValueError: If the value is empty or not a parseable date
    """
    if isinstance(value, datetime):
        day = value.date()
    elif isinstance(value, date):
        day = value
    elif isinstance(value, str):
        if not value.strip():
            raise ValueError("Due date cannot be empty.")
        try:
            day = dateutil_parser.parse(value).date()
        except (ValueError, OverflowError) as e:
            raise ValueError(f"Invalid due date: {value}") from e
    else:
        raise ValueError("Please select a due date.")
    return datetime(day.year, day.month, day.day, tzinfo=UTC)


def validate_chore_name(value: str) -> str:
    """Strip a chore name and enforce the minimum length."""
    value = value.strip()
    if len(value) < Constants.MIN_CHORE_NAME_LENGTH:
        raise ValueError(f"Chore name must be at least {Constants.MIN_CHORE_NAME_LENGTH} characters.")
    return value


def validate_profile_name(value: str) -> str:
    """Strip a profile name and enforce its length bounds."""
    value = value.strip()
    if len(value) < Constants.MIN_PROFILE_NAME_LENGTH:
        raise ValueError(f"Name must be at least {Constants.MIN_PROFILE_NAME_LENGTH} characters.")
    if len(value) > Constants.MAX_NAME_LENGTH:
        raise ValueError(f"Name too long (max {Constants.MAX_NAME_LENGTH} characters)")
    return value


def validate_assignee(value: str) -> str:
    """Reject a blank assignee profile ID."""
    if not value.strip():
        raise ValueError("Please assign this chore to someone.")
    return value


def validate_avatar_url(value: str | None) -> str | None:
    """Treat a blank avatar as absent, otherwise require an http(s) URL."""
    if value is None or not value.strip():
        return None
    value = value.strip()
    if not _URL_PATTERN.match(value):
        raise ValueError("Please enter a valid URL.")
    return value


class ChoreCreate(BaseModel):
    """Input for creating a chore. Completion state is never accepted here."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    name: str = Field(..., description="Chore name, at least 3 characters")
    description: str | None = Field(default=None, description="Optional free-text description")
    assigned_to: str = Field(..., description="Profile ID of the assignee")
    due_date: datetime = Field(..., description="Due date string, parsed to a calendar day")
    element_type: Element = Field(..., description="Element of the chore")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate the chore name length."""
        return validate_chore_name(v)

    @field_validator("assigned_to")
    @classmethod
    def validate_assigned_to(cls, v: str) -> str:
        """Reject a blank assignee."""
        return validate_assignee(v)

    @field_validator("due_date", mode="before")
    @classmethod
    def validate_due_date(cls, v: object) -> datetime:
        """Parse the due date to UTC midnight of its day."""
        return parse_due_date(v)


class ProfileCreate(BaseModel):
    """Input for creating a profile."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    name: str = Field(..., description="Display name")
    element: Element = Field(..., description="Elemental affinity")
    avatar_url: str | None = Field(default=None, description="Optional display image URL")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate the display name is usable."""
        return validate_profile_name(v)

    @field_validator("avatar_url")
    @classmethod
    def validate_avatar(cls, v: str | None) -> str | None:
        """Validate the avatar URL."""
        return validate_avatar_url(v)
