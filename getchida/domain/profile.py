"""Profile domain models."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from getchida.domain.element import Element


class Profile(BaseModel):
    """Household member data transfer object."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(..., description="Unique profile ID from the document store")
    name: str = Field(..., description="Display name")
    element: Element = Field(..., description="Elemental affinity")
    chi: int = Field(default=0, ge=0, description="Cumulative reward balance")
    steps_today: int = Field(default=0, ge=0, description="Daily activity count")
    avatar_url: str | None = Field(default=None, description="Display image URL")
    created_at: datetime | None = Field(default=None, description="Creation timestamp")


class AssigneeSnapshot(BaseModel):
    """Display fields copied onto a chore when it is assigned."""

    name: str
    avatar_url: str
