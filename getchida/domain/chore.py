"""Chore domain models and display ordering."""

from collections.abc import Iterable
from datetime import UTC, date, datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from getchida.domain.element import Element


class Chore(BaseModel):
    """Chore data transfer object.

    ``assignee_name`` and ``assignee_avatar_url`` are a snapshot of the
    assignee's profile taken when ``assigned_to`` was last written; they are
    not refreshed when the profile changes.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(..., description="Unique chore ID from the document store")
    name: str = Field(..., description="Chore name (e.g., 'Clean Kitchen')")
    description: str = Field(default="", description="Detailed chore description")
    assigned_to: str = Field(..., description="Profile ID of the assignee")
    assignee_name: str = Field(..., description="Assignee display name at assignment time")
    assignee_avatar_url: str = Field(..., description="Assignee display image at assignment time")
    due_date: datetime = Field(..., description="Due date (UTC midnight of the due day)")
    is_completed: bool = Field(default=False, description="Completion flag")
    element_type: Element = Field(..., description="Element the chore belongs to")
    created_at: datetime | None = Field(default=None, description="Creation timestamp")

    @property
    def due_day(self) -> date:
        """Calendar day the chore is due."""
        return self.due_date.date()

    def is_overdue(self, today: date | None = None) -> bool:
        """Whether the chore is incomplete and its due day has passed."""
        today = today or datetime.now(UTC).date()
        return not self.is_completed and self.due_day < today


def sort_for_display(chores: Iterable[Chore]) -> list[Chore]:
    """Order chores incomplete-first, then by due date ascending.

    ``sorted`` is stable, so chores with equal keys keep their input order.
    """
    return sorted(chores, key=lambda chore: (chore.is_completed, chore.due_date))
