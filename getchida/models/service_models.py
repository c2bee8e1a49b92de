"""Pydantic models for service layer return types.

These models provide type safety at service boundaries, converting store
documents and failures into typed objects.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from getchida.core.errors import ErrorResponse
from getchida.domain.element import Element


class OperationResult(BaseModel):
    """Outcome of a mutating service operation.

    Store failures are reported here instead of being raised past the service
    boundary.
    """

    success: bool
    id: str | None = None
    error: str | None = None
    code: str | None = None
    suggestion: str | None = None

    @classmethod
    def ok(cls, record_id: str | None = None) -> "OperationResult":
        """Build a successful result."""
        return cls(success=True, id=record_id)

    @classmethod
    def failed(cls, response: ErrorResponse) -> "OperationResult":
        """Build a failed result from a classified error."""
        return cls(success=False, error=response.message, code=response.code, suggestion=response.suggestion)


class LeaderboardEntry(BaseModel):
    """Profile entry in the chi leaderboard."""

    profile_id: str
    profile_name: str
    element: Element
    chi: int


class HouseholdSummary(BaseModel):
    """Overall household statistics."""

    profile_count: int
    total_chores: int
    completed_chores: int
    overdue_chores: int
    total_chi: int


class MotivationRequest(BaseModel):
    """Input for a motivational message."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    element: Element
    progress_percentage: float = Field(..., ge=0, le=100, description="Progress toward the chi goal")


class MotivationalMessage(BaseModel):
    """Structured output of the motivation agent."""

    message: str = Field(..., min_length=1, description="Short motivational message, at most two sentences")


class MotivationResult(BaseModel):
    """Outcome of a motivation request."""

    success: bool
    message: str | None = None
    error: str | None = None
    code: str | None = None
