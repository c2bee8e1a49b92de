"""JSON API router for profiles, chores, analytics and motivation."""

import json
import logging
from collections.abc import AsyncIterator, Callable
from typing import Any

from fastapi import APIRouter, HTTPException, Query, status
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from getchida.agents import motivation_agent
from getchida.core import realtime
from getchida.core.db_client import DatabaseError, RecordNotFoundError
from getchida.core.errors import ErrorCode, classify_store_error
from getchida.domain.chore import Chore, sort_for_display
from getchida.domain.create_models import ChoreCreate, ProfileCreate
from getchida.domain.element import Element
from getchida.domain.profile import Profile
from getchida.domain.update_models import ChoreUpdate, ProfileUpdate
from getchida.models.service_models import MotivationRequest, OperationResult
from getchida.services import analytics_service, chore_service, profile_service


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["api"])


class CompletionToggle(BaseModel):
    """Body of the completion toggle endpoint."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    is_completed: bool


def _result_response(result: OperationResult, *, success_status: int = status.HTTP_200_OK) -> JSONResponse:
    """Map an OperationResult to a JSON response with a matching status code."""
    if result.success:
        status_code = success_status
    elif result.code == ErrorCode.ERR_NOT_FOUND:
        status_code = status.HTTP_404_NOT_FOUND
    else:
        status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(content=result.model_dump(exclude_none=True), status_code=status_code)


def _store_failure(e: DatabaseError) -> HTTPException:
    """Convert a failed store read into an HTTP error carrying the failure body."""
    response = classify_store_error(e, write=False)
    status_code = (
        status.HTTP_404_NOT_FOUND if isinstance(e, RecordNotFoundError) else status.HTTP_503_SERVICE_UNAVAILABLE
    )
    return HTTPException(
        status_code=status_code,
        detail=OperationResult.failed(response).model_dump(exclude_none=True),
    )


def _dump(model: BaseModel) -> dict[str, Any]:
    return model.model_dump(by_alias=True, mode="json")


async def snapshot_events(
    *,
    collection: str,
    to_payload: Callable[[list[dict[str, Any]]], list[dict[str, Any]]],
    filter_query: str = "",
    sort: str = "",
) -> AsyncIterator[str]:
    """Render a live query as server-sent events, one ``data:`` event per snapshot."""
    try:
        async with realtime.subscribe(collection=collection, filter_query=filter_query, sort=sort) as snapshots:
            async for snapshot in snapshots:
                yield f"data: {json.dumps(to_payload(snapshot))}\n\n"
    except DatabaseError as e:
        logger.error("live_query_failed", extra={"collection": collection, "error": str(e)})
        body = OperationResult.failed(classify_store_error(e, write=False)).model_dump(exclude_none=True)
        yield f"event: error\ndata: {json.dumps(body)}\n\n"


def _profiles_payload(snapshot: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [_dump(Profile.model_validate(record)) for record in snapshot]


def _chores_payload(snapshot: list[dict[str, Any]]) -> list[dict[str, Any]]:
    return [_dump(chore) for chore in sort_for_display(Chore.model_validate(record) for record in snapshot)]


# Profiles


@router.get("/profiles")
async def list_profiles() -> list[dict[str, Any]]:
    """List profiles, newest first."""
    try:
        profiles = await profile_service.list_profiles()
    except DatabaseError as e:
        raise _store_failure(e) from e
    return [_dump(profile) for profile in profiles]


@router.post("/profiles")
async def create_profile(profile: ProfileCreate) -> JSONResponse:
    """Create a profile with an empty chi balance."""
    result = await profile_service.create_profile(profile)
    logger.info("api_profile_created", extra={"success": result.success, "profile_id": result.id})
    return _result_response(result, success_status=status.HTTP_201_CREATED)


@router.get("/profiles/stream")
async def stream_profiles() -> StreamingResponse:
    """Live query over all profiles, newest first."""
    events = snapshot_events(collection="profiles", to_payload=_profiles_payload, sort="createdAt DESC")
    return StreamingResponse(events, media_type="text/event-stream")


@router.get("/profiles/{profile_id}")
async def get_profile(profile_id: str) -> dict[str, Any]:
    """Get a single profile."""
    try:
        profile = await profile_service.get_profile(profile_id)
    except DatabaseError as e:
        raise _store_failure(e) from e
    return _dump(profile)


@router.patch("/profiles/{profile_id}")
async def update_profile(profile_id: str, update: ProfileUpdate) -> JSONResponse:
    """Update a profile's name, element or avatar."""
    result = await profile_service.update_profile(profile_id, update)
    return _result_response(result)


# Chores


@router.get("/chores")
async def list_chores(
    *,
    assigned_to: str | None = Query(default=None, alias="assignedTo"),
    is_completed: bool | None = Query(default=None, alias="isCompleted"),
    element: Element | None = None,
) -> list[dict[str, Any]]:
    """List chores, incomplete first then by due date."""
    try:
        chores = await chore_service.list_chores(assigned_to=assigned_to, is_completed=is_completed, element=element)
    except DatabaseError as e:
        raise _store_failure(e) from e
    return [_dump(chore) for chore in chores]


@router.post("/chores")
async def create_chore(chore: ChoreCreate) -> JSONResponse:
    """Create an incomplete chore."""
    result = await chore_service.create_chore(chore)
    logger.info("api_chore_created", extra={"success": result.success, "chore_id": result.id})
    return _result_response(result, success_status=status.HTTP_201_CREATED)


@router.get("/chores/stream")
async def stream_chores(
    *,
    assigned_to: str | None = Query(default=None, alias="assignedTo"),
    is_completed: bool | None = Query(default=None, alias="isCompleted"),
    element: Element | None = None,
) -> StreamingResponse:
    """Live query over chores with optional equality filters."""
    filter_query = chore_service.build_chore_filter(
        assigned_to=assigned_to,
        is_completed=is_completed,
        element=element,
    )
    events = snapshot_events(
        collection="chores",
        to_payload=_chores_payload,
        filter_query=filter_query,
        sort="dueDate ASC",
    )
    return StreamingResponse(events, media_type="text/event-stream")


@router.get("/chores/{chore_id}")
async def get_chore(chore_id: str) -> dict[str, Any]:
    """Get a single chore."""
    try:
        chore = await chore_service.get_chore(chore_id)
    except DatabaseError as e:
        raise _store_failure(e) from e
    return _dump(chore)


@router.patch("/chores/{chore_id}")
async def update_chore(chore_id: str, update: ChoreUpdate) -> JSONResponse:
    """Partially update a chore. Completion state is not accepted here."""
    result = await chore_service.update_chore(chore_id, update)
    return _result_response(result)


@router.delete("/chores/{chore_id}")
async def delete_chore(chore_id: str) -> JSONResponse:
    """Delete a chore."""
    result = await chore_service.delete_chore(chore_id)
    return _result_response(result)


@router.post("/chores/{chore_id}/complete")
async def toggle_complete(chore_id: str, toggle: CompletionToggle) -> JSONResponse:
    """Set a chore's completion state, awarding chi on completion."""
    result = await chore_service.toggle_complete(chore_id, toggle.is_completed)
    logger.info(
        "api_chore_toggled",
        extra={"chore_id": chore_id, "is_completed": toggle.is_completed, "success": result.success},
    )
    return _result_response(result)


@router.post("/chores/{chore_id}/resync")
async def resync_assignee(chore_id: str) -> JSONResponse:
    """Refresh a chore's assignee snapshot from the current profile."""
    result = await chore_service.resync_assignee(chore_id)
    return _result_response(result)


# Analytics and motivation


@router.get("/leaderboard")
async def get_leaderboard() -> list[dict[str, Any]]:
    """Profiles ranked by chi."""
    try:
        leaderboard = await analytics_service.get_leaderboard()
    except DatabaseError as e:
        raise _store_failure(e) from e
    return [entry.model_dump(mode="json") for entry in leaderboard]


@router.get("/summary")
async def get_household_summary() -> dict[str, Any]:
    """Household totals for the dashboard."""
    try:
        summary = await analytics_service.get_household_summary()
    except DatabaseError as e:
        raise _store_failure(e) from e
    return summary.model_dump()


@router.post("/motivation")
async def generate_motivation(request: MotivationRequest) -> JSONResponse:
    """Generate a motivational message for an element and progress percentage."""
    result = await motivation_agent.generate_motivational_message(request)
    status_code = status.HTTP_200_OK if result.success else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(content=result.model_dump(exclude_none=True), status_code=status_code)
