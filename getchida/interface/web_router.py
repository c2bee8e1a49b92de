"""Web interface router: dashboard, chores, profiles and motivation pages."""

import logging
import secrets
from typing import Any

from fastapi import APIRouter, Form, HTTPException, Request, Response, status
from fastapi.responses import RedirectResponse
from fastapi.templating import Jinja2Templates
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from pydantic import ValidationError

from getchida.agents import motivation_agent
from getchida.core.config import Constants, constants, settings
from getchida.core.db_client import DatabaseError, RecordNotFoundError
from getchida.core.errors import ErrorCode
from getchida.domain.chore import Chore
from getchida.domain.create_models import ChoreCreate, ProfileCreate
from getchida.domain.element import Element
from getchida.domain.profile import Profile
from getchida.domain.update_models import ChoreUpdate, ProfileUpdate
from getchida.models.service_models import LeaderboardEntry, MotivationRequest, OperationResult
from getchida.services import analytics_service, chore_service, profile_service


logger = logging.getLogger(__name__)

router = APIRouter(tags=["web"])

templates = Jinja2Templates(directory=str(constants.TEMPLATES_DIR))

csrf_serializer = URLSafeTimedSerializer(str(settings.secret_key), salt="getchida-csrf")

# Display label, icon and colour per element
ELEMENT_STYLES: dict[Element, dict[str, str]] = {
    Element.AIR: {"label": "Air", "icon": "🌬️", "color": "#f4a261"},
    Element.WATER: {"label": "Water", "icon": "💧", "color": "#2a9d8f"},
    Element.EARTH: {"label": "Earth", "icon": "⛰️", "color": "#6a994e"},
    Element.FIRE: {"label": "Fire", "icon": "🔥", "color": "#e63946"},
}

templates.env.globals["element_styles"] = ELEMENT_STYLES
templates.env.globals["elements"] = list(Element)


def generate_csrf_token() -> str:
    """Generate a secure CSRF token."""
    return secrets.token_hex(32)


def set_csrf_cookie(response: Response, csrf_token: str) -> None:
    """Set the CSRF cookie on a response."""
    signed_token = csrf_serializer.dumps(csrf_token)
    response.set_cookie(
        key="csrf_token",
        value=signed_token,
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
        max_age=Constants.CSRF_TOKEN_MAX_AGE_SECONDS,
    )


def validate_csrf_token(request: Request, token: str | None) -> bool:
    """Validate CSRF token from request against signed cookie value."""
    if not token:
        return False

    expected_token = request.cookies.get("csrf_token")
    if not expected_token:
        return False

    try:
        loaded_token = csrf_serializer.loads(expected_token, max_age=Constants.CSRF_TOKEN_MAX_AGE_SECONDS)
        return secrets.compare_digest(loaded_token, token)
    except (BadSignature, SignatureExpired):
        return False


def require_csrf(request: Request, token: str | None, action: str) -> None:
    """Reject a form submission without a valid CSRF token."""
    if not validate_csrf_token(request, token):
        logger.warning("web_invalid_csrf", extra={"action": action, "path": request.url.path})
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid CSRF token")


def render(request: Request, name: str, context: dict[str, Any], *, status_code: int = 200) -> Response:
    """Render a page with a fresh CSRF token and any pending flash message."""
    csrf_token = generate_csrf_token()
    response = templates.TemplateResponse(
        request,
        name=name,
        context={
            "csrf_token": csrf_token,
            "success_message": request.cookies.get("flash_success"),
            **context,
        },
        status_code=status_code,
    )
    set_csrf_cookie(response, csrf_token)
    return response


def redirect_with_flash(url: str, message: str) -> Response:
    """Redirect after a successful action, naming it in a short-lived flash cookie."""
    response = RedirectResponse(url=url, status_code=status.HTTP_303_SEE_OTHER)
    response.set_cookie("flash_success", message, max_age=Constants.FLASH_MAX_AGE_SECONDS)
    return response


def validation_messages(error: ValidationError) -> list[str]:
    """User-facing messages from a pydantic validation error."""
    return [str(err["msg"]).removeprefix("Value error, ") for err in error.errors()]


def failure_messages(action: str, result: OperationResult) -> list[str]:
    """User-facing messages for a failed operation, followed by its suggestion."""
    messages = [f"Could not {action}: {result.error}"]
    if result.suggestion:
        messages.append(result.suggestion)
    return messages


async def _profiles_or_empty() -> tuple[list[Profile], str | None]:
    try:
        return await profile_service.list_profiles(), None
    except DatabaseError as e:
        logger.error("web_profiles_load_failed", extra={"error": str(e)})
        return [], "Could not load profiles."


# Dashboard


@router.get("/")
async def get_dashboard(request: Request, profile: str | None = None) -> Response:
    """Render the dashboard for the selected (or newest) profile."""
    profiles, error = await _profiles_or_empty()
    current = next((p for p in profiles if p.id == profile), profiles[0] if profiles else None)

    upcoming: list[Chore] = []
    leaderboard: list[LeaderboardEntry] = []
    errors: list[str] = []
    if current is not None:
        try:
            upcoming = await chore_service.list_chores(assigned_to=current.id, is_completed=False)
        except DatabaseError as e:
            logger.error("web_dashboard_chores_load_failed", extra={"profile_id": current.id, "error": str(e)})
            errors.append("Could not load assigned chores.")

        try:
            leaderboard = await analytics_service.get_leaderboard()
        except DatabaseError as e:
            logger.error("web_dashboard_leaderboard_load_failed", extra={"error": str(e)})
            errors.append("Could not load the leaderboard.")

    progress = analytics_service.chi_progress_percentage(current.chi) if current else 0.0
    return render(
        request,
        "dashboard.html",
        {
            "profiles": profiles,
            "current": current,
            "upcoming": upcoming,
            "leaderboard": leaderboard,
            "progress": progress,
            "chi_goal": Constants.CHI_WEEKLY_GOAL,
            "error": error,
            "errors": errors,
        },
    )


# Chores


def _chore_form(
    *,
    name: str,
    description: str,
    assigned_to: str,
    due_date: str,
    element_type: str,
) -> dict[str, str]:
    return {
        "name": name,
        "description": description,
        "assignedTo": assigned_to,
        "dueDate": due_date,
        "elementType": element_type,
    }


async def _render_chores(
    request: Request,
    *,
    element: Element | None = None,
    errors: list[str] | None = None,
    form: dict[str, str] | None = None,
    status_code: int = 200,
) -> Response:
    profiles, error = await _profiles_or_empty()
    try:
        chores = await chore_service.list_chores(element=element)
    except DatabaseError as e:
        logger.error("web_chores_load_failed", extra={"error": str(e)})
        chores, error = [], "Could not load chores."

    return render(
        request,
        "chores.html",
        {
            "chores": chores,
            "profiles": profiles,
            "selected_element": element,
            "errors": errors,
            "error": error,
            "form": form or {},
        },
        status_code=status_code,
    )


@router.get("/chores")
async def get_chores(request: Request, element: Element | None = None) -> Response:
    """Render the chore list with element tabs and the create form."""
    return await _render_chores(request, element=element)


@router.post("/chores")
async def post_create_chore(
    *,
    request: Request,
    name: str = Form(""),
    description: str = Form(""),
    assigned_to: str = Form(""),
    due_date: str = Form(""),
    element_type: str = Form(""),
    csrf_token: str | None = Form(None),
) -> Response:
    """Create a chore from the form, re-rendering it with errors on failure."""
    require_csrf(request, csrf_token, "create_chore")
    form = _chore_form(
        name=name,
        description=description,
        assigned_to=assigned_to,
        due_date=due_date,
        element_type=element_type,
    )

    try:
        chore = ChoreCreate.model_validate(form)
    except ValidationError as e:
        return await _render_chores(request, errors=validation_messages(e), form=form, status_code=400)

    result = await chore_service.create_chore(chore)
    if not result.success:
        logger.warning("web_chore_create_failed", extra={"error": result.error})
        return await _render_chores(request, errors=failure_messages("save chore", result), form=form)

    logger.info("web_chore_created", extra={"chore_id": result.id})
    return redirect_with_flash("/chores", f"Chore '{chore.name}' added")


@router.get("/chores/{chore_id}/edit")
async def get_edit_chore(request: Request, chore_id: str) -> Response:
    """Render the edit form for a chore."""
    try:
        chore = await chore_service.get_chore(chore_id)
    except RecordNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Chore not found") from e

    profiles, error = await _profiles_or_empty()
    form = _chore_form(
        name=chore.name,
        description=chore.description,
        assigned_to=chore.assigned_to,
        due_date=chore.due_day.isoformat(),
        element_type=chore.element_type.value,
    )
    return render(request, "chore_edit.html", {"chore": chore, "profiles": profiles, "form": form, "error": error})


@router.post("/chores/{chore_id}/edit")
async def post_edit_chore(
    *,
    request: Request,
    chore_id: str,
    name: str = Form(""),
    description: str = Form(""),
    assigned_to: str = Form(""),
    due_date: str = Form(""),
    element_type: str = Form(""),
    csrf_token: str | None = Form(None),
) -> Response:
    """Apply the edit form to a chore."""
    require_csrf(request, csrf_token, "edit_chore")
    form = _chore_form(
        name=name,
        description=description,
        assigned_to=assigned_to,
        due_date=due_date,
        element_type=element_type,
    )

    errors: list[str] = []
    try:
        update = ChoreUpdate.model_validate(form)
    except ValidationError as e:
        errors = validation_messages(e)
    else:
        result = await chore_service.update_chore(chore_id, update)
        if result.success:
            logger.info("web_chore_updated", extra={"chore_id": chore_id})
            return redirect_with_flash("/chores", f"Chore '{name.strip()}' updated")
        if result.code == ErrorCode.ERR_NOT_FOUND:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Chore not found")
        errors = failure_messages("save chore", result)

    profiles, error = await _profiles_or_empty()
    return render(
        request,
        "chore_edit.html",
        {"chore": {"id": chore_id}, "profiles": profiles, "form": form, "errors": errors, "error": error},
        status_code=400,
    )


@router.post("/chores/{chore_id}/toggle")
async def post_toggle_chore(
    *,
    request: Request,
    chore_id: str,
    is_completed: bool = Form(...),
    csrf_token: str | None = Form(None),
) -> Response:
    """Mark a chore complete or incomplete."""
    require_csrf(request, csrf_token, "toggle_chore")
    result = await chore_service.toggle_complete(chore_id, is_completed)
    if not result.success:
        logger.warning("web_chore_toggle_failed", extra={"chore_id": chore_id, "error": result.error})
        return await _render_chores(request, errors=failure_messages("update chore", result))

    message = (
        f"Chore completed! +{Constants.CHORE_COMPLETION_CHI} chi"
        if is_completed
        else "Chore marked as incomplete"
    )
    return redirect_with_flash("/chores", message)


@router.post("/chores/{chore_id}/delete")
async def post_delete_chore(
    *,
    request: Request,
    chore_id: str,
    csrf_token: str | None = Form(None),
) -> Response:
    """Delete a chore."""
    require_csrf(request, csrf_token, "delete_chore")
    result = await chore_service.delete_chore(chore_id)
    if not result.success:
        logger.warning("web_chore_delete_failed", extra={"chore_id": chore_id, "error": result.error})
        return await _render_chores(request, errors=failure_messages("delete chore", result))

    return redirect_with_flash("/chores", "Chore deleted")


# Profiles


async def _render_profiles(
    request: Request,
    *,
    errors: list[str] | None = None,
    form: dict[str, str] | None = None,
    status_code: int = 200,
) -> Response:
    profiles, error = await _profiles_or_empty()
    return render(
        request,
        "profiles.html",
        {"profiles": profiles, "errors": errors, "error": error, "form": form or {}},
        status_code=status_code,
    )


@router.get("/profiles")
async def get_profiles(request: Request) -> Response:
    """Render the profile list and create form."""
    return await _render_profiles(request)


@router.post("/profiles")
async def post_create_profile(
    *,
    request: Request,
    name: str = Form(""),
    element: str = Form(""),
    avatar_url: str = Form(""),
    csrf_token: str | None = Form(None),
) -> Response:
    """Create a profile from the form."""
    require_csrf(request, csrf_token, "create_profile")
    form = {"name": name, "element": element, "avatarUrl": avatar_url}

    try:
        profile = ProfileCreate.model_validate(form)
    except ValidationError as e:
        return await _render_profiles(request, errors=validation_messages(e), form=form, status_code=400)

    result = await profile_service.create_profile(profile)
    if not result.success:
        logger.warning("web_profile_create_failed", extra={"error": result.error})
        return await _render_profiles(request, errors=failure_messages("save profile", result), form=form)

    logger.info("web_profile_created", extra={"profile_id": result.id})
    return redirect_with_flash("/profiles", f"Profile '{profile.name}' added")


@router.get("/profiles/{profile_id}/edit")
async def get_edit_profile(request: Request, profile_id: str) -> Response:
    """Render the edit form for a profile."""
    try:
        profile = await profile_service.get_profile(profile_id)
    except RecordNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found") from e

    form = {"name": profile.name, "element": profile.element.value, "avatarUrl": profile.avatar_url or ""}
    return render(request, "profile_edit.html", {"profile": profile, "form": form})


@router.post("/profiles/{profile_id}/edit")
async def post_edit_profile(
    *,
    request: Request,
    profile_id: str,
    name: str = Form(""),
    element: str = Form(""),
    avatar_url: str = Form(""),
    csrf_token: str | None = Form(None),
) -> Response:
    """Apply the edit form to a profile."""
    require_csrf(request, csrf_token, "edit_profile")
    form = {"name": name, "element": element, "avatarUrl": avatar_url}

    errors: list[str] = []
    try:
        update = ProfileUpdate.model_validate(form)
    except ValidationError as e:
        errors = validation_messages(e)
    else:
        result = await profile_service.update_profile(profile_id, update)
        if result.success:
            logger.info("web_profile_updated", extra={"profile_id": profile_id})
            return redirect_with_flash("/profiles", f"Profile '{name.strip()}' updated")
        if result.code == ErrorCode.ERR_NOT_FOUND:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")
        errors = failure_messages("save profile", result)

    return render(
        request,
        "profile_edit.html",
        {"profile": {"id": profile_id}, "form": form, "errors": errors},
        status_code=400,
    )


# Motivation


@router.get("/motivation")
async def get_motivation(request: Request, element: Element | None = None, progress: float = 0) -> Response:
    """Render the motivation form."""
    form = {"element": element.value if element else "", "progressPercentage": f"{progress:g}"}
    return render(request, "motivation.html", {"form": form, "message": None})


@router.post("/motivation")
async def post_motivation(
    *,
    request: Request,
    element: str = Form(""),
    progress_percentage: str = Form("0"),
    csrf_token: str | None = Form(None),
) -> Response:
    """Generate a motivational message and show it on the page."""
    require_csrf(request, csrf_token, "motivation")
    form = {"element": element, "progressPercentage": progress_percentage}

    try:
        motivation_request = MotivationRequest.model_validate(form)
    except ValidationError as e:
        return render(
            request,
            "motivation.html",
            {"form": form, "message": None, "errors": validation_messages(e)},
            status_code=400,
        )

    result = await motivation_agent.generate_motivational_message(motivation_request)
    if not result.success:
        return render(request, "motivation.html", {"form": form, "message": None, "errors": [result.error]})

    return render(request, "motivation.html", {"form": form, "message": result.message})
