"""Authentication routes."""

import logging
from pathlib import Path

from fastapi import (
    APIRouter,
    Depends,
    Form,
    Query,
    Request,
    status,
)
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from founderhub.auth.repositories import ProfileRepository
from founderhub.auth.schemas import AuthStatus
from founderhub.auth.simple_auth import ROLE_SUPERADMIN, get_session_manager
from founderhub.cloud.exchange import utcnow
from founderhub.cloud.repositories import CredentialStore
from founderhub.cloud.schemas import CloudProvider, CredentialSummary
from founderhub.config import get_settings
from founderhub.core.dependencies import get_profile_repository, get_session_data

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["authentication"])

# Templates setup
templates_dir = Path(__file__).parent.parent / "templates"
templates = Jinja2Templates(directory=str(templates_dir))


@router.get("/login", response_class=HTMLResponse)
async def login_page(
    request: Request,
    error: str = Query(None),
    session_data: dict | None = Depends(get_session_data),
) -> HTMLResponse:
    """Display login page or redirect if already authenticated.

    Args:
        request: FastAPI request
        error: Optional error message to display
        session_data: Session data (injected via DI)

    Returns:
        Login page HTML or redirect to dashboard
    """
    if session_data:
        return RedirectResponse(url="/auth/dashboard", status_code=status.HTTP_303_SEE_OTHER)

    return templates.TemplateResponse(request, "login.html", {"error": error})


@router.post("/login")
async def login_submit(
    username: str = Form(...),
    password: str = Form(...),
    profiles: ProfileRepository = Depends(get_profile_repository),
) -> RedirectResponse:
    """Process login form submission.

    Args:
        username: Form username
        password: Form password
        profiles: Profile repository (injected via DI)

    Returns:
        Redirect to dashboard on success, login page on failure
    """
    session_manager = get_session_manager()

    if not session_manager.verify_credentials(username, password):
        logger.warning("Failed sign-in attempt for user: %s", username)
        return RedirectResponse(
            url="/auth/login?error=Invalid username or password",
            status_code=status.HTTP_303_SEE_OTHER,
        )

    role = session_manager.role_for(username)
    await profiles.ensure_profile(username, role)

    token = session_manager.create_session_token(username, role)
    response = RedirectResponse(url="/auth/dashboard", status_code=status.HTTP_303_SEE_OTHER)
    response.set_cookie(
        key="session",
        value=token,
        httponly=True,
        secure=get_settings().is_production,
        samesite="lax",
        max_age=session_manager.SESSION_MAX_AGE,
    )
    return response


@router.get("/dashboard", response_class=HTMLResponse)
async def dashboard_page(
    request: Request,
    session_data: dict | None = Depends(get_session_data),
) -> HTMLResponse:
    """Display dashboard page.

    Args:
        request: FastAPI request
        session_data: Session data (injected via DI)

    Returns:
        Dashboard page HTML or redirect to login
    """
    if not session_data:
        return RedirectResponse(url="/auth/login", status_code=status.HTTP_303_SEE_OTHER)

    user_id = session_data.get("user_id") or session_data.get("username")

    credential = await CredentialStore(user_id).get(CloudProvider.GOOGLE)
    google_credential = (
        CredentialSummary.from_credential(credential, utcnow()) if credential else None
    )

    return templates.TemplateResponse(
        request,
        "dashboard.html",
        {
            "session": session_data,
            "is_admin": session_data.get("role") == ROLE_SUPERADMIN,
            "google_credential": google_credential,
        },
    )


@router.get("/status", response_model=AuthStatus)
async def auth_status(
    session_data: dict | None = Depends(get_session_data),
) -> AuthStatus:
    """Check current authentication status.

    Args:
        session_data: Session data (injected via DI)

    Returns:
        AuthStatus with the signed-in user, if any
    """
    if not session_data:
        return AuthStatus(authenticated=False)

    return AuthStatus(
        authenticated=True,
        username=session_data.get("username"),
        role=session_data.get("role"),
    )


@router.get("/logout")
async def logout() -> RedirectResponse:
    """Sign out by clearing the session cookie.

    Provider credentials stay stored; disconnect them from the dashboard.

    Returns:
        Redirect to login page
    """
    response = RedirectResponse(url="/auth/login", status_code=status.HTTP_303_SEE_OTHER)
    response.delete_cookie(key="session")
    return response
