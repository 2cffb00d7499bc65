"""Login, logout and account endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Request, Response, status

from observe_report.api.deps import get_container, require_identity, session_token
from observe_report.api.models import CredentialsRequest
from observe_report.errors import Unauthorized

if TYPE_CHECKING:
    from observe_report.containers import AppContainer

router = APIRouter(prefix="/api", tags=["auth"])


@router.post("/login")
async def login(
    credentials: CredentialsRequest, request: Request, response: Response
) -> dict[str, object]:
    """Open a session and set the session cookie."""
    container: AppContainer = get_container(request)
    store = container.session_store
    session = store.authenticate(credentials.username or "", credentials.password or "")
    identity = store.resolve(session.token)
    response.set_cookie(
        key=container.settings.session_cookie_name,
        value=session.token,
        max_age=int((session.expires_at - session.created_at).total_seconds()),
        httponly=True,
        samesite="lax",
    )
    return {"success": True, "user": identity.public_view(), "token": session.token}


@router.post("/logout")
async def logout(
    request: Request, response: Response, token: str | None = Depends(session_token)
) -> dict[str, object]:
    """Destroy the current session, if any."""
    container: AppContainer = get_container(request)
    container.session_store.destroy(token)
    response.delete_cookie(container.settings.session_cookie_name)
    return {"success": True}


@router.get("/current-user")
async def current_user(
    request: Request, token: str | None = Depends(session_token)
) -> dict[str, object]:
    """Report the signed-in identity and whether credential setup is pending."""
    container: AppContainer = get_container(request)
    try:
        identity = container.access_guard.authorize(token)
    except Unauthorized:
        return {"user": None, "requiresSetup": False}
    return {
        "user": identity.public_view(),
        "requiresSetup": identity.is_default_account,
    }


@router.post(
    "/create-account",
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_identity)],
)
async def create_account(
    credentials: CredentialsRequest, request: Request
) -> dict[str, object]:
    """Create a new identity; the caller must already be signed in."""
    container: AppContainer = get_container(request)
    created = container.session_store.create_identity(
        credentials.username, credentials.password
    )
    return {"success": True, "user": created.public_view()}
