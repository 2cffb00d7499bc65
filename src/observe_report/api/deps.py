"""Request dependencies shared by the routers."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import Depends, Header, Request

from observe_report.domain.identity import Identity  # noqa: TC001

if TYPE_CHECKING:
    from observe_report.containers import AppContainer

_BEARER_PREFIX = "bearer "


def get_container(request: Request) -> AppContainer:
    """Return the container attached to the running app."""
    return request.app.state.container


def session_token(
    request: Request, authorization: str | None = Header(default=None)
) -> str | None:
    """Read the session token from a bearer header or the session cookie."""
    if authorization and authorization.lower().startswith(_BEARER_PREFIX):
        token = authorization[len(_BEARER_PREFIX) :].strip()
        return token or None
    container: AppContainer = request.app.state.container
    return request.cookies.get(container.settings.session_cookie_name)


async def require_identity(
    request: Request, token: str | None = Depends(session_token)
) -> Identity:
    """Reject the request unless it carries a valid session."""
    container: AppContainer = request.app.state.container
    return container.access_guard.authorize(token)
