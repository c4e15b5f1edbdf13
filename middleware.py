"""FastAPI session dependencies.

Protected endpoints depend on ``require_session`` (identity only) or
``get_current_user`` (identity that must still exist in the store).  Any
missing, malformed, forged or expired cookie raises ``LoginRequired``,
which the handler registered by ``install`` turns into a redirect to the
login page; the endpoint itself never runs.

The session manager, store and settings are read from ``app.state``.
"""
from __future__ import annotations

import logging

from fastapi import Depends, FastAPI, Request, Response
from fastapi.responses import RedirectResponse

from models import User
from session import Session
from store import UserNotFoundError

logger = logging.getLogger(__name__)


class LoginRequired(Exception):
    """Raised when a request has no usable session."""


def _read_token(request: Request) -> str | None:
    name = request.app.state.settings.session_cookie_name
    return request.cookies.get(name) or None


async def current_subject(request: Request) -> str | None:
    """Dependency: the session subject if there is a valid one, else None."""
    return request.app.state.sessions.resolve(_read_token(request))


async def require_session(request: Request) -> str:
    """Dependency: resolve the session cookie or reject the request."""
    token = _read_token(request)
    if token is None:
        logger.debug("No session cookie on %s %s", request.method, request.url.path)
        raise LoginRequired()

    subject = request.app.state.sessions.resolve(token)
    if subject is None:
        logger.debug("Invalid session on %s %s", request.method, request.url.path)
        raise LoginRequired()

    request.state.subject = subject
    return subject


async def get_current_user(
    request: Request,
    subject: str = Depends(require_session),
) -> User:
    """Dependency: the stored user behind the session.

    A token that still verifies but names a deleted user is rejected.
    """
    try:
        return request.app.state.store.get(subject)
    except UserNotFoundError:
        logger.info("Session for unknown user=%s rejected", subject)
        raise LoginRequired() from None


async def _redirect_to_login(request: Request, exc: LoginRequired) -> Response:
    return RedirectResponse(
        url=request.app.state.settings.login_path, status_code=303
    )


def install(app: FastAPI) -> None:
    """Register the redirect handler for rejected requests."""
    app.add_exception_handler(LoginRequired, _redirect_to_login)


# ---------------------------------------------------------------------------
# Cookie transport
# ---------------------------------------------------------------------------

def set_session_cookie(response: Response, session: Session, settings) -> None:
    response.set_cookie(
        key=settings.session_cookie_name,
        value=session.token,
        path="/",
        expires=session.expires,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )


def clear_session_cookie(response: Response, settings) -> None:
    """Overwrite the cookie with an empty, already-expired one."""
    response.delete_cookie(
        key=settings.session_cookie_name,
        path="/",
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )
