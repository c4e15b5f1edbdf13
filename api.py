"""FastAPI endpoints.

Routes
------
GET    /signup            Signup form
POST   /signup            Register a new user (JSON or form)
GET    /login             Login form
POST   /login             Log in; sets the session cookie (JSON or form)
GET    /logout            Clear the session cookie
POST   /logout            Clear the session cookie

Pages
-----
GET    /                  Reports whether the caller is logged in
GET    /dashboard         Requires a session
GET    /profile           Current user's profile (requires a session)
POST   /profile           Update the current user's profile
"""
from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from auth import HashingFailure
from config import Settings
from middleware import (
    clear_session_cookie,
    current_subject,
    get_current_user,
    set_session_cookie,
)
from models import LoginRequest, Profile, ProfileUpdate, SignupRequest, User, UserPublic
from session import SessionManager
from store import AuthenticationError, DuplicateUserError, UserStore

logger = logging.getLogger(__name__)

DASHBOARD_PATH = "/dashboard"


# ---------------------------------------------------------------------------
# Shared dependencies
# ---------------------------------------------------------------------------

def get_store(request: Request) -> UserStore:
    return request.app.state.store


def get_sessions(request: Request) -> SessionManager:
    return request.app.state.sessions


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def _to_public(user: User) -> UserPublic:
    return UserPublic(
        id=user.id,
        username=user.username,
        email=user.email,
        created_at=user.created_at,
    )


async def _read_body(request: Request) -> dict[str, Any]:
    """Read a JSON object or a url-encoded/multipart form into a dict."""
    content_type = request.headers.get("content-type", "")
    if "application/json" in content_type:
        try:
            data = await request.json()
        except ValueError:
            raise HTTPException(status_code=400, detail="Error parsing JSON")
        if not isinstance(data, dict):
            raise HTTPException(status_code=400, detail="Error parsing JSON")
        return data
    form = await request.form()
    return {k: v for k, v in form.items() if isinstance(v, str)}


def _field(data: dict[str, Any], name: str) -> str:
    value = data.get(name)
    return value if isinstance(value, str) else ""


_SIGNUP_FORM = """<!doctype html>
<title>Sign up</title>
<form method="post" action="/signup">
  <input name="email" type="email" placeholder="Email">
  <input name="username" placeholder="Username">
  <input name="password" type="password" placeholder="Password">
  <input name="confirm_password" type="password" placeholder="Confirm password">
  <button type="submit">Sign up</button>
</form>
"""

_LOGIN_FORM = """<!doctype html>
<title>Log in</title>
<form method="post" action="/login">
  <input name="identifier" placeholder="Email or username">
  <input name="password" type="password" placeholder="Password">
  <button type="submit">Log in</button>
</form>
"""


# ---------------------------------------------------------------------------
# Auth router
# ---------------------------------------------------------------------------

auth_router = APIRouter(tags=["auth"])


@auth_router.get("/signup", response_class=HTMLResponse)
def signup_form() -> str:
    return _SIGNUP_FORM


@auth_router.post("/signup", response_model=UserPublic, status_code=201)
async def signup(
    request: Request,
    store: UserStore = Depends(get_store),
) -> UserPublic:
    """Register a new user account."""
    data = await _read_body(request)
    if not all(_field(data, f) for f in ("email", "username", "password")):
        raise HTTPException(status_code=400, detail="All fields are required")
    if _field(data, "password") != _field(data, "confirm_password"):
        raise HTTPException(status_code=400, detail="Passwords do not match")

    try:
        payload = SignupRequest.model_validate(data)
    except ValidationError as e:
        raise HTTPException(
            status_code=422, detail=[err["msg"] for err in e.errors()]
        )

    try:
        user = await run_in_threadpool(store.register, payload)
    except DuplicateUserError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except HashingFailure:
        logger.exception("Password hashing failed during signup")
        raise HTTPException(status_code=500, detail="Internal server error")

    logger.info("User created: id=%s username=%s", user.id, user.username)
    return _to_public(user)


@auth_router.get("/login", response_class=HTMLResponse)
def login_form() -> str:
    return _LOGIN_FORM


@auth_router.post("/login")
async def login(
    request: Request,
    store: UserStore = Depends(get_store),
    sessions: SessionManager = Depends(get_sessions),
    settings: Settings = Depends(get_app_settings),
) -> RedirectResponse:
    """Check credentials, set the session cookie and go to the dashboard."""
    data = await _read_body(request)
    creds = LoginRequest(
        identifier=_field(data, "identifier"),
        password=_field(data, "password"),
    )
    logger.info(
        "Login attempt content_type=%r identifier=%r",
        request.headers.get("content-type", ""), creds.identifier,
    )
    if not creds.identifier or not creds.password:
        raise HTTPException(status_code=400, detail="All fields are required")

    try:
        user = await run_in_threadpool(
            store.authenticate, creds.identifier, creds.password
        )
    except AuthenticationError as e:
        raise HTTPException(status_code=401, detail=e.reason)

    session = sessions.issue_session(user.id, settings.session_ttl_seconds)
    response = RedirectResponse(url=DASHBOARD_PATH, status_code=303)
    set_session_cookie(response, session, settings)
    return response


@auth_router.api_route("/logout", methods=["GET", "POST"])
def logout(
    request: Request,
    settings: Settings = Depends(get_app_settings),
) -> RedirectResponse:
    """Drop the client's copy of the session.

    The token itself stays valid until it expires.
    """
    response = RedirectResponse(url=settings.login_path, status_code=303)
    clear_session_cookie(response, settings)
    logger.info("Logout from %s", request.client.host if request.client else "-")
    return response


# ---------------------------------------------------------------------------
# Page router
# ---------------------------------------------------------------------------

pages_router = APIRouter(tags=["pages"])


@pages_router.get("/")
def index(subject: str | None = Depends(current_subject)) -> dict:
    return {"authenticated": subject is not None, "user_id": subject}


@pages_router.get(DASHBOARD_PATH)
def dashboard(user: User = Depends(get_current_user)) -> dict:
    """Example page that requires a session."""
    return {
        "message": "You are authenticated",
        "user_id": user.id,
        "username": user.username,
    }


@pages_router.get("/profile", response_model=Profile)
def get_profile(
    user: User = Depends(get_current_user),
    store: UserStore = Depends(get_store),
) -> Profile:
    return store.get_profile(user.id)


@pages_router.post("/profile", response_model=Profile)
def update_profile(
    payload: ProfileUpdate,
    user: User = Depends(get_current_user),
    store: UserStore = Depends(get_store),
) -> Profile:
    """Update the current user's profile."""
    return store.update_profile(user.id, payload)
