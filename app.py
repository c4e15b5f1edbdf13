"""Application factory and entry point.

Run with:
    uvicorn app:create_app --factory --reload
or the ``session-auth`` console script, which also applies the logging
configuration before the listener starts.
"""
from __future__ import annotations

import uvicorn
from fastapi import FastAPI

from api import auth_router, pages_router
from config import Settings, get_settings
from keys import SecretKeyProvider
from logging_config import configure_logging, get_logging_config
from middleware import install as install_session_gate
from session import SessionManager
from store import UserStore


def create_app(
    settings: Settings | None = None,
    store: UserStore | None = None,
    sessions: SessionManager | None = None,
) -> FastAPI:
    """Build and return the FastAPI application.

    The signing key is resolved here, before the app can serve anything.
    Accepts an optional store and session manager for testing.
    """
    if settings is None:
        settings = get_settings()
    if store is None:
        store = UserStore(hash_iterations=settings.password_hash_iterations)
    if sessions is None:
        sessions = SessionManager(SecretKeyProvider.from_settings(settings))

    app = FastAPI(
        title="Session Auth",
        description=(
            "Web backend with stateless signed-cookie sessions. "
            "Sign up, log in, and reach pages gated on a valid session."
        ),
        version="0.1.0",
    )
    app.state.settings = settings
    app.state.store = store
    app.state.sessions = sessions

    install_session_gate(app)
    app.include_router(auth_router)
    app.include_router(pages_router)
    return app


def main() -> None:
    settings = get_settings()
    configure_logging(settings.log_level)
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_config=get_logging_config(settings.log_level),
    )


if __name__ == "__main__":
    main()
