"""Shared fixtures for session and auth tests."""
from __future__ import annotations

import time

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app import create_app
from config import Settings
from keys import SecretKeyProvider
from models import SignupRequest
from session import SessionManager
from store import UserStore


TEST_KEY = b"0123456789abcdef0123456789abcdef"
OTHER_KEY = b"fedcba9876543210fedcba9876543210"
VALID_PASSWORD = "secureP@ss1"
# keeps PBKDF2 fast in tests
TEST_ITERATIONS = 1_000


class FakeClock:
    """Controllable stand-in for ``time.time``."""

    def __init__(self, start: float | None = None) -> None:
        # whole seconds, near real time so cookie jars keep our cookies
        self.now = float(int(time.time()) if start is None else start)

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def keys() -> SecretKeyProvider:
    return SecretKeyProvider.from_bytes(TEST_KEY)


@pytest.fixture
def sessions(keys: SecretKeyProvider, clock: FakeClock) -> SessionManager:
    return SessionManager(keys, clock=clock)


@pytest.fixture
def store() -> UserStore:
    return UserStore(hash_iterations=TEST_ITERATIONS)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        session_key_base64=None,
        session_ttl_seconds=24 * 3600,
        session_cookie_name="session",
        cookie_secure=False,
        login_path="/login",
        password_hash_iterations=TEST_ITERATIONS,
    )


@pytest.fixture
def app(settings: Settings, store: UserStore, sessions: SessionManager) -> FastAPI:
    return create_app(settings=settings, store=store, sessions=sessions)


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app, follow_redirects=False)


@pytest.fixture
def signup_payload() -> SignupRequest:
    """A minimal valid signup payload."""
    return SignupRequest(
        email="alice@example.com",
        username="alice",
        password=VALID_PASSWORD,
        confirm_password=VALID_PASSWORD,
    )
