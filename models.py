"""User store models.

Pydantic models for users, profiles and the signup/login payloads.  No
business logic lives here -- only structure and field validation.
"""
from __future__ import annotations

import re
import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, Field, field_validator, model_validator

MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_LENGTH = 128
USERNAME_PATTERN = re.compile(r"^[a-zA-Z][a-zA-Z0-9_.-]{2,63}$")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    # hex uuids never contain the session payload delimiter
    return uuid.uuid4().hex


# ---------------------------------------------------------------------------
# User models
# ---------------------------------------------------------------------------

class SignupRequest(BaseModel):
    """Payload for registering a new user."""

    email: str = Field(..., min_length=3, max_length=254)
    username: str = Field(..., min_length=3, max_length=64)
    password: str = Field(
        ..., min_length=MIN_PASSWORD_LENGTH, max_length=MAX_PASSWORD_LENGTH
    )
    confirm_password: str

    @field_validator("email")
    @classmethod
    def email_format(cls, v: str) -> str:
        v = v.strip()
        local, sep, domain = v.partition("@")
        if not sep or not local or "." not in domain:
            raise ValueError("Email address is not valid")
        return v.lower()

    @field_validator("username")
    @classmethod
    def username_format(cls, v: str) -> str:
        v = v.strip()
        if not USERNAME_PATTERN.match(v):
            raise ValueError(
                "Username must start with a letter and contain only "
                "letters, digits, underscores, dots, or hyphens"
            )
        return v

    @model_validator(mode="after")
    def passwords_match(self) -> "SignupRequest":
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class Profile(BaseModel):
    """Public profile created alongside every user."""

    id: str = Field(default_factory=_new_id)
    user_id: str
    name: str = ""
    bio: str = ""
    avatar_url: str = ""
    followers: int = 0
    following: int = 0


class ProfileUpdate(BaseModel):
    """Payload for editing a profile. Only supplied fields are changed."""

    name: str | None = Field(None, max_length=128)
    bio: str | None = Field(None, max_length=2000)
    avatar_url: str | None = Field(None, max_length=2048)


class User(BaseModel):
    """Full user record as stored."""

    id: str = Field(default_factory=_new_id)
    username: str
    email: str
    password_hash: str
    created_at: datetime = Field(default_factory=_utcnow)


class UserPublic(BaseModel):
    """User record without sensitive fields, for API responses."""

    id: str
    username: str
    email: str
    created_at: datetime


# ---------------------------------------------------------------------------
# Auth request models
# ---------------------------------------------------------------------------

class LoginRequest(BaseModel):
    """Credentials for logging in. ``identifier`` is a username or email."""

    identifier: str
    password: str

    @field_validator("identifier")
    @classmethod
    def strip_identifier(cls, v: str) -> str:
        return v.strip()
