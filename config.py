"""Application settings.

Values come from the environment (or a local ``.env`` file); field names
map to upper-case variable names, e.g. ``SESSION_KEY_BASE64``.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from auth import DEFAULT_HASH_ITERATIONS


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # base64url-encoded signing key; unset means an ephemeral random key
    session_key_base64: str | None = None
    session_ttl_seconds: int = Field(86400, ge=1)
    session_cookie_name: str = Field("session", min_length=1)
    cookie_secure: bool = False
    login_path: str = "/login"

    password_hash_iterations: int = Field(DEFAULT_HASH_ITERATIONS, ge=1)

    host: str = "0.0.0.0"
    port: int = Field(8080, ge=1, le=65535)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    @field_validator("session_key_base64", mode="before")
    @classmethod
    def _blank_key_is_unset(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_level(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
