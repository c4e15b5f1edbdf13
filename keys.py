"""Secret key provider.

Holds the symmetric key used to sign session tokens.  The key is set once
at startup, either from a configured base64url string or from the OS
random source, and never changes afterwards.
"""
from __future__ import annotations

import logging
import secrets

from auth import b64url_decode

logger = logging.getLogger(__name__)

MIN_KEY_BYTES = 16
GENERATED_KEY_BYTES = 32


class NotInitialized(RuntimeError):
    """Raised when the key is read before ``initialize`` ran."""

    def __init__(self) -> None:
        super().__init__("Secret key used before initialization")


class KeyAlreadyInitialized(RuntimeError):
    """Raised on a second call to ``initialize``."""

    def __init__(self) -> None:
        super().__init__("Secret key is already initialized")


class SecretKeyProvider:
    """Write-once holder of the signing key."""

    def __init__(self) -> None:
        self._key: bytes | None = None
        self._ephemeral = False

    @classmethod
    def from_settings(cls, settings) -> "SecretKeyProvider":
        provider = cls()
        provider.initialize(settings.session_key_base64)
        return provider

    @classmethod
    def from_bytes(cls, key: bytes) -> "SecretKeyProvider":
        """Build a provider around an explicit key (tools and tests)."""
        if len(key) < MIN_KEY_BYTES:
            raise ValueError(f"Secret key must be at least {MIN_KEY_BYTES} bytes")
        provider = cls()
        provider._key = bytes(key)
        return provider

    @property
    def initialized(self) -> bool:
        return self._key is not None

    @property
    def ephemeral(self) -> bool:
        """True when the key was generated at random for this process."""
        return self._ephemeral

    def initialize(self, source: str | None) -> None:
        """Adopt the configured key, or fall back to a random one.

        An invalid configured key (bad encoding or shorter than
        ``MIN_KEY_BYTES``) is logged and replaced; startup never fails
        because of it.
        """
        if self._key is not None:
            raise KeyAlreadyInitialized()

        if source:
            try:
                key = b64url_decode(source.strip().rstrip("="))
            except ValueError:
                key = b""
            if len(key) >= MIN_KEY_BYTES:
                self._key = key
                logger.info("Using configured session key")
                return
            logger.warning(
                "SESSION_KEY_BASE64 provided but invalid; falling back to random key"
            )

        self._key = secrets.token_bytes(GENERATED_KEY_BYTES)
        self._ephemeral = True
        logger.warning(
            "Using ephemeral session key; sessions will not survive a restart. "
            "Set SESSION_KEY_BASE64 to persist sessions"
        )

    def current(self) -> bytes:
        if self._key is None:
            raise NotInitialized()
        return self._key
