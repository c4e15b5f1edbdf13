"""Session tokens.

A session token is a signed value whose payload is
``"<subject>:<expires_at epoch seconds>"``.  Nothing is stored server
side: a token is good for as long as its signature verifies under the
current key and its expiry has not passed.
"""
from __future__ import annotations

import logging
import math
import re
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

from auth import InvalidToken, MalformedToken, TokenExpired, sign_value, verify_value
from keys import SecretKeyProvider

logger = logging.getLogger(__name__)

DELIMITER = ":"
_EPOCH_RE = re.compile(r"-?[0-9]+")


class InvalidSubject(ValueError):
    """Raised when a subject cannot be encoded unambiguously."""

    def __init__(self, subject: str, reason: str) -> None:
        self.subject = subject
        super().__init__(f"Invalid session subject {subject!r}: {reason}")


@dataclass(frozen=True)
class Session:
    token: str
    subject: str
    expires_at: int

    @property
    def expires(self) -> datetime:
        return datetime.fromtimestamp(self.expires_at, timezone.utc)


def _ttl_seconds(ttl: int | float | timedelta) -> int:
    # partial seconds round up so any positive ttl yields a usable token
    if isinstance(ttl, timedelta):
        ttl = ttl.total_seconds()
    return math.ceil(ttl)


class SessionManager:
    """Issues and resolves session tokens.

    ``clock`` returns the current time as epoch seconds; it defaults to
    ``time.time`` and is swapped for a fake one in tests.
    """

    def __init__(
        self,
        keys: SecretKeyProvider,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._keys = keys
        self._clock = clock

    def now(self) -> int:
        return int(self._clock())

    # -- Issuing ------------------------------------------------------------

    def issue_session(self, subject: str, ttl: int | float | timedelta) -> Session:
        if not subject:
            raise InvalidSubject(subject, "must not be empty")
        if DELIMITER in subject:
            raise InvalidSubject(subject, f"must not contain {DELIMITER!r}")

        seconds = _ttl_seconds(ttl)
        if seconds <= 0:
            raise ValueError("Session ttl must be positive")

        expires_at = int(self._clock() + seconds)
        try:
            payload = f"{subject}{DELIMITER}{expires_at}".encode("utf-8")
        except UnicodeEncodeError:
            raise InvalidSubject(subject, "must be valid UTF-8") from None
        token = sign_value(self._keys.current(), payload)
        logger.info(
            "Issued session for subject=%s exp=%d tok=%s…",
            subject, expires_at, token[:8],
        )
        return Session(token=token, subject=subject, expires_at=expires_at)

    def issue(self, subject: str, ttl: int | float | timedelta) -> str:
        """Create a token for ``subject`` valid for ``ttl`` from now."""
        return self.issue_session(subject, ttl).token

    # -- Resolving ----------------------------------------------------------

    def parse(self, token: str) -> Session:
        """Verify ``token`` and return the session it describes.

        Raises an ``InvalidToken`` subclass naming the reason.  Only the
        first delimiter splits subject from expiry.
        """
        raw = verify_value(self._keys.current(), token)
        try:
            value = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedToken("Malformed token: payload is not UTF-8") from e

        subject, sep, expiry = value.partition(DELIMITER)
        if not sep or not subject:
            raise MalformedToken("Malformed token: missing subject")
        if not _EPOCH_RE.fullmatch(expiry):
            raise MalformedToken("Malformed token: expiry is not an integer")

        expires_at = int(expiry)
        now = self.now()
        if now > expires_at:
            raise TokenExpired(expires_at, now)
        return Session(token=token, subject=subject, expires_at=expires_at)

    def resolve(self, token: str | None) -> str | None:
        """Return the token's subject, or ``None`` if the token is not valid.

        Every failure looks the same to the caller.
        """
        if not token:
            return None
        try:
            return self.parse(token).subject
        except InvalidToken as e:
            logger.debug("Rejected session token: %s", e)
            return None
