"""Core authentication primitives.

Provides password hashing and the signed-value codec that session tokens
are built on.  The codec knows nothing about subjects or expiry; it signs
arbitrary bytes and recovers them only if the signature checks out.
"""
from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import os
import re


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class InvalidToken(ValueError):
    """Base class for every reason a token can be rejected."""


class MalformedToken(InvalidToken):
    """Token is not two canonical base64url segments, or its payload is unreadable."""


class SignatureMismatch(InvalidToken):
    """Recomputed MAC does not match the token's signature."""


class TokenExpired(InvalidToken):
    """Token verified but its expiry has passed."""

    def __init__(self, expires_at: int, now: int) -> None:
        self.expires_at = expires_at
        self.now = now
        super().__init__(f"Token expired at {expires_at} (now {now})")


class HashingFailure(Exception):
    """Raised when the entropy source or the hash algorithm fails."""


# ---------------------------------------------------------------------------
# Password hashing (PBKDF2-HMAC-SHA256)
# ---------------------------------------------------------------------------

HASH_ALGORITHM = "pbkdf2_sha256"
DEFAULT_HASH_ITERATIONS = 600_000
_SALT_BYTES = 16


def _pbkdf2(password: str, salt: bytes, iterations: int) -> bytes:
    return hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8", "surrogatepass"), salt, iterations
    )


def hash_password(password: str, iterations: int = DEFAULT_HASH_ITERATIONS) -> str:
    """Hash a plaintext password using PBKDF2-HMAC-SHA256.

    Returns a string in the format
    ``pbkdf2_sha256$iterations$salt_hex$digest_hex``.  A fresh salt is drawn
    for every call, so hashing the same password twice gives different
    strings.  Password content is never rejected here.
    """
    if iterations < 1:
        raise ValueError("Iteration count must be positive")
    try:
        salt = os.urandom(_SALT_BYTES)
        digest = _pbkdf2(password, salt, iterations)
    except (OSError, ValueError) as e:
        raise HashingFailure(f"Failed to hash password: {e}") from e
    return f"{HASH_ALGORITHM}${iterations}${salt.hex()}${digest.hex()}"


def verify_password(stored_hash: str, password: str) -> bool:
    """Check a plaintext password against a stored hash.

    The salt and iteration count come from ``stored_hash``.  Raises
    ``ValueError`` if the stored hash is not in the expected format.
    """
    parts = stored_hash.split("$")
    if len(parts) != 4 or parts[0] != HASH_ALGORITHM:
        raise ValueError("Invalid hash format")

    _, iterations_str, salt_hex, digest_hex = parts
    try:
        iterations = int(iterations_str)
        salt = bytes.fromhex(salt_hex)
        expected = bytes.fromhex(digest_hex)
    except ValueError as e:
        raise ValueError(f"Invalid hash format: {e}") from e
    if iterations < 1:
        raise ValueError("Invalid hash format: iteration count")

    computed = _pbkdf2(password, salt, iterations)
    return hmac.compare_digest(computed, expected)


# ---------------------------------------------------------------------------
# base64url helpers
# ---------------------------------------------------------------------------

_B64URL_RE = re.compile(r"[A-Za-z0-9_-]*")


def b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(s: str) -> bytes:
    """Decode unpadded base64url.

    Only the canonical encoding of a byte string is accepted: stray
    characters, padding and non-zero trailing bits raise ``ValueError``.
    """
    if not _B64URL_RE.fullmatch(s):
        raise ValueError("Invalid base64url characters")
    try:
        data = base64.urlsafe_b64decode(s + "=" * (-len(s) % 4))
    except binascii.Error as e:
        raise ValueError(f"Invalid base64url: {e}") from e
    if b64url_encode(data) != s:
        raise ValueError("Non-canonical base64url")
    return data


# ---------------------------------------------------------------------------
# Signed values
# ---------------------------------------------------------------------------

def _mac(key: bytes, payload: bytes) -> bytes:
    return hmac.new(key, payload, hashlib.sha256).digest()


def sign_value(key: bytes, payload: bytes) -> str:
    """Sign ``payload`` under ``key``.

    Token format: ``base64url(payload).base64url(hmac_sha256(key, payload))``.
    """
    return f"{b64url_encode(payload)}.{b64url_encode(_mac(key, payload))}"


def verify_value(key: bytes, token: str) -> bytes:
    """Verify a signed token and return the payload it carries.

    Raises ``MalformedToken`` or ``SignatureMismatch``.
    """
    parts = token.split(".")
    if len(parts) != 2:
        raise MalformedToken("Malformed token: expected two parts")

    payload_b64, signature_b64 = parts
    if not payload_b64 or not signature_b64:
        raise MalformedToken("Malformed token: empty segment")

    try:
        payload = b64url_decode(payload_b64)
        signature = b64url_decode(signature_b64)
    except ValueError as e:
        raise MalformedToken(f"Malformed token: {e}") from e

    if not hmac.compare_digest(_mac(key, payload), signature):
        raise SignatureMismatch("Invalid token: signature mismatch")
    return payload
