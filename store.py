"""In-memory user store.

Stands in for the persistence layer the session core talks to: it looks
users up by identifier (username or email) and by id, and checks
passwords against the stored hash.  Each user gets an empty profile on
registration.
"""
from __future__ import annotations

import threading

from auth import DEFAULT_HASH_ITERATIONS, hash_password, verify_password
from models import Profile, ProfileUpdate, SignupRequest, User, _new_id, _utcnow


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class UserNotFoundError(Exception):
    """Raised when a user lookup fails."""

    def __init__(self, identifier: str) -> None:
        self.identifier = identifier
        super().__init__(f"User not found: {identifier}")


class DuplicateUserError(Exception):
    """Raised when a username or email is already taken."""

    def __init__(self, field: str, value: str) -> None:
        self.field = field
        self.value = value
        super().__init__(f"{field.capitalize()} already taken: {value}")


class AuthenticationError(Exception):
    """Raised when login credentials are invalid."""

    def __init__(self, reason: str = "Invalid email or password") -> None:
        self.reason = reason
        super().__init__(reason)


# ---------------------------------------------------------------------------
# User store
# ---------------------------------------------------------------------------

class UserStore:
    """In-memory store for users and their profiles."""

    def __init__(self, hash_iterations: int = DEFAULT_HASH_ITERATIONS) -> None:
        self.hash_iterations = hash_iterations
        self._users: dict[str, User] = {}
        self._profiles: dict[str, Profile] = {}  # user_id -> profile
        self._by_username: dict[str, str] = {}   # username -> user_id
        self._by_email: dict[str, str] = {}      # email -> user_id
        self._lock = threading.Lock()
        self._dummy_hash: str | None = None

    # -- Registration -------------------------------------------------------

    def register(self, payload: SignupRequest) -> User:
        """Register a new user and create their profile."""
        # hash outside the lock; it is the slow part
        pw_hash = hash_password(payload.password, self.hash_iterations)

        with self._lock:
            if payload.username in self._by_username:
                raise DuplicateUserError("username", payload.username)
            if payload.email in self._by_email:
                raise DuplicateUserError("email", payload.email)

            user = User(
                id=_new_id(),
                username=payload.username,
                email=payload.email,
                password_hash=pw_hash,
                created_at=_utcnow(),
            )
            self._users[user.id] = user
            self._by_username[user.username] = user.id
            self._by_email[user.email] = user.id
            self._profiles[user.id] = Profile(user_id=user.id)
        return user

    # -- Authentication -----------------------------------------------------

    def authenticate(self, identifier: str, password: str) -> User:
        """Return the user whose credentials match.

        Unknown identifier and wrong password raise the same error.
        """
        try:
            user = self.find_by_identifier(identifier)
        except UserNotFoundError:
            # burn the same hashing time as a real check
            verify_password(self._unknown_user_hash(), password)
            raise AuthenticationError() from None

        if not verify_password(user.password_hash, password):
            raise AuthenticationError()
        return user

    def _unknown_user_hash(self) -> str:
        if self._dummy_hash is None:
            self._dummy_hash = hash_password("", self.hash_iterations)
        return self._dummy_hash

    # -- Lookups ------------------------------------------------------------

    def get(self, user_id: str) -> User:
        """Retrieve a user by id."""
        try:
            return self._users[user_id]
        except KeyError:
            raise UserNotFoundError(user_id) from None

    def find_by_identifier(self, identifier: str) -> User:
        """Retrieve a user by email or username."""
        identifier = (identifier or "").strip()
        user_id = self._by_email.get(identifier.lower())
        if user_id is None:
            user_id = self._by_username.get(identifier)
        if user_id is None:
            raise UserNotFoundError(identifier)
        return self._users[user_id]

    def exists(self, user_id: str) -> bool:
        return user_id in self._users

    # -- Profiles -----------------------------------------------------------

    def get_profile(self, user_id: str) -> Profile:
        try:
            return self._profiles[user_id]
        except KeyError:
            raise UserNotFoundError(user_id) from None

    def update_profile(self, user_id: str, payload: ProfileUpdate) -> Profile:
        """Update a profile. Only supplied fields are changed."""
        with self._lock:
            existing = self.get_profile(user_id)
            update_data = payload.model_dump(exclude_unset=True, exclude_none=True)
            if not update_data:
                return existing
            updated = existing.model_copy(update=update_data)
            self._profiles[user_id] = updated
        return updated

    # -- Removal ------------------------------------------------------------

    def delete(self, user_id: str) -> User:
        """Delete a user (and their profile) and return the deleted record."""
        with self._lock:
            user = self.get(user_id)
            del self._users[user_id]
            del self._by_username[user.username]
            del self._by_email[user.email]
            self._profiles.pop(user_id, None)
        return user

    def count(self) -> int:
        return len(self._users)

    def clear(self) -> None:
        """Remove all users (useful for testing)."""
        with self._lock:
            self._users.clear()
            self._profiles.clear()
            self._by_username.clear()
            self._by_email.clear()
