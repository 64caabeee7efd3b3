"""Exception types raised by the user directory and its stores."""
from __future__ import annotations

from typing import Optional


class UserDirectoryError(Exception):
    """Base class for failures surfaced by :class:`~userdir.directory.UserDirectory`."""

    code = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidInputError(UserDirectoryError):
    code = "invalid_input"


class DuplicateUsernameError(UserDirectoryError):
    code = "duplicate_username"

    def __init__(self, username: str) -> None:
        super().__init__("This username already exists.")
        self.username = username


class UserNotFoundError(UserDirectoryError):
    code = "not_found"

    def __init__(self, user_id: object) -> None:
        super().__init__("User not found.")
        self.user_id = user_id


class StoreUnavailableError(UserDirectoryError):
    """The backing store could not be reached or failed unexpectedly."""

    code = "store_unavailable"


class CredentialHashingError(StoreUnavailableError):
    """Password hashing failed; treated as an infrastructure fault."""


class ConstraintViolation(Exception):
    """A write was rejected by a constraint enforced by the store."""

    def __init__(self, message: str, *, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


class UniqueConstraintError(ConstraintViolation):
    """A write collided with a uniqueness constraint."""


__all__ = [
    "ConstraintViolation",
    "CredentialHashingError",
    "DuplicateUsernameError",
    "InvalidInputError",
    "StoreUnavailableError",
    "UniqueConstraintError",
    "UserDirectoryError",
    "UserNotFoundError",
]
