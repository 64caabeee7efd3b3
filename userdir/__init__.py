"""User account directory service."""

from __future__ import annotations

from typing import Any

from .database import Database, resolve_database_path
from .directory import UserDirectory
from .errors import (
    CredentialHashingError,
    DuplicateUsernameError,
    InvalidInputError,
    StoreUnavailableError,
    UserDirectoryError,
    UserNotFoundError,
)
from .models import Confirmation, UserRecord, UserSummary
from .passwords import PasswordHasher


def create_app(*args: Any, **kwargs: Any):
    """Factory function that returns the HTTP application."""

    from .api import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = [
    "Confirmation",
    "CredentialHashingError",
    "Database",
    "DuplicateUsernameError",
    "InvalidInputError",
    "PasswordHasher",
    "StoreUnavailableError",
    "UserDirectory",
    "UserDirectoryError",
    "UserNotFoundError",
    "UserRecord",
    "UserSummary",
    "create_app",
    "resolve_database_path",
]
