"""User account management rules layered over a :class:`UserStore`."""
from __future__ import annotations

import logging
from typing import Any, Callable, List, Optional, TypeVar

import anyio

from .errors import (
    ConstraintViolation,
    DuplicateUsernameError,
    InvalidInputError,
    UniqueConstraintError,
    UserNotFoundError,
)
from .models import Confirmation, UserRecord, UserSummary
from .store import CredentialHasher, UserStore

logger = logging.getLogger("userdir.directory")

T = TypeVar("T")

_ROLES_MESSAGE = "Roles must be a non-empty list of role names."


def _require_username(value: object) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidInputError("Username is required.")
    return value.strip()


def _require_password(value: object) -> str:
    if not isinstance(value, str) or not value:
        raise InvalidInputError("Password is required.")
    return _reject_nul(value)


def _reject_nul(value: str) -> str:
    # bcrypt cannot hash NUL bytes.
    if "\x00" in value:
        raise InvalidInputError("Password must not contain NUL characters.")
    return value


def _optional_password(value: object) -> Optional[str]:
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise InvalidInputError("Password must be a string.")
    return _reject_nul(value)


def _normalize_roles(value: object) -> List[str]:
    """Return the roles as a de-duplicated list, keeping first-seen order."""

    if not isinstance(value, (list, tuple, set, frozenset)):
        raise InvalidInputError(_ROLES_MESSAGE)
    if any(not isinstance(item, str) or not item.strip() for item in value):
        raise InvalidInputError(_ROLES_MESSAGE)

    items = sorted(value) if isinstance(value, (set, frozenset)) else value
    roles: List[str] = []
    for item in items:
        role = item.strip()
        if role not in roles:
            roles.append(role)
    if not roles:
        raise InvalidInputError(_ROLES_MESSAGE)
    return roles


def _require_active(value: object) -> bool:
    # bool only: 0/1 and "true" are rejected.
    if not isinstance(value, bool):
        raise InvalidInputError("Active must be true or false.")
    return value


def _require_user_id(value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInputError("User ID must be an integer.")
    return value


class UserDirectory:
    """Create, list, update and delete user accounts.

    Every store call and every password hash runs in a worker thread, so all
    operations are coroutines. The directory keeps no state of its own and
    takes no locks: uniqueness is ultimately enforced by the store, and the
    duplicate lookups performed here only produce an earlier, friendlier
    error.
    """

    def __init__(self, store: UserStore, hasher: CredentialHasher) -> None:
        self._store = store
        self._hasher = hasher

    async def list_users(self) -> List[UserSummary]:
        records = await self._run(self._store.find_all)
        return [record.summary() for record in records]

    async def create_user(self, username: Any, password: Any, roles: Any) -> Confirmation:
        username = _require_username(username)
        password = _require_password(password)
        roles = _normalize_roles(roles)

        existing = await self._run(self._store.find_by_username, username)
        if existing is not None:
            raise DuplicateUsernameError(username)

        credential_hash = await self._run(self._hasher.hash, password)
        record = UserRecord(
            id=None,
            username=username,
            credential_hash=credential_hash,
            roles=roles,
            active=True,
        )

        try:
            created = await self._run(self._store.insert, record)
        except UniqueConstraintError as exc:
            logger.info("Username %s was claimed concurrently", username)
            raise DuplicateUsernameError(username) from exc
        except ConstraintViolation as exc:
            raise InvalidInputError("Invalid user data received.") from exc

        logger.info("Created user %s (id=%s)", created.username, created.id)
        return Confirmation(
            message=f"New user {created.username} created.",
            username=created.username,
            id=int(created.id),
        )

    async def update_user(
        self,
        user_id: Any,
        *,
        username: Any,
        roles: Any,
        active: Any,
        password: Any = None,
    ) -> Confirmation:
        """Replace the username, roles and active flag of an existing user.

        The password is optional: ``None`` or an empty string keeps the stored
        hash. The record fetched here is mutated in place and that same
        instance is written back.
        """

        user_id = _require_user_id(user_id)
        username = _require_username(username)
        roles = _normalize_roles(roles)
        active = _require_active(active)
        password = _optional_password(password)

        record = await self._run(self._store.find_by_id, user_id)
        if record is None:
            raise UserNotFoundError(user_id)

        duplicate = await self._run(self._store.find_by_username, username)
        if duplicate is not None and duplicate.id != record.id:
            raise DuplicateUsernameError(username)

        if password is not None:
            record.credential_hash = await self._run(self._hasher.hash, password)
        record.username = username
        record.roles = roles
        record.active = active

        try:
            saved = await self._run(self._store.save, record)
        except UniqueConstraintError as exc:
            logger.info("Username %s was claimed concurrently", username)
            raise DuplicateUsernameError(username) from exc
        except ConstraintViolation as exc:
            raise InvalidInputError("Invalid user data received.") from exc

        if saved is None:
            raise UserNotFoundError(user_id)

        logger.info("Updated user %s (id=%s)", saved.username, saved.id)
        return Confirmation(
            message=f"{saved.username} updated successfully",
            username=saved.username,
            id=user_id,
        )

    async def delete_user(self, user_id: Any) -> Confirmation:
        user_id = _require_user_id(user_id)

        record = await self._run(self._store.find_by_id, user_id)
        if record is None:
            raise UserNotFoundError(user_id)

        deleted = await self._run(self._store.delete_by_id, user_id)
        if not deleted:
            raise UserNotFoundError(user_id)

        logger.info("Deleted user %s (id=%s)", record.username, user_id)
        return Confirmation(
            message=f"Username {record.username} with ID {user_id} deleted",
            username=record.username,
            id=user_id,
        )

    async def _run(self, func: Callable[..., T], *args: Any) -> T:
        return await anyio.to_thread.run_sync(func, *args)


__all__ = ["UserDirectory"]
