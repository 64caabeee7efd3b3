"""Persistence contracts consumed by the user directory."""
from __future__ import annotations

from typing import List, Optional, Protocol

from .models import UserRecord


class UserStore(Protocol):
    """Storage interface for user records.

    Implementations must enforce uniqueness of ``username`` themselves and
    raise :class:`~userdir.errors.UniqueConstraintError` when a write collides
    with it. Any other failure to reach or use the backing store must be
    raised as :class:`~userdir.errors.StoreUnavailableError`.
    """

    def find_all(self) -> List[UserRecord]:
        ...

    def find_by_username(self, username: str) -> Optional[UserRecord]:
        ...

    def find_by_id(self, user_id: int) -> Optional[UserRecord]:
        ...

    def insert(self, record: UserRecord) -> UserRecord:
        """Persist a new record and return it with ``id`` and ``created_at`` set."""
        ...

    def save(self, record: UserRecord) -> Optional[UserRecord]:
        """Write back a previously fetched record; ``None`` if it no longer exists."""
        ...

    def delete_by_id(self, user_id: int) -> bool:
        ...


class CredentialHasher(Protocol):
    def hash(self, plaintext: str) -> str:
        ...


__all__ = ["CredentialHasher", "UserStore"]
