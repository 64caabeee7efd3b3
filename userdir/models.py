"""Domain models for user accounts."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple


@dataclass
class UserRecord:
    """A user account as persisted by a :class:`~userdir.store.UserStore`.

    Records are mutable so that an update can change the instance that was
    fetched and hand that same instance back to the store.
    """

    id: Optional[int]
    username: str
    credential_hash: str
    roles: List[str] = field(default_factory=list)
    active: bool = True
    created_at: Optional[datetime] = None

    def summary(self) -> "UserSummary":
        if self.id is None:
            raise ValueError("Cannot summarise a record that has not been stored")
        return UserSummary(
            id=self.id,
            username=self.username,
            roles=tuple(self.roles),
            active=self.active,
            created_at=self.created_at,
        )


@dataclass(frozen=True)
class UserSummary:
    """Public projection of a :class:`UserRecord` without the credential hash."""

    id: int
    username: str
    roles: Tuple[str, ...]
    active: bool
    created_at: Optional[datetime]


@dataclass(frozen=True)
class Confirmation:
    message: str
    username: str
    id: int


__all__ = ["Confirmation", "UserRecord", "UserSummary"]
