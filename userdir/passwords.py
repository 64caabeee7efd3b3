"""Password hashing backed by passlib's bcrypt handler."""
from __future__ import annotations

import logging

from passlib.context import CryptContext
from passlib.exc import PasswordValueError

from .errors import CredentialHashingError, InvalidInputError

logger = logging.getLogger("userdir.passwords")

DEFAULT_BCRYPT_ROUNDS = 10
MIN_BCRYPT_ROUNDS = 4
MAX_BCRYPT_ROUNDS = 31


class PasswordHasher:
    """Salted one-way password hashing with a tunable bcrypt work factor."""

    def __init__(self, *, rounds: int = DEFAULT_BCRYPT_ROUNDS) -> None:
        if not MIN_BCRYPT_ROUNDS <= rounds <= MAX_BCRYPT_ROUNDS:
            raise ValueError(
                f"bcrypt rounds must be between {MIN_BCRYPT_ROUNDS} and {MAX_BCRYPT_ROUNDS}"
            )
        self._rounds = rounds
        self._context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)

    @property
    def rounds(self) -> int:
        return self._rounds

    def hash(self, plaintext: str) -> str:
        if not plaintext:
            raise ValueError("Password must not be empty")
        try:
            return self._context.hash(plaintext)
        except PasswordValueError as exc:
            raise InvalidInputError("Password contains characters that cannot be hashed.") from exc
        except (TypeError, ValueError, RuntimeError) as exc:
            # RuntimeError covers passlib's MissingBackendError.
            logger.error("Password hashing failed: %s", type(exc).__name__)
            raise CredentialHashingError("Password hashing is unavailable") from exc

    def verify(self, plaintext: str, hashed: str) -> bool:
        if not plaintext or not hashed:
            return False
        try:
            return self._context.verify(plaintext, hashed)
        except ValueError:
            return False


__all__ = ["DEFAULT_BCRYPT_ROUNDS", "PasswordHasher"]
