"""SQLite-backed persistence for user records."""
from __future__ import annotations

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, List, Optional

from .errors import ConstraintViolation, StoreUnavailableError, UniqueConstraintError
from .models import UserRecord

logger = logging.getLogger("userdir.database")


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def resolve_database_path(env_value: Optional[str]) -> Path:
    """Resolve the on-disk path for the user database."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    base_dir = Path(__file__).resolve().parent.parent / "data"
    return (base_dir / "userdir.sqlite3").resolve(strict=False)


def _current_timestamp() -> datetime:
    return datetime.now(timezone.utc)


def _serialize_datetime(value: datetime) -> str:
    return value.isoformat()


def _parse_datetime(value: str) -> datetime:
    return datetime.fromisoformat(value)


_SQLITE_MIN_INTEGER = -(2**63)
_SQLITE_MAX_INTEGER = 2**63 - 1


def _storable_id(user_id: int) -> bool:
    return _SQLITE_MIN_INTEGER <= user_id <= _SQLITE_MAX_INTEGER


def _constraint_error(exc: sqlite3.IntegrityError) -> ConstraintViolation:
    message = str(exc)
    if message.startswith("UNIQUE constraint failed"):
        column = message.rsplit(".", 1)[-1].strip()
        return UniqueConstraintError(message, field=column)
    return ConstraintViolation(message)


class Database:
    """User store over a single SQLite connection owned by this object.

    Call :meth:`open` and :meth:`initialize` on startup and :meth:`close` on
    shutdown. Statements are serialised with a lock because callers reach the
    store from worker threads.
    """

    def __init__(self, path: Path) -> None:
        _ensure_directory(path)
        self._path = path
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def open(self) -> None:
        with self._lock:
            if self._conn is not None:
                return
            try:
                conn = sqlite3.connect(self._path, check_same_thread=False)
            except sqlite3.Error as exc:
                raise StoreUnavailableError(f"Could not open user database at {self._path}") from exc
            conn.row_factory = sqlite3.Row
            self._conn = conn
        logger.info("Opened user database at %s", self._path)

    def close(self) -> None:
        with self._lock:
            conn, self._conn = self._conn, None
        if conn is not None:
            conn.close()
            logger.info("Closed user database at %s", self._path)

    def __enter__(self) -> "Database":
        self.open()
        self.initialize()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def initialize(self) -> None:
        """Create the users table if it does not already exist."""

        with self._transaction() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    username TEXT NOT NULL UNIQUE CHECK (length(username) > 0),
                    credential_hash TEXT NOT NULL CHECK (length(credential_hash) > 0),
                    roles TEXT NOT NULL,
                    active INTEGER NOT NULL DEFAULT 1 CHECK (active IN (0, 1)),
                    created_at TEXT NOT NULL
                );
                """
            )

    # ------------------------------------------------------------------
    # UserStore
    # ------------------------------------------------------------------
    def find_all(self) -> List[UserRecord]:
        with self._transaction() as conn:
            rows = conn.execute("SELECT * FROM users ORDER BY id").fetchall()
        return [self._row_to_record(row) for row in rows]

    def find_by_username(self, username: str) -> Optional[UserRecord]:
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM users WHERE username = ?", (username,)).fetchone()
        if row is None:
            return None
        return self._row_to_record(row)

    def find_by_id(self, user_id: int) -> Optional[UserRecord]:
        if not _storable_id(user_id):
            return None
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_record(row)

    def insert(self, record: UserRecord) -> UserRecord:
        if record.id is not None:
            raise ValueError("Record has already been stored")

        created_at = _current_timestamp()
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                INSERT INTO users (username, credential_hash, roles, active, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    record.username,
                    record.credential_hash,
                    json.dumps(list(record.roles)),
                    int(bool(record.active)),
                    _serialize_datetime(created_at),
                ),
            )
            user_id = cursor.lastrowid

        return replace(record, id=user_id, created_at=created_at)

    def save(self, record: UserRecord) -> Optional[UserRecord]:
        if record.id is None:
            raise ValueError("Record has not been stored yet")
        if not _storable_id(record.id):
            return None

        with self._transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE users
                   SET username = ?, credential_hash = ?, roles = ?, active = ?
                 WHERE id = ?
                """,
                (
                    record.username,
                    record.credential_hash,
                    json.dumps(list(record.roles)),
                    int(bool(record.active)),
                    record.id,
                ),
            )
            if cursor.rowcount == 0:
                return None
        return record

    def delete_by_id(self, user_id: int) -> bool:
        if not _storable_id(user_id):
            return False
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM users WHERE id = ?", (user_id,))
            return cursor.rowcount > 0

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            conn = self._conn
            if conn is None:
                raise StoreUnavailableError("User database is not open")
            try:
                with conn:
                    yield conn
            except sqlite3.IntegrityError as exc:
                raise _constraint_error(exc) from exc
            except (sqlite3.Error, OverflowError) as exc:
                logger.error("User database error: %s", exc)
                raise StoreUnavailableError("User database is unavailable") from exc

    def _row_to_record(self, row: sqlite3.Row) -> UserRecord:
        try:
            roles = json.loads(row["roles"])
            if not isinstance(roles, list):
                raise ValueError("roles column must hold a JSON array")
            return UserRecord(
                id=int(row["id"]),
                username=str(row["username"]),
                credential_hash=str(row["credential_hash"]),
                roles=[str(role) for role in roles],
                active=bool(row["active"]),
                created_at=_parse_datetime(str(row["created_at"])),
            )
        except (TypeError, ValueError) as exc:
            # json.JSONDecodeError is a ValueError.
            logger.error("Corrupt user row %s: %s", row["id"], exc)
            raise StoreUnavailableError("User database holds an unreadable record") from exc


__all__ = ["Database", "resolve_database_path"]
