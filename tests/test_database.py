from __future__ import annotations

import sqlite3
from contextlib import closing
from dataclasses import replace
from pathlib import Path

import pytest

from userdir.database import Database, resolve_database_path
from userdir.errors import StoreUnavailableError, UniqueConstraintError
from userdir.models import UserRecord


def _record(username: str, roles=None) -> UserRecord:
    return UserRecord(
        id=None,
        username=username,
        credential_hash="$2b$04$notarealhashbutlongenough",
        roles=list(roles or ["viewer"]),
    )


def test_insert_assigns_id_and_timestamp(database: Database) -> None:
    created = database.insert(_record("alice", ["editor", "viewer"]))

    assert created.id is not None
    assert created.created_at is not None
    fetched = database.find_by_id(created.id)
    assert fetched == created
    assert fetched.roles == ["editor", "viewer"]
    assert fetched.active is True


def test_username_uniqueness_is_enforced_by_the_store(database: Database) -> None:
    database.insert(_record("alice"))

    with pytest.raises(UniqueConstraintError) as excinfo:
        database.insert(_record("alice"))

    assert excinfo.value.field == "username"
    assert len(database.find_all()) == 1


def test_username_lookup_is_case_sensitive(database: Database) -> None:
    database.insert(_record("alice"))

    assert database.find_by_username("alice") is not None
    assert database.find_by_username("Alice") is None


def test_save_writes_back_the_record(database: Database) -> None:
    record = database.insert(_record("alice"))
    record.username = "alice2"
    record.active = False

    assert database.save(record) is record
    refreshed = database.find_by_id(record.id)
    assert refreshed.username == "alice2"
    assert refreshed.active is False


def test_save_returns_none_when_row_is_gone(database: Database) -> None:
    record = database.insert(_record("alice"))
    assert database.delete_by_id(record.id) is True

    assert database.save(record) is None
    assert database.delete_by_id(record.id) is False


def test_save_rejects_taken_username(database: Database) -> None:
    database.insert(_record("alice"))
    bob = database.insert(_record("bob"))
    bob.username = "alice"

    with pytest.raises(UniqueConstraintError):
        database.save(bob)


def test_find_all_is_ordered_by_id(database: Database) -> None:
    for name in ("carol", "alice", "bob"):
        database.insert(_record(name))

    assert [record.username for record in database.find_all()] == ["carol", "alice", "bob"]


def test_closed_database_is_unavailable(tmp_path: Path) -> None:
    db = Database(tmp_path / "closed.sqlite3")

    with pytest.raises(StoreUnavailableError):
        db.find_all()


def test_records_survive_reopen(tmp_path: Path) -> None:
    path = tmp_path / "persist.sqlite3"
    with Database(path) as db:
        created = db.insert(_record("alice"))

    with Database(path) as db:
        assert db.find_by_username("alice") == created


def test_resolve_database_path_prefers_env_value(tmp_path: Path) -> None:
    target = tmp_path / "custom.sqlite3"
    assert resolve_database_path(str(target)) == target.resolve()
    assert resolve_database_path(None).name == "userdir.sqlite3"


def test_ids_beyond_sqlite_integer_range_match_nothing(database: Database) -> None:
    record = database.insert(_record("alice"))

    assert database.find_by_id(2**64) is None
    assert database.delete_by_id(2**64) is False
    assert database.save(replace(record, id=-(2**64))) is None
    assert len(database.find_all()) == 1


@pytest.mark.parametrize(
    "roles, created_at",
    [
        ("not json", "2024-01-01T00:00:00+00:00"),
        ('{"editor": true}', "2024-01-01T00:00:00+00:00"),
        ('["editor"]', "yesterday"),
    ],
)
def test_corrupt_rows_are_reported_as_unavailable(database: Database, roles: str, created_at: str) -> None:
    with closing(sqlite3.connect(database.path)) as conn, conn:
        conn.execute(
            "INSERT INTO users (username, credential_hash, roles, active, created_at) VALUES (?, ?, ?, 1, ?)",
            ("mallory", "$2b$04$hash", roles, created_at),
        )

    with pytest.raises(StoreUnavailableError):
        database.find_all()
    with pytest.raises(StoreUnavailableError):
        database.find_by_username("mallory")
