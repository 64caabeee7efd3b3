from __future__ import annotations

import sys
from pathlib import Path
from typing import Iterator

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from userdir.database import Database
from userdir.directory import UserDirectory
from userdir.passwords import PasswordHasher


@pytest.fixture()
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture()
def database(tmp_path: Path) -> Iterator[Database]:
    db = Database(tmp_path / "userdir.sqlite3")
    db.open()
    db.initialize()
    yield db
    db.close()


@pytest.fixture(scope="session")
def hasher() -> PasswordHasher:
    # Lowest bcrypt work factor keeps the suite fast.
    return PasswordHasher(rounds=4)


@pytest.fixture()
def directory(database: Database, hasher: PasswordHasher) -> UserDirectory:
    return UserDirectory(database, hasher)
