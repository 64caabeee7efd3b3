from __future__ import annotations

from pathlib import Path

import pytest

import main
from main import _parse_args


def test_default_command_invokes_serve() -> None:
    args = _parse_args([])
    assert args.command == "serve"


def test_default_command_accepts_options_without_subcommand() -> None:
    args = _parse_args(["--host", "0.0.0.0", "--port", "8080"])
    assert args.command == "serve"
    assert args.host == "0.0.0.0"
    assert args.port == 8080


def test_add_user_collects_repeated_roles() -> None:
    args = _parse_args(["add-user", "alice", "--role", "editor", "--role", "viewer"])
    assert args.command == "add-user"
    assert args.username == "alice"
    assert args.roles == ["editor", "viewer"]


@pytest.fixture()
def cli_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    db_path = tmp_path / "cli.sqlite3"
    monkeypatch.setenv("USERDIR_CONFIG", str(tmp_path / "missing.yaml"))
    monkeypatch.setenv("USERDIR_DB_PATH", str(db_path))
    monkeypatch.setenv("USERDIR_BCRYPT_ROUNDS", "4")
    return db_path


def test_add_and_list_users(cli_env: Path, monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    monkeypatch.setattr(main, "getpass", lambda prompt: "correct-horse")

    assert main.main(["list-users"]) == 0
    assert "No users found." in capsys.readouterr().out

    assert main.main(["add-user", "alice", "--role", "editor"]) == 0
    assert "New user alice created." in capsys.readouterr().out

    assert main.main(["add-user", "alice", "--role", "viewer"]) == 1
    assert "already exists" in capsys.readouterr().err

    assert main.main(["list-users"]) == 0
    output = capsys.readouterr().out
    assert "alice" in output
    assert "editor" in output
    assert "active" in output


def test_add_user_gives_up_after_mismatched_passwords(
    cli_env: Path, monkeypatch: pytest.MonkeyPatch, capsys
) -> None:
    answers = iter(["first-password", "second-password"] * 3)
    monkeypatch.setattr(main, "getpass", lambda prompt: next(answers))

    assert main.main(["add-user", "alice", "--role", "editor"]) == 1
    assert "Failed to set password" in capsys.readouterr().err


def test_init_db_creates_database(cli_env: Path) -> None:
    assert main.main(["init-db"]) == 0
    assert cli_env.exists()
