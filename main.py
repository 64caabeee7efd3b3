"""Command-line interface for the user directory service."""

from __future__ import annotations
import argparse
import logging
import sys
from getpass import getpass
from typing import List, Sequence

import anyio

from userdir.config import Settings, load_settings
from userdir.database import Database
from userdir.directory import UserDirectory
from userdir.errors import UserDirectoryError
from userdir.passwords import PasswordHasher

logger = logging.getLogger("userdir.main")

MIN_PASSWORD_LENGTH = 8


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="User directory utilities")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    subparsers.add_parser("init-db", help="Initialise the user database")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP user directory service")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address for the API")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port for the HTTP API (default: 8000)",
    )
    serve_parser.add_argument(
        "--ssl-certfile",
        default=None,
        help="Path to the TLS certificate chain in PEM format",
    )
    serve_parser.add_argument(
        "--ssl-keyfile",
        default=None,
        help="Path to the TLS private key in PEM format",
    )

    add_parser = subparsers.add_parser("add-user", help="Create a user account")
    add_parser.add_argument("username", help="Unique username for the account")
    add_parser.add_argument(
        "--role",
        dest="roles",
        action="append",
        required=True,
        help="Role to grant; repeat for several roles",
    )

    subparsers.add_parser("list-users", help="List user accounts")

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "init-db", "add-user", "list-users"}

    if not args_list:
        args_list = ["serve"]
    else:
        first = args_list[0]
        if first in ("-h", "--help"):
            return parser.parse_args(args_list)
        if first not in known_commands:
            if any(flag in args_list for flag in ("-h", "--help")):
                return parser.parse_args(args_list)
            args_list = ["serve", *args_list]

    return parser.parse_args(args_list)


def _build_directory(settings: Settings, database: Database) -> UserDirectory:
    return UserDirectory(database, PasswordHasher(rounds=settings.bcrypt_rounds))


def _initialise_database(settings: Settings) -> None:
    with Database(settings.database_path):
        logger.info("Database initialised at %s", settings.database_path)


def _serve(
    settings: Settings,
    *,
    host: str,
    port: int,
    ssl_certfile: str | None,
    ssl_keyfile: str | None,
) -> None:
    from userdir.api import create_app
    import uvicorn

    if bool(ssl_certfile) ^ bool(ssl_keyfile):
        raise SystemExit("Both --ssl-certfile and --ssl-keyfile must be provided together.")

    protocol = "https" if ssl_certfile and ssl_keyfile else "http"
    logger.info("Starting user directory API on %s://%s:%s", protocol, host, port)

    app = create_app(settings=settings)
    uvicorn.run(
        app,
        host=host,
        port=port,
        log_level="info",
        ssl_certfile=ssl_certfile,
        ssl_keyfile=ssl_keyfile,
    )


def _prompt_for_password() -> str | None:
    for _ in range(3):
        password = getpass("Password: ")
        confirm = getpass("Confirm password: ")
        if password != confirm:
            print("Passwords do not match. Try again.", file=sys.stderr)
            continue
        if len(password) < MIN_PASSWORD_LENGTH:
            print(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long.", file=sys.stderr)
            continue
        return password
    return None


def _add_user(settings: Settings, username: str, roles: List[str]) -> int:
    password = _prompt_for_password()
    if password is None:
        print("Failed to set password after three attempts.", file=sys.stderr)
        return 1

    try:
        with Database(settings.database_path) as database:
            directory = _build_directory(settings, database)
            confirmation = anyio.run(directory.create_user, username, password, roles)
    except UserDirectoryError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(confirmation.message)
    return 0


def _list_users(settings: Settings) -> int:
    try:
        with Database(settings.database_path) as database:
            summaries = anyio.run(_build_directory(settings, database).list_users)
    except UserDirectoryError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if not summaries:
        print("No users found.")
        return 0

    for summary in summaries:
        state = "active" if summary.active else "inactive"
        print(f"#{summary.id:<5} {summary.username:<24} {', '.join(summary.roles):<32} {state}")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for CLI usage."""

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

    args = _parse_args(argv)
    settings = load_settings()

    if args.command == "serve":
        _serve(
            settings,
            host=args.host,
            port=args.port,
            ssl_certfile=args.ssl_certfile,
            ssl_keyfile=args.ssl_keyfile,
        )
        return 0
    if args.command == "init-db":
        _initialise_database(settings)
        print("Database initialisation complete.")
        return 0
    if args.command == "add-user":
        return _add_user(settings, args.username.strip(), args.roles)
    if args.command == "list-users":
        return _list_users(settings)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
