#!/usr/bin/env python3
"""
SafeVault -- operator commands for the credential database.

Usage:
  python main.py init-db
  python main.py create-user alice alice@example.com
  python main.py create-user root root@example.com --role admin
  python main.py check-user alice

The password for create-user is always read interactively (or from stdin
when it is not a TTY), never from the command line, so it does not end up
in shell history or the process list.

Environment variables:
  DATABASE_URL   SQLAlchemy URL of the credential database.
  BCRYPT_ROUNDS  bcrypt work factor for new hashes (default 12).
"""

import argparse
import getpass
import sys
from typing import Optional

from auth.errors import DuplicateUsername, InvalidInput, StorageUnavailable
from auth.models import DEFAULT_ROLE
from auth.passwords import PasswordHasher
from auth.service import AuthService
from auth.store import CredentialStore
from core.config import get_settings


def _read_password() -> str:
    if not sys.stdin.isatty():
        return sys.stdin.readline().rstrip("\n")
    password = getpass.getpass("Password: ")
    if password != getpass.getpass("Repeat password: "):
        print("  [!] Passwords do not match.", file=sys.stderr)
        return ""
    return password


def cmd_init_db(store: CredentialStore, args: argparse.Namespace) -> int:
    store.initialize()
    print(f"  Users table ready ({store.count_users()} users).")
    return 0


def cmd_create_user(store: CredentialStore, args: argparse.Namespace) -> int:
    auth = AuthService(store, PasswordHasher())
    role = (args.role or "").strip() or DEFAULT_ROLE
    try:
        auth.register(args.username, args.email, _read_password(), role)
    except InvalidInput as e:
        print(f"  [!] Invalid {e.field}.", file=sys.stderr)
        return 1
    except DuplicateUsername:
        print("  [!] A user with that username already exists.", file=sys.stderr)
        return 1
    print(f"  Created user with role '{role}'.")
    return 0


def cmd_check_user(store: CredentialStore, args: argparse.Namespace) -> int:
    user = store.get_user_by_username(args.username)
    if user is None:
        print(f"  [!] No user named '{args.username}'.", file=sys.stderr)
        return 1
    print(f"  id={user.id} username={user.username} role={user.role}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="safevault",
        description="SafeVault credential database tools.",
    )
    parser.add_argument("--database-url", help="Override DATABASE_URL for this command.")
    sub = parser.add_subparsers(dest="command", required=True)

    init_db = sub.add_parser("init-db", help="Create the Users table if it does not exist.")
    init_db.set_defaults(func=cmd_init_db)

    create = sub.add_parser("create-user", help="Register a user; the password is prompted for.")
    create.add_argument("username")
    create.add_argument("email")
    create.add_argument("--role", default="user", help="Role tag (default: user).")
    create.set_defaults(func=cmd_create_user)

    check = sub.add_parser("check-user", help="Show the id and role of a user.")
    check.add_argument("username")
    check.set_defaults(func=cmd_check_user)
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        store = CredentialStore(args.database_url or get_settings().database_url)
    except StorageUnavailable:
        print("  [!] Credential database is unavailable.", file=sys.stderr)
        return 2
    try:
        return args.func(store, args)
    except StorageUnavailable:
        print("  [!] Credential database is unavailable.", file=sys.stderr)
        return 2
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
