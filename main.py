#!/usr/bin/env python3
"""
CourseGate admin CLI.

Signup never grants the admin role, so the first administrator is created
here, directly against the user store.

Usage:
  python main.py create-admin --email admin@example.com --first-name Ada --last-name Lovelace
  python main.py promote --email teacher@example.com --role teacher

Environment variables:
  DATABASE_URL  SQLAlchemy URL of the user store (default: sqlite:///coursegate.db)
  SECRET_KEY    required unless DEBUG=true (settings are validated as for the API)
"""

import argparse
import getpass
import sys

from pydantic import ValidationError as SettingsError

from auth.errors import ValidationError
from auth.roles import Role
from auth.store import UserStore
from core.config import get_settings


def _read_password() -> str:
    password = getpass.getpass("Password: ")
    confirm = getpass.getpass("Confirm password: ")
    if password != confirm:
        print("  [!] Passwords do not match.")
        sys.exit(1)
    return password


def create_admin(store: UserStore, args: argparse.Namespace) -> int:
    password = args.password or _read_password()
    try:
        user = store.create_user(args.email, password, args.first_name, args.last_name, role=Role.ADMIN)
    except ValidationError as exc:
        for field, message in exc.fields.items():
            print(f"  [!] {field}: {message}")
        return 1
    print(f"  Admin {user.email} created (id {user.id}).")
    return 0


def promote(store: UserStore, args: argparse.Namespace) -> int:
    user = store.get_by_email(args.email)
    if user is None:
        print(f"  [!] No user with email '{args.email}'.")
        return 1
    store.update_role(user.id, Role(args.role))
    print(f"  {user.email}: {user.role.value} -> {args.role}")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="coursegate",
        description="Manage CourseGate user accounts.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_admin = sub.add_parser("create-admin", help="Create an administrator account")
    p_admin.add_argument("--email", required=True)
    p_admin.add_argument("--first-name", required=True)
    p_admin.add_argument("--last-name", required=True)
    p_admin.add_argument(
        "--password",
        help="Password (prompted if omitted; avoid passing it on the command line)",
    )

    p_promote = sub.add_parser("promote", help="Change an existing user's role")
    p_promote.add_argument("--email", required=True)
    p_promote.add_argument("--role", required=True, choices=[r.value for r in Role])

    args = parser.parse_args()
    try:
        settings = get_settings()
    except SettingsError as exc:
        for error in exc.errors():
            print(f"  [!] {error['msg']}")
        sys.exit(1)
    store = UserStore(settings.database_url)
    try:
        handler = create_admin if args.command == "create-admin" else promote
        code = handler(store, args)
    finally:
        store.close()
    sys.exit(code)


if __name__ == "__main__":
    main()
