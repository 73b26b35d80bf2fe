#!/usr/bin/env python3
"""
Beresta ID -- administration CLI.

Talks to the same database as the API, through the same AuthService, so
every rule (email normalization, password policy, uniqueness) applies here too.

Usage:
  python main.py create-user alice@example.com --name Alice
  echo 'secret1' | python main.py create-user alice@example.com --password-stdin
  python main.py stats
  python main.py purge-sessions

Environment variables (or .env):
  DATABASE_URL  SQLAlchemy URL of the identity database (default sqlite:///berestaid.db)
  SECRET_KEY    Token signing key; required unless DEBUG=true
"""

import argparse
import getpass
import logging
import sys
from typing import Optional

from auth.errors import DuplicateEmail, StoreError, ValidationFailed
from auth.service import AuthService, create_auth_service
from core.config import get_settings

logger = logging.getLogger("berestaid.cli")


def _read_password(from_stdin: bool) -> Optional[str]:
    """Read the new user's password without echoing it.

    Returns None when the interactive confirmation does not match.
    """
    if from_stdin:
        return sys.stdin.readline().rstrip("\r\n")
    first = getpass.getpass("Password: ")
    if getpass.getpass("Repeat password: ") != first:
        return None
    return first


def _create_user(service: AuthService, args: argparse.Namespace) -> int:
    password = _read_password(args.password_stdin)
    if password is None:
        print("  [!] Passwords do not match.")
        return 1
    try:
        identity = service.register(args.email, password, args.name)
    except ValidationFailed as exc:
        for err in exc.errors:
            print(f"  [!] {err['field']}: {err['message']}")
        return 1
    except DuplicateEmail:
        print(f"  [!] A user with email '{args.email}' already exists.")
        return 1
    print(f"Created user #{identity.id} ({identity.email}).")
    return 0


def _stats(service: AuthService, args: argparse.Namespace) -> int:
    stats = service.admin_stats()
    print(f"Users:           {stats.user_count}")
    print(f"Active sessions: {stats.active_session_count}")
    if stats.recent_users:
        print("\nMost recent registrations:")
        for user in stats.recent_users:
            print(f"  {user.created_at:%Y-%m-%d %H:%M}  {user.email:<40} {user.name or '-'}")
    return 0


def _purge_sessions(service: AuthService, args: argparse.Namespace) -> int:
    removed = service.purge_expired_sessions()
    print(f"Removed {removed} expired session(s).")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="beresta-id",
        description="Administration commands for the Beresta ID identity service.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    create = subparsers.add_parser("create-user", help="Register a user account")
    create.add_argument("email", help="Email address (normalized to lowercase)")
    create.add_argument("--name", default=None, help="Optional display name")
    create.add_argument(
        "--password-stdin",
        action="store_true",
        help="Read the password from the first line of stdin instead of prompting",
    )
    create.set_defaults(handler=_create_user)

    stats = subparsers.add_parser("stats", help="Show user and active session counts")
    stats.set_defaults(handler=_stats)

    purge = subparsers.add_parser("purge-sessions", help="Delete expired session rows")
    purge.set_defaults(handler=_purge_sessions)

    args = parser.parse_args(argv)

    logging.basicConfig(level=get_settings().log_level, format="%(levelname)-5s %(name)s %(message)s")
    service = create_auth_service(get_settings())
    try:
        return args.handler(service, args)
    except StoreError:
        logger.exception("Storage error while running %s", args.command)
        print("  [!] Storage error, see log for details.")
        return 1
    finally:
        service.users.engine.dispose()


if __name__ == "__main__":
    sys.exit(main())
