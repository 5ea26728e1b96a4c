#!/usr/bin/env python3
"""
accountauth -- operator CLI for the account-authentication core.

Usage:
  python main.py create-user a@x.com
  python main.py create-user admin@x.com --admin
  python main.py list-users
  python main.py verify a@x.com
  python main.py login a@x.com
  python main.py request-reset a@x.com
  python main.py reset-password <token>

Passwords are prompted for (no echo) unless --password is given.

Environment variables (see core/config.py):
  JWT_KEY        Signing key for session and reset tokens. Required unless DEBUG=true.
                 With DEBUG=true and no JWT_KEY each run invents its own key, so
                 login, request-reset and reset-password are refused: a token from
                 one run could never be validated by the next.
  DATABASE_URL   SQLAlchemy URL of the user directory. Default sqlite:///accountauth.db
  FRONTEND_URL   Base URL used to build password reset links.
"""

from __future__ import annotations

import argparse
import asyncio
import getpass
import logging
import sys
from typing import Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from auth.errors import AuthError, ConfigurationError
from auth.models import User
from auth.service import AuthenticationService
from auth.store import SqlUserDirectory
from core.config import get_settings

logger = logging.getLogger("accountauth.cli")


def _password(args: argparse.Namespace, prompt: str = "Password: ") -> str:
    if args.password is not None:
        return args.password
    return getpass.getpass(prompt)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


async def _create_user(service: AuthenticationService, args: argparse.Namespace) -> int:
    user = await service.register(User(email=args.email, password=_password(args), is_admin=args.admin))
    print(f"  Created user {user.user_id} ({user.email}){' [admin]' if user.is_admin else ''}")
    return 0


async def _list_users(service: AuthenticationService, args: argparse.Namespace) -> int:
    users = await service.get_all_users()
    if not users:
        print("  No users.")
    for user in users:
        print(f"  {user.user_id:>5}  {user.email}{'  [admin]' if user.is_admin else ''}")
    return 0


async def _verify(service: AuthenticationService, args: argparse.Namespace) -> int:
    if await service.verify_credentials(args.email, _password(args)):
        print("  Credentials valid.")
        return 0
    print("  [!] Invalid email or password.")
    return 1


async def _login(service: AuthenticationService, args: argparse.Namespace) -> int:
    token = await service.authenticate(args.email, _password(args))
    if token is None:
        print("  [!] Invalid email or password.")
        return 1
    print(token)
    return 0


async def _request_reset(service: AuthenticationService, args: argparse.Namespace) -> int:
    user = await service.get_by_email(args.email)
    _, link = service.request_password_reset(user)
    print(link)
    return 0


async def _reset_password(service: AuthenticationService, args: argparse.Namespace) -> int:
    user = await service.complete_password_reset(args.token, _password(args, "New password: "))
    print(f"  Password updated for {user.email}")
    return 0


# Commands whose output or input is a signed token.
_TOKEN_COMMANDS = {"login", "request-reset", "reset-password"}

_COMMANDS = {
    "create-user": _create_user,
    "list-users": _list_users,
    "verify": _verify,
    "login": _login,
    "request-reset": _request_reset,
    "reset-password": _reset_password,
}


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="accountauth", description="Account authentication operator CLI.")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("create-user", help="Register a new user")
    p.add_argument("email")
    p.add_argument("--admin", action="store_true", help="Grant the admin flag")
    p.add_argument("--password", help="Password (prompted if omitted)")

    sub.add_parser("list-users", help="List all users")

    for name, text in (("verify", "Check an email/password pair"), ("login", "Print a session token")):
        p = sub.add_parser(name, help=text)
        p.add_argument("email")
        p.add_argument("--password", help="Password (prompted if omitted)")

    p = sub.add_parser("request-reset", help="Print a password reset link for a user")
    p.add_argument("email")

    p = sub.add_parser("reset-password", help="Set a new password using a reset token")
    p.add_argument("token")
    p.add_argument("--password", help="New password (prompted if omitted)")

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = get_settings()
    except ValidationError as e:
        print(f"  [!] Configuration error: {e}", file=sys.stderr)
        return 2

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    if settings.jwt_key_generated and args.command in _TOKEN_COMMANDS:
        print(
            f"  [!] Configuration error: {args.command} needs a persistent JWT_KEY. "
            "The key generated for DEBUG mode does not outlive this process.",
            file=sys.stderr,
        )
        return 2

    try:
        directory = SqlUserDirectory(settings.database_url)
    except SQLAlchemyError as e:
        print(f"  [!] Could not open user directory: {e}", file=sys.stderr)
        return 2

    try:
        service = AuthenticationService.from_settings(settings, directory)
        return asyncio.run(_COMMANDS[args.command](service, args))
    except ConfigurationError as e:
        print(f"  [!] Configuration error: {e.message}", file=sys.stderr)
        return 2
    except AuthError as e:
        logger.debug("Command %s failed: %s", args.command, e.kind.value)
        print(f"  [!] {e.message}", file=sys.stderr)
        return 1
    finally:
        directory.close()


if __name__ == "__main__":
    sys.exit(main())
