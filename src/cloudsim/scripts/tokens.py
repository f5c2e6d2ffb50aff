# src/cloudsim/scripts/tokens.py
"""
Development helper standing in for the identity provider.

Creates user profiles and mints first-factor access tokens for them:

    python -m cloudsim.scripts.tokens create-user alice@example.com --admin
    python -m cloudsim.scripts.tokens token <user-id>
"""

from __future__ import annotations

import argparse
import sys

from sqlalchemy import select

from cloudsim.core.errors import CloudSimError
from cloudsim.core.security import create_access_token
from cloudsim.db.session import SessionLocal
from cloudsim.models import User, UserRole
from cloudsim.services.users import UserService


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1] if __doc__ else None)
    sub = parser.add_subparsers(dest="command", required=True)

    create = sub.add_parser("create-user", help="Create a user and print an access token")
    create.add_argument("email")
    create.add_argument("--display-name", default=None)
    create.add_argument("--admin", action="store_true", help="Grant the admin role")

    token = sub.add_parser("token", help="Print an access token for an existing user")
    token.add_argument("user", help="User id or email")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    db = SessionLocal()
    try:
        if args.command == "create-user":
            role = UserRole.ADMIN if args.admin else UserRole.USER
            user = UserService(db).create_user(args.email, args.display_name, role)
        else:
            user = db.get(User, args.user) or db.scalars(
                select(User).where(User.email == args.user.lower())
            ).first()
            if user is None:
                print(f"No user matches {args.user}", file=sys.stderr)
                return 1
        print(f"user_id={user.id}")
        print(f"access_token={create_access_token(user.id)}")
        return 0
    except CloudSimError as exc:
        print(exc.message, file=sys.stderr)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    raise SystemExit(main())
