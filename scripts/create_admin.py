#!/usr/bin/env python3
"""
Create an administrator (registration only ever creates regular users).

    python scripts/create_admin.py USERNAME PASSWORD [--first-name A] [--last-name L] [--phone P]
    python scripts/create_admin.py USERNAME --promote
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from sqlalchemy.ext.asyncio import AsyncSession  # noqa: E402

from app.core.security import hash_password  # noqa: E402
from app.db.session import AsyncSessionLocal  # noqa: E402
from app.models.user import Role, User  # noqa: E402
from app.services.auth import get_user_by_username  # noqa: E402


async def create_or_promote_admin(
    db: AsyncSession,
    *,
    username: str,
    password: str | None,
    first_name: str | None = None,
    last_name: str | None = None,
    phone: str | None = None,
    promote: bool = False,
) -> str:
    """Return ``"created"``, ``"promoted"`` or ``"exists"``."""
    existing = await get_user_by_username(db, username)
    if existing is not None:
        if not promote:
            return "exists"
        existing.role = Role.ADMIN
        await db.commit()
        return "promoted"

    if promote:
        raise ValueError("user_not_found")
    if not password:
        raise ValueError("password_required")

    db.add(
        User(
            username=username,
            password_hash=hash_password(password),
            first_name=first_name,
            last_name=last_name,
            phone=phone,
            role=Role.ADMIN,
        )
    )
    await db.commit()
    return "created"


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create or promote a classifieds administrator.")
    parser.add_argument("username", help="Username (4-100 chars)")
    parser.add_argument("password", nargs="?", help="Password for a new account")
    parser.add_argument("--first-name")
    parser.add_argument("--last-name")
    parser.add_argument("--phone")
    parser.add_argument("--promote", action="store_true", help="Grant ADMIN to an existing user.")
    args = parser.parse_args()

    args.username = args.username.strip()
    if not 4 <= len(args.username) <= 100:
        parser.error("username must be 4-100 characters")
    if not args.promote and not args.password:
        parser.error("password is required unless --promote is given")
    return args


async def _main_async(args: argparse.Namespace) -> str:
    async with AsyncSessionLocal() as db:
        return await create_or_promote_admin(
            db,
            username=args.username,
            password=args.password,
            first_name=args.first_name,
            last_name=args.last_name,
            phone=args.phone,
            promote=args.promote,
        )


def main() -> int:
    args = _parse_args()
    logging.basicConfig(level=logging.WARNING, format="%(asctime)s %(levelname)s %(name)s %(message)s")

    try:
        outcome = asyncio.run(_main_async(args))
    except ValueError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    if outcome == "exists":
        print(f"User '{args.username}' already exists (use --promote).", file=sys.stderr)
        return 1
    print(f"{outcome.capitalize()} admin '{args.username}'.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
