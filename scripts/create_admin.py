#!/usr/bin/env python3
"""
Utility script to create an administrator account.

Usage:
    python scripts/create_admin.py admin@example.org

Admins cannot sign up through the API; this prompts for a password and
creates the account directly in the configured database.
"""

import argparse
import asyncio
import getpass

from sports_arena.config import config
from sports_arena.db import close_database, get_database
from sports_arena.errors import ArenaError
from sports_arena.identity import IdentityGuard
from sports_arena.models.enums import UserRole


async def create_admin(email: str, first_name: str, last_name: str, password: str):
    database = await get_database()
    try:
        async with database.get_session() as session:
            return await IdentityGuard(session).register_user(
                {
                    "email": email,
                    "password": password,
                    "first_name": first_name,
                    "last_name": last_name,
                    "role": UserRole.ADMIN.value,
                },
                allowed_roles=(UserRole.ADMIN,),
            )
    finally:
        await close_database()


def main():
    parser = argparse.ArgumentParser(description="Create a Sports Arena administrator")
    parser.add_argument("email")
    parser.add_argument("--first-name", default="Admin")
    parser.add_argument("--last-name", default="Arena")
    args = parser.parse_args()

    print("=" * 60)
    print("Sports Arena - Administrator Setup")
    print("=" * 60)
    print()

    # Get password from user
    password = getpass.getpass("Enter admin password: ")
    confirm = getpass.getpass("Confirm password: ")

    if password != confirm:
        print("\n❌ Error: Passwords do not match!")
        return 1

    if len(password) < config.min_password_length:
        print(f"\n❌ Error: Password must be at least {config.min_password_length} characters long!")
        return 1

    try:
        user = asyncio.run(create_admin(args.email, args.first_name, args.last_name, password))
    except ArenaError as e:
        print(f"\n❌ Error: {e.message}")
        return 1

    print("\n" + "=" * 60)
    print(f"✅ Administrator {user.email} created (id {user.id})")
    print("=" * 60)

    return 0


if __name__ == "__main__":
    exit(main())
