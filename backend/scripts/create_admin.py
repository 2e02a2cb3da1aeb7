"""
Create an admin account from the command line.

Ensures the schema exists, seeds the default stats rows, then creates the
admin. Running it again for an existing username changes nothing.

Usage:
    python scripts/create_admin.py --username jerry
    python scripts/create_admin.py --username jerry --password 'Str0ng!Passw0rd'

The password is prompted for when not given. It must pass the same
strength policy as the setup endpoint.
"""

import argparse
import asyncio
import getpass
import sys
from pathlib import Path

# Add backend directory to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from labsite.core.database import async_session_maker, create_tables
from labsite.core.security import get_password_hash, validate_password_strength, validate_username
from labsite.repositories.admin import AdminRepository
from labsite.repositories.stats import StatsRepository


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Create an admin account for the lab site dashboard",
    )
    parser.add_argument(
        "--username",
        type=str,
        required=True,
        help="Login name (3-20 letters, numbers, _ or -)",
    )
    parser.add_argument(
        "--password",
        type=str,
        default=None,
        help="Password (prompted for when omitted)",
    )
    return parser.parse_args(argv)


async def create_admin(username: str, password: str) -> bool:
    """
    Create the admin account if it does not exist yet.

    Returns:
        True when an account was created, False when it already existed

    Raises:
        ValueError: If the username or password fails validation
    """
    if not validate_username(username):
        raise ValueError("Username must be 3-20 characters (letters, numbers, _ and -)")
    problems = validate_password_strength(password)
    if problems:
        raise ValueError("; ".join(problems))

    await create_tables()

    async with async_session_maker() as session:
        try:
            await StatsRepository(session).seed_defaults()
            repo = AdminRepository(session)
            if await repo.username_exists(username):
                await session.commit()
                return False
            await repo.create_user(username, get_password_hash(password))
            await session.commit()
        except Exception:
            await session.rollback()
            raise
    return True


def main(argv=None) -> int:
    args = parse_args(argv)
    password = args.password or getpass.getpass("Password: ")

    try:
        created = asyncio.run(create_admin(args.username, password))
    except ValueError as exc:
        print(f"Error: {exc}")
        return 1

    if created:
        print(f"Admin user '{args.username}' created successfully!")
    else:
        print(f"Admin user '{args.username}' already exists. Skipping...")
    return 0


if __name__ == "__main__":
    sys.exit(main())
