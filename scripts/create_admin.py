#!/usr/bin/env python3
"""
Create a GeoAdmin administrator.

Usage:
    python3 scripts/create_admin.py --username admin --email admin@example.com --password secret123
    python3 scripts/create_admin.py -u admin -e admin@example.com -p secret123

Reads DATABASE_URL (and the rest of the app settings) from the environment or .env.
"""

import argparse
import asyncio
import sys

from geoadmin.db.session import close_engines, get_session
from geoadmin.exceptions import GeoAdminError
from geoadmin.observability.logging import setup_logging
from geoadmin.services.admins import AdminService


async def create_admin(username: str, email: str, password: str) -> int:
    try:
        async with get_session() as session:
            admin = await AdminService(session).create(username, email, password)
    except GeoAdminError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        await close_engines()

    print(f"Admin user created (id={admin.id}, username={admin.username})")
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Create an administrator account",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--username", "-u", required=True, help="Admin username")
    parser.add_argument("--email", "-e", required=True, help="Admin email address")
    parser.add_argument(
        "--password", "-p", required=True, help="Admin password (at least 6 characters)"
    )
    args = parser.parse_args(argv)

    setup_logging()
    return asyncio.run(create_admin(args.username, args.email, args.password))


if __name__ == "__main__":
    sys.exit(main())
