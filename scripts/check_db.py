#!/usr/bin/env python3
"""
Check GeoAdmin storage: database tables, migration state, admins and Redis.

Usage:
    python3 scripts/check_db.py

Exits non-zero when the database or Redis is unreachable or a table is missing.
"""

import asyncio
import sys

from sqlalchemy import inspect

from geoadmin.db.migration_runner import check_migrations_status
from geoadmin.db.models import Base
from geoadmin.db.session import close_engines, get_engine, get_session
from geoadmin.exceptions import GeoAdminError, translate_db_errors
from geoadmin.observability.logging import setup_logging
from geoadmin.services.admins import AdminService
from geoadmin.services.cache_store import close_store, get_store

REQUIRED_TABLES = tuple(sorted(Base.metadata.tables))


async def missing_tables() -> list[str]:
    """Required tables that the connected database does not have."""
    with translate_db_errors("inspect tables"):
        async with get_engine().connect() as conn:
            present = await conn.run_sync(
                lambda sync_conn: set(inspect(sync_conn).get_table_names())
            )
    return [name for name in REQUIRED_TABLES if name not in present]


async def check() -> int:
    try:
        missing = await missing_tables()
        for table in REQUIRED_TABLES:
            print(f"  {'✗' if table in missing else '✓'} {table}")
        if missing:
            print(f"Missing tables: {', '.join(missing)} (run `alembic upgrade head`)")
            return 1

        async with get_session() as session:
            admins = await AdminService(session).list_admins()
    except (GeoAdminError, OSError) as e:
        print(f"Database check failed: {e}", file=sys.stderr)
        return 1
    finally:
        await close_engines()

    print(f"Admins ({len(admins)}):")
    for principal, email in admins:
        print(f"  {principal.id}: {principal.username} <{email}>")
    if not admins:
        print("  none - create one with scripts/create_admin.py")
    return await check_redis()


async def check_redis() -> int:
    try:
        await get_store().ping()
    except GeoAdminError as e:
        print(f"Redis check failed: {e}", file=sys.stderr)
        return 1
    finally:
        await close_store()

    print("Redis: reachable")
    return 0


def main() -> int:
    setup_logging()
    status = check_migrations_status()
    if "error" in status:
        print(f"Migration status unavailable: {status['error']}")
    else:
        print(
            f"Schema revision: {status['current_revision']} "
            f"(head {status['head_revision']}, pending={status['pending']})"
        )
    return asyncio.run(check())


if __name__ == "__main__":
    sys.exit(main())
