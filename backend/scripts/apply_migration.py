"""Apply a SQL migration from backend/migrations against POSTGRES_URL."""

import asyncio
import os
import sys

BACKEND_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from memberfind.infra.postgres import close_pool, get_pool


async def apply_migration(filename: str) -> None:
    migration_path = os.path.join(BACKEND_ROOT, "migrations", filename)
    if not os.path.exists(migration_path):
        print(f"Migration file not found: {migration_path}")
        return

    print(f"Applying migration: {filename}")
    with open(migration_path, "r") as f:
        sql = f.read()

    pool = await get_pool()
    try:
        async with pool.acquire() as conn:
            async with conn.transaction():
                await conn.execute(sql)
    finally:
        await close_pool()
    print("Migration applied successfully.")


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python apply_migration.py <migration_filename>")
        sys.exit(1)
    asyncio.run(apply_migration(sys.argv[1]))
