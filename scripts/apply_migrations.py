from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import asyncpg

sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "backend"))

from ember.infra import postgres  # noqa: E402
from ember.infra.migrations import apply_migrations, migration_paths  # noqa: E402


async def wait_for_db(retries: int = 30, delay: int = 2) -> asyncpg.Pool:
    for i in range(retries):
        try:
            return await postgres.init_pool()
        except (OSError, asyncpg.CannotConnectNowError) as exc:
            print(f"Database starting up ({exc.__class__.__name__})... waiting {delay}s ({i+1}/{retries})")
            await asyncio.sleep(delay)
    raise SystemExit("Could not connect to database after multiple retries")


async def main() -> None:
    if not migration_paths():
        raise SystemExit("no migration files found")
    pool = await wait_for_db()
    try:
        applied = await apply_migrations(pool)
    finally:
        await postgres.close_pool()
    if applied:
        for version in applied:
            print(f"applied {version}")
    else:
        print("schema up to date")


if __name__ == "__main__":
    asyncio.run(main())
