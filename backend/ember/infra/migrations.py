"""Apply the bundled SQL migrations in version order."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List

import asyncpg

MIGRATIONS_DIR = Path(__file__).resolve().parent / "sql"

logger = logging.getLogger(__name__)


def migration_paths() -> List[Path]:
	return sorted(MIGRATIONS_DIR.glob("*.sql"))


async def apply_migrations(pool: asyncpg.Pool) -> List[str]:
	"""Run every migration not yet recorded in schema_migrations; return the applied versions."""
	paths = migration_paths()
	if not paths:
		raise RuntimeError("no migration files found")
	applied_now: List[str] = []
	async with pool.acquire() as conn:
		await conn.execute(
			"""
			CREATE TABLE IF NOT EXISTS schema_migrations (
				version TEXT PRIMARY KEY,
				applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
			)
			"""
		)
		rows = await conn.fetch("SELECT version FROM schema_migrations")
		applied = {row["version"] for row in rows}
		for path in paths:
			version = path.name.split("_", 1)[0]
			if version in applied:
				continue
			async with conn.transaction():
				await conn.execute(path.read_text(encoding="utf-8"))
				await conn.execute(
					"""
					INSERT INTO schema_migrations (version)
					VALUES ($1)
					ON CONFLICT (version) DO UPDATE SET applied_at = NOW()
					""",
					version,
				)
			logger.info("migration_applied", extra={"version": version, "file": path.name})
			applied_now.append(version)
	return applied_now
