"""SQL migration runner with a tracking table."""

from __future__ import annotations

import logging
from pathlib import Path

import asyncpg

logger = logging.getLogger(__name__)

VERSIONS_DIR = Path(__file__).resolve().parent / "versions"


def discover(migrations_dir: Path | None = None) -> list[Path]:
    """``NNN_description.sql`` files in apply order."""
    return sorted((migrations_dir or VERSIONS_DIR).glob("*.sql"))


class MigrationRunner:
    """Apply ``versions/*.sql`` once each, recording them in ``schema_migrations``."""

    TRACKING_TABLE = "schema_migrations"

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    async def ensure_table(self) -> None:
        async with self.pool.acquire() as conn:
            await conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {self.TRACKING_TABLE} (
                    version    TEXT PRIMARY KEY,
                    name       TEXT NOT NULL,
                    applied_at TIMESTAMPTZ DEFAULT NOW()
                )
                """
            )

    async def get_applied(self) -> set[str]:
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(f"SELECT version FROM {self.TRACKING_TABLE}")  # noqa: S608
            return {row["version"] for row in rows}

    async def pending(self, migrations_dir: Path | None = None) -> list[Path]:
        """Migration files not yet recorded as applied."""
        await self.ensure_table()
        applied = await self.get_applied()
        return [p for p in discover(migrations_dir) if p.stem not in applied]

    async def run_pending(self, migrations_dir: Path | None = None) -> list[str]:
        """Apply pending migrations in order; returns the applied versions."""
        newly_applied: list[str] = []
        for sql_path in await self.pending(migrations_dir):
            await self._apply_one(sql_path)
            newly_applied.append(sql_path.stem)

        if newly_applied:
            logger.info(f"Applied {len(newly_applied)} migration(s): {', '.join(newly_applied)}")
        else:
            logger.info("Database is up to date, no pending migrations")
        return newly_applied

    async def _apply_one(self, sql_path: Path) -> None:
        """Run one file and record it in the same transaction."""
        version = sql_path.stem
        logger.info(f"Applying migration: {version}")
        sql = sql_path.read_text(encoding="utf-8")
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await conn.execute(sql)
                await conn.execute(
                    f"INSERT INTO {self.TRACKING_TABLE} (version, name) VALUES ($1, $2)",
                    version,
                    sql_path.name,
                )
