"""Create or update the discord_credentials schema.

Usage:
    python db_migrate.py          # apply pending migrations
    python db_migrate.py --dry    # list pending migrations only
"""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

BACKEND_DIR = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(BACKEND_DIR))

from dotenv import load_dotenv  # noqa: E402

from shared.database import DatabaseManager, PoolConfig  # noqa: E402
from shared.migrations.runner import MigrationRunner  # noqa: E402

load_dotenv(BACKEND_DIR / "api" / ".env")

logger = logging.getLogger("db_migrate")


async def migrate(database_url: str, dry_run: bool) -> int:
    db = DatabaseManager(database_url, PoolConfig(max_size=2, max_retries=1))
    await db.connect()
    try:
        runner = MigrationRunner(db.pool)
        if dry_run:
            pending = await runner.pending()
            logger.info(f"{len(pending)} pending migration(s)")
            for path in pending:
                logger.info(f"  {path.name}")
            return len(pending)
        return len(await runner.run_pending())
    finally:
        await db.disconnect()


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--dry", action="store_true", help="show pending migrations only")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")

    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        logger.error("DATABASE_URL not set (api/.env or environment)")
        sys.exit(1)

    asyncio.run(migrate(database_url, args.dry))


if __name__ == "__main__":
    main()
