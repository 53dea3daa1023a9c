"""asyncpg pool for the Supabase Postgres that holds Discord credentials.

Supabase exposes two poolers:
  - session pooler (port 5432): long-lived servers, prepared statements work
  - transaction pooler (port 6543): PgBouncer, prepared statements are lost
    between transactions
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlsplit

import asyncpg

logger = logging.getLogger(__name__)

TRANSACTION_POOLER_PORT = 6543


def pooler_mode(database_url: str) -> str:
    """``"transaction"`` for the PgBouncer port, ``"session"`` otherwise"""
    try:
        port = urlsplit(database_url).port
    except ValueError:
        port = None
    return "transaction" if port == TRANSACTION_POOLER_PORT else "session"


@dataclass
class PoolConfig:
    min_size: int = 0
    max_size: int = 10
    timeout: float = 5.0
    command_timeout: float = 15.0
    idle_lifetime: float = 30.0
    max_retries: int = 3
    retry_delay: float = 3.0


class DatabaseManager:
    """Owns the pool. Connect once at startup, disconnect on shutdown."""

    def __init__(self, database_url: str, config: PoolConfig | None = None):
        self.database_url = database_url
        self.config = config or PoolConfig()
        self.mode = pooler_mode(database_url)
        self._pool: asyncpg.Pool | None = None

    def pool_kwargs(self) -> dict[str, Any]:
        cfg = self.config
        kwargs: dict[str, Any] = {
            "dsn": self.database_url,
            "min_size": cfg.min_size,
            "max_size": cfg.max_size,
            "timeout": cfg.timeout,
            "command_timeout": cfg.command_timeout,
            "ssl": "require",
            "statement_cache_size": 100,
            "max_inactive_connection_lifetime": cfg.idle_lifetime,
        }
        if self.mode == "transaction":
            # Nothing survives between transactions, so keep nothing warm
            kwargs.update(min_size=0, statement_cache_size=0, max_inactive_connection_lifetime=0)
        return kwargs

    async def _open_pool(self) -> asyncpg.Pool:
        pool = await asyncpg.create_pool(**self.pool_kwargs())
        try:
            async with pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
        except BaseException:
            await pool.close()
            raise
        return pool

    async def connect(self) -> None:
        """Create and verify the pool, retrying with exponential backoff."""
        if self._pool is not None:
            return

        cfg = self.config
        logger.info(f"Connecting to database ({self.mode} pooler)")
        for attempt in range(1, cfg.max_retries + 1):
            try:
                self._pool = await self._open_pool()
            except Exception as e:
                if attempt == cfg.max_retries:
                    logger.error(
                        f"Database connection failed after {attempt} attempt(s): "
                        f"{type(e).__name__}: {e}"
                    )
                    raise
                delay = cfg.retry_delay * 2 ** (attempt - 1)
                logger.warning(
                    f"Database connection attempt {attempt}/{cfg.max_retries} failed: "
                    f"{type(e).__name__}: {e}, retrying in {delay}s"
                )
                await asyncio.sleep(delay)
            else:
                logger.info("Database pool ready")
                return

    async def disconnect(self) -> None:
        if self._pool is None:
            return
        pool, self._pool = self._pool, None
        await pool.close()
        logger.info("Database pool closed")

    async def check_health(self) -> bool:
        """True if a connection can be acquired and answers a query."""
        if self._pool is None:
            return False
        try:
            async with self._pool.acquire(timeout=2.0) as conn:
                await conn.fetchval("SELECT 1")
        except (asyncpg.PostgresError, OSError, asyncio.TimeoutError) as e:
            logger.warning(f"Database health check failed: {type(e).__name__}: {e}")
            return False
        return True

    @property
    def is_connected(self) -> bool:
        return self._pool is not None

    @property
    def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError("Database pool not initialized. Call connect() first.")
        return self._pool
