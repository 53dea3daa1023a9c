"""Repository for the discord_credentials table."""

from __future__ import annotations

import logging

import asyncpg

from shared.models.credential import DiscordCredential

logger = logging.getLogger(__name__)

_COLUMNS = "user_id, access_token, refresh_token, expires_at, created_at, updated_at"


class CredentialRepository:
    """Pure SQL operations for stored Discord OAuth credentials."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    async def get(self, user_id: str) -> DiscordCredential | None:
        """Get a user's credential, or None if nothing is stored."""
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {_COLUMNS} FROM discord_credentials WHERE user_id = $1",
                user_id,
            )
            if not row:
                return None
            return DiscordCredential(**dict(row))

    async def upsert(self, credential: DiscordCredential) -> DiscordCredential:
        """Insert or overwrite the user's credential."""
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                INSERT INTO discord_credentials (user_id, access_token, refresh_token, expires_at)
                VALUES ($1, $2, $3, $4)
                ON CONFLICT (user_id) DO UPDATE SET
                    access_token  = EXCLUDED.access_token,
                    refresh_token = EXCLUDED.refresh_token,
                    expires_at    = EXCLUDED.expires_at,
                    updated_at    = NOW()
                RETURNING {_COLUMNS}
                """,
                credential.user_id,
                credential.access_token,
                credential.refresh_token,
                credential.expires_at,
            )
            return DiscordCredential(**dict(row))

    async def delete(self, user_id: str) -> bool:
        """Delete the user's credential. Returns True if a row was removed."""
        async with self.pool.acquire() as conn:
            status = await conn.execute(
                "DELETE FROM discord_credentials WHERE user_id = $1",
                user_id,
            )
        # asyncpg returns the command tag, e.g. "DELETE 1"
        return status.rsplit(" ", 1)[-1] != "0"
