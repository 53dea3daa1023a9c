"""Per-user single-flight token refresh.

Discord rotates refresh tokens, so two requests refreshing the same user
at once invalidate each other. Refreshes are serialized per user id; a
request that waited on the lock re-reads the store and reuses the token
the previous holder just saved instead of calling Discord again.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

from core.errors import TokenRefreshFailed
from shared.models.credential import DiscordCredential

from .credential_store import CredentialStore
from .discord_api import DiscordAPIClient

logger = logging.getLogger(__name__)


@dataclass
class _UserLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    holders: int = 0
    # Last rejected refresh, shared with callers queued behind it
    failed_refresh_token: str | None = None
    failure: TokenRefreshFailed | None = None


class TokenRefresher:
    """Refreshes a user's Discord token at most once per rotation"""

    def __init__(self, discord_api: DiscordAPIClient) -> None:
        self.discord_api = discord_api
        self._locks: dict[str, _UserLock] = {}

    @asynccontextmanager
    async def _user_lock(self, user_id: str) -> AsyncIterator[_UserLock]:
        entry = self._locks.get(user_id)
        if entry is None:
            entry = self._locks[user_id] = _UserLock()
        entry.holders += 1
        try:
            async with entry.lock:
                yield entry
        finally:
            entry.holders -= 1
            if entry.holders == 0:
                del self._locks[user_id]

    @property
    def pending(self) -> int:
        """Users with a refresh in flight or queued"""
        return len(self._locks)

    async def refresh(
        self, store: CredentialStore, user_id: str, rejected_token: str
    ) -> DiscordCredential:
        """Return a credential newer than *rejected_token*.

        The new pair is stored before it is returned. Raises
        TokenRefreshFailed when Discord refuses the refresh token; callers
        queued on the same lock get that failure without another call.
        """
        async with self._user_lock(user_id) as entry:
            current = await store.get(user_id)
            if current.access_token != rejected_token and not current.is_expired():
                logger.info(f"Reusing token refreshed by a concurrent request for user {user_id}")
                return current
            if entry.failure is not None and entry.failed_refresh_token == current.refresh_token:
                logger.info(f"Refresh for user {user_id} already rejected, not retrying")
                raise entry.failure

            logger.info(f"Refreshing Discord token for user {user_id}")
            try:
                result = await self.discord_api.refresh_access_token(current.refresh_token)
            except TokenRefreshFailed as e:
                entry.failed_refresh_token = current.refresh_token
                entry.failure = e
                raise
            credential = DiscordCredential.issue(
                user_id,
                result.access_token,
                result.refresh_token or current.refresh_token,
                result.expires_in,
            )
            stored = await store.put(credential)
            logger.info(f"Discord token refreshed for user {user_id}")
            return stored
