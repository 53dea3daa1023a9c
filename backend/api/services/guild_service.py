"""Guild listing on behalf of a dashboard user.

Loads the stored Discord credential, lists the user's guilds and keeps the
ones the user may configure. A rejected or expired access token triggers
one refresh (through ``TokenRefresher``) and one retry, never more.
"""

import logging

from core.errors import RELOGIN_HINT, AuthenticationError, DiscordUnauthorized
from shared.models.credential import DiscordCredential

from .credential_store import CredentialStore
from .discord_api import DiscordAPIClient, Guild
from .permissions import filter_manageable
from .token_refresh import TokenRefresher

logger = logging.getLogger(__name__)


class GuildService:
    """Discord Guild Fetcher + Authorization Filter"""

    def __init__(
        self,
        discord_api: DiscordAPIClient,
        store: CredentialStore,
        refresher: TokenRefresher,
    ) -> None:
        self.discord_api = discord_api
        self.store = store
        self.refresher = refresher

    async def fetch_user_guilds(self, user_id: str) -> list[Guild]:
        """All guilds of the user, refreshing the token at most once."""
        credential = await self.store.get(user_id)
        refreshed = False

        if credential.is_expired():
            logger.info(f"Stored Discord token for user {user_id} has expired")
            credential = await self._refresh(user_id, credential)
            refreshed = True

        try:
            return await self.discord_api.get_user_guilds(credential.access_token)
        except DiscordUnauthorized:
            if refreshed:
                raise self._reauth_error(user_id) from None
            logger.info(f"Discord returned 401 for user {user_id}, refreshing token")

        credential = await self._refresh(user_id, credential)
        try:
            return await self.discord_api.get_user_guilds(credential.access_token)
        except DiscordUnauthorized:
            raise self._reauth_error(user_id) from None

    async def list_manageable_guilds(self, user_id: str) -> list[Guild]:
        """Guilds the user owns or administers"""
        guilds = await self.fetch_user_guilds(user_id)
        manageable = filter_manageable(guilds)
        logger.debug(f"User {user_id}: {len(manageable)}/{len(guilds)} guilds manageable")
        return manageable

    async def _refresh(self, user_id: str, credential: DiscordCredential) -> DiscordCredential:
        return await self.refresher.refresh(self.store, user_id, credential.access_token)

    @staticmethod
    def _reauth_error(user_id: str) -> AuthenticationError:
        logger.warning(f"Discord rejected the refreshed token for user {user_id}")
        return AuthenticationError(
            f"The stored Discord token is invalid or has expired. {RELOGIN_HINT}"
        )
