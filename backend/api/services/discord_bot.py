"""Discord API calls made as the Flamey bot"""

import logging
from urllib.parse import urlencode

import httpx

from core.errors import DiscordApiError

from .discord_api import DISCORD_API_URL, DiscordHTTPClient

logger = logging.getLogger(__name__)

BOT_ABSENT_STATUSES = (403, 404)


def build_invite_url(client_id: str, permissions: str = "8", guild_id: str | None = None) -> str:
    """Bot invite link, preselecting *guild_id* when given"""
    params = {
        "client_id": client_id,
        "permissions": permissions,
        "integration_type": "0",
        "scope": "bot",
    }
    if guild_id:
        params["guild_id"] = guild_id
        params["disable_guild_select"] = "true"
    return f"https://discord.com/oauth2/authorize?{urlencode(params)}"


class DiscordBotClient(DiscordHTTPClient):
    """Bot-token client. The token never expires, so nothing is refreshed."""

    def __init__(
        self,
        bot_token: str,
        timeout: float = 10.0,
        http: httpx.AsyncClient | None = None,
        api_url: str = DISCORD_API_URL,
    ):
        if not bot_token:
            raise ValueError("Discord bot token is required")
        super().__init__(timeout=timeout, http=http, api_url=api_url)
        self._authorization = f"Bot {bot_token}"

    async def get_guild_ids(self) -> set[str]:
        """IDs of every guild the bot has joined"""
        guilds = await self._get_guild_pages(self._authorization)
        return {g.id for g in guilds}

    async def get_guild_channels(self, guild_id: str) -> list[dict] | None:
        """Raw channel list of a guild.

        Returns None when Discord answers 403/404, i.e. the bot is not in
        the guild or cannot see its channels.
        """
        path = f"/guilds/{guild_id}/channels"
        response = await self._get(path, self._authorization)
        if response.status_code in BOT_ABSENT_STATUSES:
            logger.info(f"Bot has no access to guild {guild_id} (status={response.status_code})")
            return None
        self._raise_for_status(response, f"GET {path}")

        channels = self._json(response, f"GET {path}")
        if not isinstance(channels, list):
            raise DiscordApiError(
                "Unexpected channel list response", status=response.status_code, endpoint=f"GET {path}"
            )
        return channels
