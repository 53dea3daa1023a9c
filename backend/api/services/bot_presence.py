"""Bot-scoped guild queries: which guilds the bot has joined, and the
text channels it can see in one of them."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from core.errors import ConfigurationError

from .discord_bot import DiscordBotClient, build_invite_url

logger = logging.getLogger(__name__)

BOT_NOT_IN_GUILD = "BOT_NOT_IN_GUILD"
BOT_NOT_IN_GUILD_MESSAGE = (
    "Flamey is not a member of this server, or it lacks permissions to view channels."
)

# GUILD_TEXT, GUILD_ANNOUNCEMENT
TEXT_CHANNEL_TYPES = frozenset({0, 5})


@dataclass
class ChannelLookup:
    """Channels of a guild, or the bot-absent marker"""

    channels: list[dict[str, str]] = field(default_factory=list)
    error: str | None = None
    message: str | None = None

    @property
    def bot_absent(self) -> bool:
        return self.error == BOT_NOT_IN_GUILD


def text_channels(channels: Iterable[dict]) -> list[dict[str, str]]:
    """Keep text and announcement channels, exposing only id and name"""
    return [
        {"id": str(ch["id"]), "name": ch.get("name") or ""}
        for ch in channels
        if isinstance(ch, dict) and ch.get("type") in TEXT_CHANNEL_TYPES and "id" in ch
    ]


class BotPresenceService:
    """Bot-Presence Reconciler + Guild-Channel Resolver"""

    def __init__(
        self,
        bot: DiscordBotClient,
        client_id: str = "",
        invite_permissions: str = "8",
    ) -> None:
        self.bot = bot
        self.client_id = client_id
        self.invite_permissions = invite_permissions

    async def list_common_guild_ids(self, candidate_ids: Iterable[str]) -> list[str]:
        """Candidate ids the bot is in, candidate order kept, duplicates dropped"""
        bot_guild_ids = await self.bot.get_guild_ids()
        common = list(dict.fromkeys(gid for gid in candidate_ids if gid in bot_guild_ids))
        logger.debug(f"Bot present in {len(common)} of the requested guilds")
        return common

    async def list_guild_channels(self, guild_id: str) -> ChannelLookup:
        channels = await self.bot.get_guild_channels(guild_id)
        if channels is None:
            return ChannelLookup(error=BOT_NOT_IN_GUILD, message=BOT_NOT_IN_GUILD_MESSAGE)
        return ChannelLookup(channels=text_channels(channels))

    def invite_url(self, guild_id: str | None = None) -> str:
        if not self.client_id:
            raise ConfigurationError("Server configuration error: missing DISCORD_CLIENT_ID")
        return build_invite_url(self.client_id, self.invite_permissions, guild_id)
