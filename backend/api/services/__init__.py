"""Services layer - Business logic

This module provides service classes for handling business logic.
Services are initialized with their dependencies and accessed through dependency injection.
"""

from .auth_service import SupabaseAuthService
from .bot_presence import BOT_NOT_IN_GUILD, BotPresenceService, ChannelLookup
from .credential_store import CredentialStore
from .discord_api import DiscordAPIClient, Guild, TokenRefreshResult, guild_icon_url
from .discord_bot import DiscordBotClient
from .guild_service import GuildService
from .permissions import Permissions, filter_manageable, parse_permissions
from .token_refresh import TokenRefresher

__all__ = [
    "BOT_NOT_IN_GUILD",
    "BotPresenceService",
    "ChannelLookup",
    "CredentialStore",
    "DiscordAPIClient",
    "DiscordBotClient",
    "Guild",
    "GuildService",
    "Permissions",
    "SupabaseAuthService",
    "TokenRefreshResult",
    "TokenRefresher",
    "filter_manageable",
    "guild_icon_url",
    "parse_permissions",
]
