"""Dependency injection utilities for FastAPI"""

import logging

from fastapi import Depends, Header, Request

from core.config import Settings, get_settings
from core.database import get_database_manager
from core.errors import RELOGIN_HINT, AuthenticationError
from services import (
    BotPresenceService,
    CredentialStore,
    DiscordAPIClient,
    DiscordBotClient,
    GuildService,
    SupabaseAuthService,
    TokenRefresher,
)

logger = logging.getLogger(__name__)


# ============================================
# Service Dependencies
# ============================================


def get_auth_service(settings: Settings = Depends(get_settings)) -> SupabaseAuthService:
    """Get SupabaseAuthService instance (dependency injection)"""
    settings.require("supabase_jwt_secret")
    return SupabaseAuthService(
        secret_key=settings.supabase_jwt_secret,
        audience=settings.supabase_jwt_audience,
        issuer=settings.supabase_issuer,
    )


_discord_api: DiscordAPIClient | None = None
_discord_bot: DiscordBotClient | None = None
_token_refresher: TokenRefresher | None = None


def get_discord_api(settings: Settings = Depends(get_settings)) -> DiscordAPIClient:
    """Shared DiscordAPIClient singleton (connection reuse).

    Client id/secret are checked when a refresh is attempted.
    """
    global _discord_api
    if _discord_api is None:
        _discord_api = DiscordAPIClient(
            client_id=settings.discord_client_id,
            client_secret=settings.discord_client_secret,
            timeout=settings.discord_timeout,
        )
    return _discord_api


def get_discord_bot(settings: Settings = Depends(get_settings)) -> DiscordBotClient:
    """Shared DiscordBotClient singleton"""
    global _discord_bot
    if _discord_bot is None:
        settings.require("discord_bot_token")
        _discord_bot = DiscordBotClient(
            bot_token=settings.discord_bot_token,
            timeout=settings.discord_timeout,
        )
    return _discord_bot


def get_token_refresher(
    discord_api: DiscordAPIClient = Depends(get_discord_api),
) -> TokenRefresher:
    """Process-wide refresher; its per-user locks must be shared by all requests"""
    global _token_refresher
    if _token_refresher is None:
        _token_refresher = TokenRefresher(discord_api)
    return _token_refresher


async def close_discord_clients() -> None:
    """Close the shared Discord clients. Call on app shutdown."""
    global _discord_api, _discord_bot, _token_refresher
    if _discord_api is not None:
        await _discord_api.close()
        _discord_api = None
    if _discord_bot is not None:
        await _discord_bot.close()
        _discord_bot = None
    _token_refresher = None


def get_credential_store(settings: Settings = Depends(get_settings)) -> CredentialStore:
    settings.require("database_url")
    return CredentialStore(get_database_manager())


def get_guild_service(
    discord_api: DiscordAPIClient = Depends(get_discord_api),
    store: CredentialStore = Depends(get_credential_store),
    refresher: TokenRefresher = Depends(get_token_refresher),
) -> GuildService:
    return GuildService(discord_api, store, refresher)


def get_bot_presence_service(
    bot: DiscordBotClient = Depends(get_discord_bot),
    settings: Settings = Depends(get_settings),
) -> BotPresenceService:
    return BotPresenceService(
        bot,
        client_id=settings.discord_client_id,
        invite_permissions=settings.discord_bot_permissions,
    )


# ============================================
# Authentication Dependencies
# ============================================


def _bearer_token(authorization: str | None) -> str:
    if not authorization:
        raise AuthenticationError("Missing Authorization header.")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError("Authorization header must be a Bearer token.")
    return token.strip()


async def get_current_user_id(
    request: Request,
    authorization: str | None = Header(None),
    auth_service: SupabaseAuthService = Depends(get_auth_service),
) -> str:
    """Return the Supabase user id of the calling session"""
    token = _bearer_token(authorization)
    user_id = auth_service.get_user_id(token)
    if not user_id:
        raise AuthenticationError(
            f"Could not get user from Authorization header. {RELOGIN_HINT}"
        )
    # Read by the exception handlers for log context
    request.state.user_id = user_id
    return user_id
