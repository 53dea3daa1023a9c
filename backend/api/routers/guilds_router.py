"""Guild selection API routes"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Path
from pydantic import BaseModel, Field, StringConstraints

from core.dependencies import get_bot_presence_service, get_current_user_id, get_guild_service
from services import BotPresenceService, GuildService, guild_icon_url

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/guilds", tags=["guilds"])

SNOWFLAKE_PATTERN = r"^\d{1,20}$"
Snowflake = Annotated[str, StringConstraints(pattern=SNOWFLAKE_PATTERN)]


# ============================================
# Request/Response Models
# ============================================


class GuildInfo(BaseModel):
    id: str
    name: str
    icon: str | None = None
    owner: bool = False
    permissions: str


class GuildsResponse(BaseModel):
    guilds: list[GuildInfo]


class CommonGuildsRequest(BaseModel):
    userGuildIds: list[Snowflake] = Field(max_length=1000)


class CommonGuildsResponse(BaseModel):
    commonGuildIds: list[str]


class GuildChannelsRequest(BaseModel):
    guildId: Snowflake


class ChannelInfo(BaseModel):
    id: str
    name: str


class GuildChannelsResponse(BaseModel):
    channels: list[ChannelInfo]
    error: str | None = None
    message: str | None = None


class SelectorGuild(GuildInfo):
    has_bot: bool
    icon_url: str
    invite_url: str


class SelectorResponse(BaseModel):
    guilds: list[SelectorGuild]


class InviteResponse(BaseModel):
    invite_url: str


def _guild_info(guild) -> GuildInfo:
    permissions = "" if guild.permissions is None else str(guild.permissions)
    return GuildInfo(
        id=guild.id,
        name=guild.name,
        icon=guild.icon,
        owner=guild.owner,
        permissions=permissions,
    )


# ============================================
# Endpoints
# ============================================


@router.get("", response_model=GuildsResponse)
async def list_manageable_guilds(
    user_id: str = Depends(get_current_user_id),
    guild_service: GuildService = Depends(get_guild_service),
) -> GuildsResponse:
    """Guilds the caller owns or administers"""
    guilds = await guild_service.list_manageable_guilds(user_id)
    return GuildsResponse(guilds=[_guild_info(g) for g in guilds])


@router.post("/common", response_model=CommonGuildsResponse)
async def list_common_guilds(
    body: CommonGuildsRequest,
    user_id: str = Depends(get_current_user_id),
    presence: BotPresenceService = Depends(get_bot_presence_service),
) -> CommonGuildsResponse:
    """Subset of the given guild ids the bot has joined"""
    common = await presence.list_common_guild_ids(body.userGuildIds)
    return CommonGuildsResponse(commonGuildIds=common)


async def _channels_response(
    presence: BotPresenceService, guild_id: str, user_id: str
) -> GuildChannelsResponse:
    lookup = await presence.list_guild_channels(guild_id)
    if lookup.bot_absent:
        logger.info(f"User {user_id} asked for channels of guild {guild_id} without the bot")
        return GuildChannelsResponse(channels=[], error=lookup.error, message=lookup.message)
    return GuildChannelsResponse(channels=[ChannelInfo(**ch) for ch in lookup.channels])


@router.post("/channels", response_model=GuildChannelsResponse, response_model_exclude_none=True)
async def list_guild_channels(
    body: GuildChannelsRequest,
    user_id: str = Depends(get_current_user_id),
    presence: BotPresenceService = Depends(get_bot_presence_service),
) -> GuildChannelsResponse:
    """Text channels of a guild, or BOT_NOT_IN_GUILD"""
    return await _channels_response(presence, body.guildId, user_id)


@router.get(
    "/{guild_id}/channels",
    response_model=GuildChannelsResponse,
    response_model_exclude_none=True,
)
async def get_guild_channels(
    guild_id: str = Path(pattern=SNOWFLAKE_PATTERN),
    user_id: str = Depends(get_current_user_id),
    presence: BotPresenceService = Depends(get_bot_presence_service),
) -> GuildChannelsResponse:
    return await _channels_response(presence, guild_id, user_id)


@router.get("/{guild_id}/invite", response_model=InviteResponse)
async def get_invite_url(
    guild_id: str = Path(pattern=SNOWFLAKE_PATTERN),
    user_id: str = Depends(get_current_user_id),
    presence: BotPresenceService = Depends(get_bot_presence_service),
) -> InviteResponse:
    """Invite link that adds the bot to this guild"""
    return InviteResponse(invite_url=presence.invite_url(guild_id))


@router.get("/selector", response_model=SelectorResponse)
async def list_selector_guilds(
    user_id: str = Depends(get_current_user_id),
    guild_service: GuildService = Depends(get_guild_service),
    presence: BotPresenceService = Depends(get_bot_presence_service),
) -> SelectorResponse:
    """Manageable guilds marked with bot presence, bot-present ones first"""
    guilds = await guild_service.list_manageable_guilds(user_id)
    common = set(await presence.list_common_guild_ids(g.id for g in guilds))

    entries = [
        SelectorGuild(
            **_guild_info(g).model_dump(),
            has_bot=g.id in common,
            icon_url=guild_icon_url(g.id, g.icon),
            invite_url=presence.invite_url(g.id),
        )
        for g in guilds
    ]
    entries.sort(key=lambda e: (not e.has_bot, e.name.lower()))
    return SelectorResponse(guilds=entries)
