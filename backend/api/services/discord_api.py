"""Discord API client service.

Token types:
- User Access Token: OAuth bearer token captured at login, stored per user,
  rotated through the refresh grant. Used for ``/users/@me/guilds``.
- Bot Token: static process-wide secret, see ``discord_bot.py``.
"""

import logging
from dataclasses import dataclass

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from core.errors import (
    ConfigurationError,
    DiscordApiError,
    DiscordUnauthorized,
    TokenRefreshFailed,
)

logger = logging.getLogger(__name__)

DISCORD_API_URL = "https://discord.com/api/v10"
DISCORD_OAUTH_URL = "https://discord.com/api/oauth2"
DISCORD_CDN_URL = "https://cdn.discordapp.com"

# Max page size of GET /users/@me/guilds
GUILDS_PAGE_LIMIT = 200


class Guild(BaseModel):
    """Partial guild as returned by ``GET /users/@me/guilds``"""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    icon: str | None = None
    owner: bool = False
    permissions: str | int | None = None


@dataclass
class TokenRefreshResult:
    """Result of a successful refresh grant."""

    access_token: str
    refresh_token: str | None
    expires_in: int | None


def guild_icon_url(guild_id: str, icon_hash: str | None) -> str:
    """Guild icon, or one of Discord's default avatars when unset"""
    if icon_hash:
        return f"{DISCORD_CDN_URL}/icons/{guild_id}/{icon_hash}.webp?size=128"
    index = int(guild_id[-1]) % 5 if guild_id[-1:].isdigit() else 0
    return f"{DISCORD_CDN_URL}/embed/avatars/{index}.png"


def parse_guilds(payload: object, endpoint: str) -> list[Guild]:
    """Validate the guild array shape, dropping malformed entries."""
    if not isinstance(payload, list):
        raise DiscordApiError(
            "Unexpected guild list response", status=200, endpoint=endpoint
        )
    guilds = []
    for item in payload:
        try:
            guilds.append(Guild.model_validate(item))
        except ValidationError as e:
            logger.warning(f"Ignoring malformed guild from {endpoint}: {e.error_count()} error(s)")
    return guilds


class DiscordHTTPClient:
    """Shared request plumbing for the user and bot clients.

    Timeouts and transport errors are reported as DiscordApiError, the same
    way as a non-2xx response.
    """

    def __init__(
        self,
        timeout: float = 10.0,
        http: httpx.AsyncClient | None = None,
        api_url: str = DISCORD_API_URL,
    ):
        self.api_url = api_url
        # Shared HTTP client, reuses TCP connections across requests
        self._http = http or httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        """Close the shared HTTP client. Call on app shutdown."""
        await self._http.aclose()

    async def _get(
        self, path: str, authorization: str, params: dict | None = None
    ) -> httpx.Response:
        endpoint = f"GET {path}"
        try:
            response = await self._http.get(
                f"{self.api_url}{path}",
                params=params,
                headers={"Authorization": authorization},
            )
        except httpx.TimeoutException:
            raise DiscordApiError("Request to Discord timed out", endpoint=endpoint) from None
        except httpx.HTTPError as e:
            raise DiscordApiError(
                f"Request to Discord failed: {type(e).__name__}", endpoint=endpoint
            ) from None
        return response

    @staticmethod
    def _raise_for_status(response: httpx.Response, endpoint: str) -> None:
        if response.is_success:
            return
        body = response.text
        if response.status_code == 401:
            raise DiscordUnauthorized(
                "Discord rejected the access token", status=401, body=body, endpoint=endpoint
            )
        retry_after = None
        if response.status_code == 429:
            try:
                retry_after = float(response.json().get("retry_after"))
            except (ValueError, TypeError, AttributeError):
                retry_after = None
        raise DiscordApiError(
            body or response.reason_phrase or f"HTTP {response.status_code}",
            status=response.status_code,
            body=body,
            endpoint=endpoint,
            retry_after=retry_after,
        )

    @staticmethod
    def _json(response: httpx.Response, endpoint: str) -> object:
        """Body of a 2xx response; a non-JSON body (proxy error page) is a DiscordApiError"""
        try:
            return response.json()
        except ValueError:
            raise DiscordApiError(
                "Unexpected non-JSON response",
                status=response.status_code,
                body=response.text[:200],
                endpoint=endpoint,
            ) from None

    async def _get_guild_pages(self, authorization: str) -> list[Guild]:
        """Walk ``/users/@me/guilds`` until a short page is returned."""
        path = "/users/@me/guilds"
        endpoint = f"GET {path}"
        guilds: list[Guild] = []
        after: str | None = None
        while True:
            params: dict = {"limit": GUILDS_PAGE_LIMIT}
            if after:
                params["after"] = after
            response = await self._get(path, authorization, params)
            self._raise_for_status(response, endpoint)
            payload = self._json(response, endpoint)
            page = parse_guilds(payload, endpoint)
            guilds.extend(page)
            if len(payload) < GUILDS_PAGE_LIMIT or not page:
                return guilds
            after = page[-1].id


class DiscordAPIClient(DiscordHTTPClient):
    """Client for Discord endpoints called on behalf of a user"""

    # Scopes requested at dashboard login
    OAUTH_SCOPES = [
        "identify",
        "email",
        "guilds",
        "guilds.members.read",
    ]

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        timeout: float = 10.0,
        http: httpx.AsyncClient | None = None,
        api_url: str = DISCORD_API_URL,
        oauth_url: str = DISCORD_OAUTH_URL,
    ):
        super().__init__(timeout=timeout, http=http, api_url=api_url)
        self.client_id = client_id
        self.client_secret = client_secret
        self.oauth_url = oauth_url

    @property
    def is_configured(self) -> bool:
        """Check if the Discord application credentials are set"""
        return bool(self.client_id and self.client_secret)

    async def refresh_access_token(self, refresh_token: str) -> TokenRefreshResult:
        """Exchange a refresh token for a new token pair.

        Discord rotates refresh tokens: the returned one replaces the old
        one, which stops working. Not retried on failure.
        """
        if not self.is_configured:
            raise ConfigurationError(
                "Server configuration error: missing DISCORD_CLIENT_ID or DISCORD_CLIENT_SECRET"
            )
        if not refresh_token:
            raise TokenRefreshFailed("No Discord refresh token is stored for your account.")

        try:
            response = await self._http.post(
                f"{self.oauth_url}/token",
                data={
                    "grant_type": "refresh_token",
                    "refresh_token": refresh_token,
                },
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                auth=(self.client_id, self.client_secret),
            )
        except httpx.TimeoutException:
            logger.error("Timeout while refreshing Discord token")
            raise TokenRefreshFailed("Discord token refresh timed out.") from None
        except httpx.HTTPError as e:
            logger.error(f"Discord token refresh failed: {type(e).__name__}")
            raise TokenRefreshFailed("Discord token refresh failed.") from None

        if not response.is_success:
            try:
                error = response.json().get("error", f"HTTP {response.status_code}")
            except (ValueError, AttributeError):
                error = f"HTTP {response.status_code}"
            logger.error(f"Discord token refresh rejected: status={response.status_code} error={error}")
            raise TokenRefreshFailed(f"Discord refused to refresh your session ({error}).")

        try:
            data = response.json()
            access_token = data.get("access_token")
            refresh = data.get("refresh_token")
            expires_in = data.get("expires_in")
            expires_in = int(expires_in) if expires_in is not None else None
        except (ValueError, TypeError, AttributeError) as e:
            logger.error(f"Unreadable Discord refresh response: {type(e).__name__}")
            raise TokenRefreshFailed("Discord returned an unreadable token response.") from None

        if not access_token or not isinstance(access_token, str):
            logger.error("No access_token in Discord refresh response")
            raise TokenRefreshFailed("Discord returned no access token.")

        logger.debug("Discord access token refreshed")
        return TokenRefreshResult(
            access_token=access_token,
            refresh_token=refresh if isinstance(refresh, str) and refresh else None,
            expires_in=expires_in if expires_in and expires_in > 0 else None,
        )

    async def get_user_guilds(self, access_token: str) -> list[Guild]:
        """List the guilds of the token's user. Raises DiscordUnauthorized on 401."""
        return await self._get_guild_pages(f"Bearer {access_token}")
