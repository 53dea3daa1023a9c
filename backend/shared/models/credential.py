"""Data model for the discord_credentials table."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

# Discord access tokens are issued for 7 days
DEFAULT_EXPIRES_IN = 604800


@dataclass
class DiscordCredential:
    """Discord OAuth token pair owned by one dashboard user.

    Token values are excluded from ``repr`` so the record can be logged.
    """

    user_id: str
    access_token: str = field(repr=False)
    refresh_token: str = field(repr=False)
    expires_at: datetime
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def issue(
        cls,
        user_id: str,
        access_token: str,
        refresh_token: str,
        expires_in: int | None = None,
        *,
        now: datetime | None = None,
    ) -> DiscordCredential:
        """Build a credential from a token endpoint response."""
        now = now or datetime.now(UTC)
        lifetime = expires_in if expires_in is not None else DEFAULT_EXPIRES_IN
        return cls(
            user_id=user_id,
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=now + timedelta(seconds=lifetime),
        )

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or datetime.now(UTC)) >= self.expires_at
