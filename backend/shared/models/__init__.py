"""Shared data models for the dashboard backend."""

from .credential import DEFAULT_EXPIRES_IN, DiscordCredential

__all__ = [
    "DEFAULT_EXPIRES_IN",
    "DiscordCredential",
]
