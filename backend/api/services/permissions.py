"""Guild permission checks.

Discord sends the permission set as a decimal string because it exceeds
2**53. Python ints are arbitrary precision, so the string is parsed with
``int()`` directly; going through ``float`` silently drops the low bits of
large values.
"""

import logging
from collections.abc import Iterable
from enum import IntFlag

from .discord_api import Guild

logger = logging.getLogger(__name__)


class Permissions(IntFlag):
    """Permission bits the dashboard cares about"""

    ADMINISTRATOR = 1 << 3


def parse_permissions(value: str | int | None) -> int:
    """Parse a permission bitmask into an exact integer.

    Raises ValueError for anything that is not a non-negative integer or a
    string of decimal digits.
    """
    if isinstance(value, bool):
        raise ValueError("permissions must not be a boolean")
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, str) and value.strip().isdecimal():
        parsed = int(value.strip())
    else:
        raise ValueError(f"unparseable permissions: {value!r}")
    if parsed < 0:
        raise ValueError("permissions must not be negative")
    return parsed


def has_permission(permissions: int, flag: Permissions) -> bool:
    return permissions & flag == flag


def can_manage(guild: Guild) -> bool:
    """Owner or ADMINISTRATOR. Raises ValueError on bad permissions."""
    if guild.owner is True:
        return True
    return has_permission(parse_permissions(guild.permissions), Permissions.ADMINISTRATOR)


def filter_manageable(guilds: Iterable[Guild]) -> list[Guild]:
    """Keep the guilds the user may configure.

    A guild whose permissions cannot be parsed is dropped; the rest are
    still evaluated.
    """
    manageable = []
    for guild in guilds:
        try:
            if can_manage(guild):
                manageable.append(guild)
        except ValueError as e:
            logger.warning(f"Skipping guild {guild.id}: {e}")
    return manageable
