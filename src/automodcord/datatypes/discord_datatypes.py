"""
Type-safe wrapper classes for Discord identifiers.

Automod state is partitioned by guild and by member; wrapping the raw
snowflakes keeps a guild id from being passed where a user id is expected
and gives every identifier the same hashing and comparison rules.
"""

from __future__ import annotations

from typing import Union

import discord


class Snowflake:
    """
    Base class for a Discord snowflake ID.

    Snowflakes are 64-bit integers that the database stores as integers and
    Discord payloads often carry as strings. Instances compare equal to other
    instances of the same class and to the raw ``int``/``str`` value.

    Example:
        >>> GuildID(123) == GuildID("123")
        True
        >>> int(UserID(42))
        42
    """

    __slots__ = ("_value",)

    def __init__(self, value: Union[str, int, "Snowflake"]) -> None:
        """
        Args:
            value: The snowflake as an int, a numeric string, or another wrapper.

        Raises:
            ValueError: If the value cannot be converted to a valid snowflake.
        """
        if isinstance(value, Snowflake):
            self._value = value._value
        elif isinstance(value, bool):
            raise ValueError(f"Cannot create {type(self).__name__} from bool")
        elif isinstance(value, int):
            self._value = value
        elif isinstance(value, str):
            self._value = int(value.strip())
        else:
            raise ValueError(f"Cannot create {type(self).__name__} from {type(value).__name__}: {value}")

        if self._value < 0:
            raise ValueError(f"{type(self).__name__} cannot be negative: {self._value}")

    def to_int(self) -> int:
        """Return the snowflake as an integer for Discord API and database calls."""
        return self._value

    def __int__(self) -> int:
        return self._value

    def __str__(self) -> str:
        return str(self._value)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._value!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Snowflake):
            return type(self) is type(other) and self._value == other._value
        if isinstance(other, bool):
            return NotImplemented
        if isinstance(other, int):
            return self._value == other
        if isinstance(other, str):
            return str(self._value) == other.strip()
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._value)


class GuildID(Snowflake):
    """Snowflake of a Discord guild."""

    __slots__ = ()

    @classmethod
    def from_guild(cls, guild: discord.Guild) -> "GuildID":
        return cls(guild.id)


class UserID(Snowflake):
    """Snowflake of a Discord user or member."""

    __slots__ = ()

    @classmethod
    def from_user(cls, member: Union[discord.Member, discord.User]) -> "UserID":
        return cls(member.id)


class ChannelID(Snowflake):
    """Snowflake of a guild channel or thread."""

    __slots__ = ()

    @classmethod
    def from_channel(cls, channel: discord.abc.Snowflake) -> "ChannelID":
        return cls(channel.id)


class RoleID(Snowflake):
    """Snowflake of a guild role."""

    __slots__ = ()


SubjectKey = tuple[GuildID, UserID]
"""A member within a guild; the unit all per-user rule state is keyed by."""


def subject_key(message: discord.Message) -> SubjectKey:
    """Return the ``(guild, author)`` key a guild message's rule state lives under."""
    return GuildID(message.guild.id), UserID(message.author.id)
