"""
Rule definitions, punishments and verdicts for the automod engine.

This module defines the durable :class:`RuleDefinition` an administrator
creates, the :class:`Punishment` tagged value it carries, and the transient
:class:`Verdict` a rule hands to the action dispatcher when it fires.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Sequence

import discord

from automodcord.automod.automod_exceptions import ConfigurationError
from automodcord.datatypes.discord_datatypes import GuildID


class RuleKind(Enum):
    """The closed set of rule kinds, keyed by the name used in commands and storage."""

    EVERYONE = "everyone"
    FORBIDDEN = "forbidden"
    REPEATS = "repeats"
    AD = "ad"
    BLACKLIST = "blacklist"
    EMBEDS = "embeds"
    REGEX = "regex"
    EMOJI_ONLY = "emojionly"
    PRESSURE = "pressure"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, raw: str | "RuleKind") -> "RuleKind":
        """Resolve a user supplied kind name, raising :class:`ConfigurationError` if unknown."""
        if isinstance(raw, RuleKind):
            return raw
        try:
            return cls((raw or "").strip().lower())
        except ValueError:
            valid = ", ".join(kind.value for kind in cls)
            raise ConfigurationError(f"Unknown rule kind '{raw}'. Valid kinds: {valid}") from None


class PunishmentType(Enum):
    """What the dispatcher does once a rule fires."""

    NONE = "none"
    DELETE = "delete"
    ROLEBAN = "roleban"
    KICK = "kick"
    BAN = "ban"
    SOFTBAN = "softban"
    WHISPER = "whisper"
    LOG = "log"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class Punishment:
    """
    Tagged punishment value.

    Attributes:
        type: The punishment tag.
        message: Text sent to the member, only set for :attr:`PunishmentType.WHISPER`.
    """

    type: PunishmentType
    message: str = ""

    @classmethod
    def parse(cls, raw: str) -> "Punishment":
        """
        Parse the stored/command form of a punishment.

        Accepted forms are ``none``, ``delete``, ``roleban``, ``kick``, ``ban``,
        ``softban``, ``log`` and ``whisper:<message>``. Matching is case
        insensitive on the tag; the whisper message keeps its case and may
        itself contain colons.

        Raises:
            ConfigurationError: If the tag is unknown or a whisper has no message.
        """
        text = (raw or "").strip()
        tag, _, rest = text.partition(":")
        try:
            punishment_type = PunishmentType(tag.strip().lower())
        except ValueError:
            valid = ", ".join(
                "whisper:<message>" if p is PunishmentType.WHISPER else p.value for p in PunishmentType
            )
            raise ConfigurationError(f"Unknown punishment '{raw}'. Valid punishments: {valid}") from None

        if punishment_type is PunishmentType.WHISPER:
            message = rest.strip()
            if not message:
                raise ConfigurationError("A whisper punishment needs a message, e.g. `whisper:please stop`")
            return cls(punishment_type, message)

        return cls(punishment_type)

    def __str__(self) -> str:
        if self.type is PunishmentType.WHISPER:
            return f"{self.type.value}:{self.message}"
        return self.type.value


@dataclass(slots=True)
class RuleDefinition:
    """
    Durable configuration of one automod rule in a guild.

    Attributes:
        guild_id: Guild the rule belongs to.
        id: Rule id, unique within the guild and allocated as max existing id + 1.
        kind: Which rule evaluator to build.
        punishment: What happens when the strike limit is reached.
        strike_limit: Number of live strikes needed to fire (>= 1).
        strike_window_seconds: Lifetime of an individual strike (>= 0).
        parameters: Kind specific parameters, in the order given by the admin.
    """

    guild_id: GuildID
    id: int
    kind: RuleKind
    punishment: Punishment
    strike_limit: int
    strike_window_seconds: int
    parameters: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.strike_limit < 1:
            raise ConfigurationError(f"Strike limit must be at least 1, got {self.strike_limit}")
        if self.strike_window_seconds < 0:
            raise ConfigurationError(f"Strike timeout cannot be negative, got {self.strike_window_seconds}")

    def summary(self) -> str:
        """One line description used by the view/add/delete commands."""
        params = f" [{', '.join(self.parameters)}]" if self.parameters else ""
        return f"[{self.id}] {self.kind} {{{self.strike_window_seconds} s}}{params} -> # {self.punishment}"


@dataclass(slots=True)
class Verdict:
    """
    A fired rule, ready to be dispatched.

    Attributes:
        rule_id: Id of the rule that fired.
        punishment: Resolved punishment to carry out.
        reason: Human readable description of the rule.
        message: The message that pushed the subject over the limit.
        side_effects_to_delete: Extra messages to purge regardless of the punishment.
    """

    rule_id: int
    punishment: Punishment
    reason: str
    message: discord.Message
    side_effects_to_delete: Sequence[discord.Message] = field(default_factory=list)
