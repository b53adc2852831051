from __future__ import annotations

from typing import List

import discord

from automodcord.automod.automod_exceptions import ConfigurationError
from automodcord.automod.rule_state import RuleState
from automodcord.automod.rules.base import StrikeRule
from automodcord.datatypes.automod_datatypes import RuleKind


class ForbiddenCharsRule(StrikeRule):
    """
    Strikes on characters from a denylist.

    Each parameter contributes all of its characters, so ``"ab"`` and ``"a" "b"`` configure
    the same rule. Every forbidden character in a message is one strike.
    """

    kind = RuleKind.FORBIDDEN

    def configure(self, parameters: List[str]) -> None:
        self.forbidden = frozenset("".join(parameters))
        if not self.forbidden:
            raise ConfigurationError("The 'forbidden' rule needs at least one character")

    @property
    def name(self) -> str:
        return "Forbidden characters"

    async def count_strikes(self, message: discord.Message, state: RuleState) -> int:
        return sum(1 for char in (message.content or "") if char in self.forbidden)
