from __future__ import annotations

from typing import List

import discord

from automodcord.automod.automod_exceptions import ConfigurationError
from automodcord.automod.rule_state import RuleState
from automodcord.automod.rules.base import StrikeRule
from automodcord.datatypes.automod_datatypes import RuleKind


class BlacklistRule(StrikeRule):
    """
    Strikes on blacklisted phrases, case-insensitively.

    Every occurrence of every phrase is one strike, so ``"foo bar foo"`` against
    ``["foo", "bar"]`` earns three strikes in a single message.
    """

    kind = RuleKind.BLACKLIST

    def configure(self, parameters: List[str]) -> None:
        phrases = [phrase.lower() for phrase in parameters if phrase.strip()]
        if not phrases:
            raise ConfigurationError("The 'blacklist' rule needs at least one phrase")
        # dict.fromkeys keeps the admin's ordering while dropping duplicates
        self.phrases = list(dict.fromkeys(phrases))

    @property
    def name(self) -> str:
        return "Blacklisted phrase"

    def count_occurrences(self, content: str) -> int:
        lowered = content.lower()
        return sum(lowered.count(phrase) for phrase in self.phrases)

    async def count_strikes(self, message: discord.Message, state: RuleState) -> int:
        return self.count_occurrences(message.content or "")
