from __future__ import annotations

from typing import List

import discord

from automodcord.automod.rule_state import RuleState
from automodcord.automod.rules.base import StrikeRule
from automodcord.datatypes.automod_datatypes import RuleKind


class RepeatsRule(StrikeRule):
    """
    Strikes a member for posting the exact same content as their previous message.

    Parameters are case-insensitive prefixes; messages starting with one of them
    (bot commands, usually) are skipped entirely and do not reset the comparison.
    The first message of a run is not a repeat, so the rule fires after
    ``strike_limit - 1`` repeats.
    """

    kind = RuleKind.REPEATS

    def configure(self, parameters: List[str]) -> None:
        self.ignore = [prefix.lower() for prefix in parameters]

    @property
    def name(self) -> str:
        return f"Max repeats reached ({self.strike_limit})"

    @property
    def strike_threshold(self) -> int:
        return max(1, self.strike_limit - 1)

    def is_ignored(self, content: str) -> bool:
        lowered = content.lower()
        return any(lowered.startswith(prefix) for prefix in self.ignore)

    async def count_strikes(self, message: discord.Message, state: RuleState) -> int:
        content = message.content or ""
        if self.is_ignored(content):
            return 0

        repeated = bool(content) and content == state.last_seen_content
        state.last_seen_content = content
        return 1 if repeated else 0
