from __future__ import annotations

import re
from typing import List

import discord

from automodcord.automod.automod_exceptions import ConfigurationError
from automodcord.automod.rule_state import RuleState
from automodcord.automod.rules.base import StrikeRule
from automodcord.datatypes.automod_datatypes import RuleKind
from automodcord.datatypes.discord_datatypes import RoleID

BROADCAST_MENTION = re.compile(r"@(everyone|here)\b", re.IGNORECASE)
BROADCAST_ROLE_NAMES = {"everyone", "here", "@everyone", "@here"}


class EveryoneRule(StrikeRule):
    """
    Strikes on attempted ``@everyone``/``@here`` pings.

    The attempt counts whether or not the member is allowed to ping, as do
    mentions of roles named everyone/here and of any role whose id is given
    as a parameter. One strike per offending message.
    """

    kind = RuleKind.EVERYONE

    def configure(self, parameters: List[str]) -> None:
        try:
            self.broadcast_roles = {RoleID(param) for param in parameters}
        except ValueError as exc:
            raise ConfigurationError(f"The 'everyone' rule takes role ids: {exc}") from exc

    @property
    def name(self) -> str:
        return "Attempted @everyone mention"

    def is_broadcast_attempt(self, message: discord.Message) -> bool:
        if getattr(message, "mention_everyone", False):
            return True
        if BROADCAST_MENTION.search(message.content or ""):
            return True
        if any(RoleID(role_id) in self.broadcast_roles for role_id in getattr(message, "raw_role_mentions", [])):
            return True
        return any(
            (getattr(role, "name", "") or "").lower() in BROADCAST_ROLE_NAMES
            for role in getattr(message, "role_mentions", [])
        )

    async def count_strikes(self, message: discord.Message, state: RuleState) -> int:
        return 1 if self.is_broadcast_attempt(message) else 0
