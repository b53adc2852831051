from __future__ import annotations

import re
from typing import Dict, List, Set, Tuple

import discord

from automodcord.automod.rule_state import RuleState
from automodcord.automod.rules.base import StrikeRule
from automodcord.datatypes.automod_datatypes import RuleKind
from automodcord.datatypes.discord_datatypes import GuildID
from automodcord.util.logger import get_logger

logger = get_logger("invite_ad_rule")

INVITE_LINK = re.compile(
    r"(?:https?://)?(?:www\.)?(?:discord\.gg|discord(?:app)?\.com/invite)/([A-Za-z0-9-]+)",
    re.IGNORECASE,
)

# Guild invites change rarely; refetching on every message would hit the rate limit
MIN_INVITE_CACHE_SECONDS = 300


def extract_invite_codes(content: str) -> List[str]:
    """Return every invite code linked in ``content``, in order of appearance."""
    return INVITE_LINK.findall(content or "")


class InviteAdRule(StrikeRule):
    """
    Strikes on invite links to other servers.

    Links to the current guild (its vanity code or any of its invites) are
    allowed, as are codes given as parameters. Each foreign invite is one strike.
    """

    kind = RuleKind.AD

    def configure(self, parameters: List[str]) -> None:
        allowed = set()
        for param in parameters:
            codes = extract_invite_codes(param)
            allowed.update(code.lower() for code in (codes or [param.strip()]))
        self.allowed_codes: Set[str] = allowed
        self._guild_invites: Dict[GuildID, Tuple[float, Set[str]]] = {}

    @property
    def name(self) -> str:
        return "Advertising other servers"

    @property
    def cache_seconds(self) -> float:
        return max(self.strike_window_seconds, MIN_INVITE_CACHE_SECONDS)

    async def own_invite_codes(self, guild: discord.Guild) -> Set[str]:
        """Codes that lead to ``guild`` itself, fetched at most once per cache period."""
        guild_id = GuildID(guild.id)
        now = self.clock()
        cached = self._guild_invites.get(guild_id)
        if cached is not None and now - cached[0] < self.cache_seconds:
            return cached[1]

        codes: Set[str] = set()
        vanity = getattr(guild, "vanity_url_code", None)
        if vanity:
            codes.add(vanity.lower())
        try:
            codes.update(invite.code.lower() for invite in await guild.invites())
        except discord.HTTPException as exc:
            # Without Manage Server only the vanity code is known to be ours
            logger.debug("[INVITE AD RULE] Could not fetch invites for guild %s: %s", guild.id, exc)

        self._guild_invites[guild_id] = (now, codes)
        return codes

    async def count_strikes(self, message: discord.Message, state: RuleState) -> int:
        codes = [code.lower() for code in extract_invite_codes(message.content or "")]
        codes = [code for code in codes if code not in self.allowed_codes]
        if not codes:
            return 0

        own_codes = await self.own_invite_codes(message.guild)
        return sum(1 for code in codes if code not in own_codes)
