from __future__ import annotations

import re

import discord
import emoji

from automodcord.automod.rule_state import RuleState
from automodcord.automod.rules.base import StrikeRule
from automodcord.datatypes.automod_datatypes import RuleKind

CUSTOM_EMOJI = re.compile(r"<a?:\w{2,32}:\d{15,25}>")
# Joiners and presentation selectors left over once the emoji around them are removed
EMOJI_GLUE = re.compile(r"[\s\u200d\ufe0e\ufe0f\U0001f3fb-\U0001f3ff]+")


def is_emoji_only(content: str) -> bool:
    """True if ``content`` is non-empty and made of nothing but emoji and whitespace."""
    text = (content or "").strip()
    if not text:
        return False

    custom_count = len(CUSTOM_EMOJI.findall(text))
    text = CUSTOM_EMOJI.sub("", text)
    unicode_count = emoji.emoji_count(text)
    if custom_count + unicode_count == 0:
        return False

    remainder = EMOJI_GLUE.sub("", emoji.replace_emoji(text, replace=""))
    return remainder == ""


class EmojiOnlyRule(StrikeRule):
    """Strikes on messages that contain only emoji, Unicode or custom."""

    kind = RuleKind.EMOJI_ONLY

    @property
    def name(self) -> str:
        return "Emoji-only message"

    async def count_strikes(self, message: discord.Message, state: RuleState) -> int:
        return 1 if is_emoji_only(message.content or "") else 0
