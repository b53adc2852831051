from __future__ import annotations

import json
from typing import List, Optional

import discord

from automodcord.automod.rule_state import RuleState
from automodcord.automod.rules.base import StrikeRule
from automodcord.datatypes.automod_datatypes import RuleKind

# Fields that identify what an embed shows; timestamps, colors and provider
# metadata differ between otherwise identical link previews
EMBED_IDENTITY_FIELDS = ("type", "url", "title", "description")
EMBED_MEDIA_FIELDS = ("image", "video", "thumbnail")

# Discord bulk delete accepts at most 100 messages
MAX_BURST_MESSAGES = 100


def embed_signature(embeds: List[discord.Embed]) -> Optional[str]:
    """Return a stable fingerprint of a message's embeds, or ``None`` if it has none."""
    if not embeds:
        return None

    normalized = []
    for embed in embeds:
        data = embed.to_dict() if hasattr(embed, "to_dict") else dict(embed)
        entry = {key: data.get(key) for key in EMBED_IDENTITY_FIELDS if data.get(key)}
        for key in EMBED_MEDIA_FIELDS:
            media = data.get(key) or {}
            if media.get("url"):
                entry[key] = media["url"]
        fields = data.get("fields") or []
        if fields:
            entry["fields"] = [(f.get("name"), f.get("value")) for f in fields]
        normalized.append(entry)

    return json.dumps(normalized, sort_keys=True, ensure_ascii=False)


class EmbedsRule(StrikeRule):
    """
    Strikes a member for posting the same embed content over and over.

    Uses the same cadence as :class:`RepeatsRule` (the first post is not a
    repeat). When the rule fires, every message of the run of identical embeds
    is handed to the dispatcher for deletion, not only the newest one.
    Messages without embeds are ignored.
    """

    kind = RuleKind.EMBEDS

    @property
    def name(self) -> str:
        return f"Repeated embeds ({self.strike_limit})"

    @property
    def strike_threshold(self) -> int:
        return max(1, self.strike_limit - 1)

    async def count_strikes(self, message: discord.Message, state: RuleState) -> int:
        signature = embed_signature(list(getattr(message, "embeds", []) or []))
        if signature is None:
            return 0

        if signature != state.last_seen_content:
            state.last_seen_content = signature
            state.recent_messages = [message]
            return 0

        state.recent_messages.append(message)
        del state.recent_messages[:-MAX_BURST_MESSAGES]
        return 1

    def burst_to_delete(self, message: discord.Message, state: RuleState) -> List[discord.Message]:
        burst = list(state.recent_messages)
        state.recent_messages = []
        state.last_seen_content = None
        return burst
