"""
Moderation log entries posted to a guild's configured modlog channel.

Posting is best effort: a missing channel, missing permissions or a
network failure is logged and never reaches the caller.
"""

from __future__ import annotations

import datetime

import discord

from automodcord.configuration.automod_config import GuildAutomodConfigManager
from automodcord.util.logger import get_logger

logger = get_logger("modlog")

# Embed descriptions are capped by Discord.
MAX_BODY_LENGTH = 4096


def build_log_embed(category: str, emoji: str, title: str, body: str) -> discord.Embed:
    embed = discord.Embed(
        title=f"{emoji} {title}",
        description=body[:MAX_BODY_LENGTH],
        color=discord.Color.dark_teal(),
        timestamp=datetime.datetime.now(datetime.timezone.utc),
    )
    embed.set_footer(text=category)
    return embed


class ModLog:
    """Writes moderation log entries to the modlog channel of each guild."""

    def __init__(self, config_manager: GuildAutomodConfigManager) -> None:
        self.config_manager = config_manager

    async def create_log_entry(
        self, guild: discord.Guild, category: str, emoji: str, title: str, body: str
    ) -> bool:
        """
        Post one log entry.

        Returns:
            True if the entry was posted, False if the guild has no usable modlog channel
            or posting failed.
        """
        config = self.config_manager.get(guild.id)
        if config.modlog_channel_id is None:
            logger.debug("[MODLOG] %s (guild %s, no modlog channel): %s", category, guild.id, body)
            return False

        channel = guild.get_channel(int(config.modlog_channel_id))
        if channel is None or not hasattr(channel, "send"):
            logger.warning("[MODLOG] Modlog channel %s of guild %s is unavailable", config.modlog_channel_id, guild.id)
            return False

        try:
            await channel.send(
                embed=build_log_embed(category, emoji, title, body),
                allowed_mentions=discord.AllowedMentions.none(),
            )
        except discord.HTTPException as exc:
            logger.warning("[MODLOG] Failed to post %s entry in guild %s: %s", category, guild.id, exc)
            return False
        return True
