"""
Per-guild automod settings.

Responsibilities:
- Load every guild's automod settings from SQLite at startup
- Serve them from memory to the engine and the dispatcher
- Persist changes made through the ``/automod configure`` command
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional

from automodcord.datatypes.discord_datatypes import ChannelID, GuildID, RoleID
from automodcord.repositories.automod_config_repo import AutomodConfigRepository, AutomodConfigRow
from automodcord.util.logger import get_logger

logger = get_logger("automod_config_manager")


@dataclass(frozen=True, slots=True)
class GuildAutomodConfig:
    """
    Automod settings for one guild.

    Attributes:
        guild_id: The guild these settings belong to.
        prepend: Text put in front of public punishment announcements (often a mod ping).
        silence_triggers: Substrings that silence announcements in a channel for a few seconds.
        roleban_role_id: Role added by the roleban punishment.
        modlog_channel_id: Channel moderation log entries are posted to.
    """

    guild_id: GuildID
    prepend: str = ""
    silence_triggers: List[str] = field(default_factory=list)
    roleban_role_id: Optional[RoleID] = None
    modlog_channel_id: Optional[ChannelID] = None

    @classmethod
    def from_row(cls, row: AutomodConfigRow) -> "GuildAutomodConfig":
        return cls(
            guild_id=GuildID(row.guild_id),
            prepend=row.prepend,
            silence_triggers=list(row.silence_prepend),
            roleban_role_id=RoleID(row.roleban_role) if row.roleban_role else None,
            modlog_channel_id=ChannelID(row.modlog_channel) if row.modlog_channel else None,
        )

    def to_row(self) -> AutomodConfigRow:
        return AutomodConfigRow(
            guild_id=int(self.guild_id),
            prepend=self.prepend,
            silence_prepend=list(self.silence_triggers),
            roleban_role=int(self.roleban_role_id) if self.roleban_role_id else None,
            modlog_channel=int(self.modlog_channel_id) if self.modlog_channel_id else None,
        )


class GuildAutomodConfigManager:
    """In-memory cache of :class:`GuildAutomodConfig`, backed by the automod_config table."""

    def __init__(self, repository: AutomodConfigRepository) -> None:
        self.repository = repository
        self.configs: Dict[GuildID, GuildAutomodConfig] = {}
        self._lock = asyncio.Lock()
        self._loaded = False

    async def async_init(self) -> None:
        """Load all guild settings. Must be awaited before the bot starts handling events."""
        rows = await self.repository.get_all()
        self.configs = {GuildID(guild_id): GuildAutomodConfig.from_row(row) for guild_id, row in rows.items()}
        self._loaded = True
        logger.info("[AUTOMOD CONFIG] Loaded automod settings for %d guild(s)", len(self.configs))

    def get(self, guild_id: GuildID) -> GuildAutomodConfig:
        """Return the guild's settings, or defaults if it never configured automod."""
        guild_id = GuildID(guild_id)
        return self.configs.get(guild_id) or GuildAutomodConfig(guild_id=guild_id)

    async def update(self, guild_id: GuildID, **changes) -> GuildAutomodConfig:
        """
        Apply ``changes`` to the guild's settings and persist them.

        The in-memory copy is only replaced once the write succeeded.
        """
        guild_id = GuildID(guild_id)
        async with self._lock:
            updated = replace(self.get(guild_id), **changes)
            await self.repository.upsert(updated.to_row())
            self.configs[guild_id] = updated
        logger.info("[AUTOMOD CONFIG] Updated automod settings for guild %s: %s", guild_id, sorted(changes))
        return updated
