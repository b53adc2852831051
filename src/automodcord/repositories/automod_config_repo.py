"""
Repository for the automod_config table.

Handles only the automod_config table; the in-memory view lives in
:mod:`automodcord.configuration.automod_config`.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from automodcord.database.db_connection import ConnectionManager
from automodcord.util.logger import get_logger

logger = get_logger("automod_config_repo")


@dataclass
class AutomodConfigRow:
    """Raw DB row for a guild's automod settings."""
    guild_id: int
    prepend: str = ""
    silence_prepend: List[str] = field(default_factory=list)
    roleban_role: Optional[int] = None
    modlog_channel: Optional[int] = None


def _decode_triggers(raw: str | None) -> List[str]:
    try:
        value = json.loads(raw or "[]")
    except json.JSONDecodeError:
        logger.warning("[AUTOMOD CONFIG REPO] Discarding malformed silence triggers: %r", raw)
        return []
    return [str(v) for v in value] if isinstance(value, list) else []


class AutomodConfigRepository:
    """CRUD for the automod_config table only."""

    def __init__(self, connection_manager: ConnectionManager) -> None:
        self.connection_manager = connection_manager

    async def get_all(self) -> Dict[int, AutomodConfigRow]:
        """Fetch every guild's automod settings keyed by guild_id int."""
        async with self.connection_manager.read() as conn:
            async with conn.execute(
                "SELECT guild_id, prepend, silence_prepend, roleban_role, modlog_channel FROM automod_config"
            ) as cursor:
                rows = await cursor.fetchall()

        return {
            row[0]: AutomodConfigRow(
                guild_id=row[0],
                prepend=row[1] or "",
                silence_prepend=_decode_triggers(row[2]),
                roleban_role=row[3],
                modlog_channel=row[4],
            )
            for row in rows
        }

    async def upsert(self, row: AutomodConfigRow) -> None:
        """Insert or update a guild's automod settings."""
        async with self.connection_manager.transaction() as conn:
            await conn.execute(
                """
                INSERT INTO automod_config (guild_id, prepend, silence_prepend, roleban_role, modlog_channel)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(guild_id) DO UPDATE SET
                    prepend         = excluded.prepend,
                    silence_prepend = excluded.silence_prepend,
                    roleban_role    = excluded.roleban_role,
                    modlog_channel  = excluded.modlog_channel
                """,
                (
                    row.guild_id,
                    row.prepend,
                    json.dumps(row.silence_prepend),
                    row.roleban_role,
                    row.modlog_channel,
                ),
            )
