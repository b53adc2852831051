"""
Repository for the automod_rules table.

This is the rule registry's persistence collaborator: it loads rule
definitions in evaluation order, inserts new ones under the id the
registry allocated, and deletes them by ``(guild_id, id)``.
"""

from __future__ import annotations

import json
from typing import Dict, List, Optional

from automodcord.automod.automod_exceptions import ConfigurationError
from automodcord.database.db_connection import ConnectionManager
from automodcord.datatypes.automod_datatypes import Punishment, RuleDefinition, RuleKind
from automodcord.datatypes.discord_datatypes import GuildID
from automodcord.util.logger import get_logger

logger = get_logger("automod_rules_repo")

_SELECT_COLUMNS = "guild_id, id, rule_name, punishment, trigger_limit, timeout, params"


def _row_to_definition(row) -> Optional[RuleDefinition]:
    """Convert a stored row, or return ``None`` (logged) if it no longer parses."""
    try:
        params = json.loads(row[6] or "[]")
        if not isinstance(params, list):
            raise ConfigurationError(f"params is a {type(params).__name__}, expected a list")
        return RuleDefinition(
            guild_id=GuildID(row[0]),
            id=int(row[1]),
            kind=RuleKind.parse(row[2]),
            punishment=Punishment.parse(row[3]),
            strike_limit=int(row[4]),
            strike_window_seconds=int(row[5]),
            parameters=[str(p) for p in params],
        )
    except (ConfigurationError, ValueError, TypeError) as exc:
        logger.warning("[AUTOMOD RULES REPO] Skipping unreadable rule %s in guild %s: %s", row[1], row[0], exc)
        return None


class AutomodRulesRepository:
    """CRUD for the automod_rules table only."""

    def __init__(self, connection_manager: ConnectionManager) -> None:
        self.connection_manager = connection_manager

    async def load_rules(self, guild_id: GuildID) -> List[RuleDefinition]:
        """Return one guild's rules ordered by id, which is their insertion order."""
        async with self.connection_manager.read() as conn:
            async with conn.execute(
                f"SELECT {_SELECT_COLUMNS} FROM automod_rules WHERE guild_id = ? ORDER BY id",
                (int(guild_id),),
            ) as cursor:
                rows = await cursor.fetchall()

        return [d for d in map(_row_to_definition, rows) if d is not None]

    async def load_all_rules(self) -> Dict[GuildID, List[RuleDefinition]]:
        """Return every guild's rules, each list ordered by id."""
        async with self.connection_manager.read() as conn:
            async with conn.execute(
                f"SELECT {_SELECT_COLUMNS} FROM automod_rules ORDER BY guild_id, id"
            ) as cursor:
                rows = await cursor.fetchall()

        result: Dict[GuildID, List[RuleDefinition]] = {}
        for row in rows:
            definition = _row_to_definition(row)
            if definition is not None:
                result.setdefault(definition.guild_id, []).append(definition)
        return result

    async def max_rule_id(self, guild_id: GuildID) -> int:
        """Highest id stored for the guild, counting rows that no longer load. 0 if none."""
        async with self.connection_manager.read() as conn:
            async with conn.execute(
                "SELECT COALESCE(MAX(id), 0) FROM automod_rules WHERE guild_id = ?",
                (int(guild_id),),
            ) as cursor:
                row = await cursor.fetchone()
        return int(row[0])

    async def insert_rule(self, definition: RuleDefinition) -> int:
        """Persist ``definition`` under its pre-allocated id and return that id."""
        async with self.connection_manager.transaction() as conn:
            await conn.execute(
                """
                INSERT INTO automod_rules (guild_id, id, rule_name, punishment, trigger_limit, timeout, params)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    int(definition.guild_id),
                    definition.id,
                    definition.kind.value,
                    str(definition.punishment),
                    definition.strike_limit,
                    definition.strike_window_seconds,
                    json.dumps(definition.parameters),
                ),
            )
        logger.debug("[AUTOMOD RULES REPO] Inserted rule %s for guild %s", definition.id, definition.guild_id)
        return definition.id

    async def delete_rule(self, guild_id: GuildID, rule_id: int) -> bool:
        """Delete one rule. Returns False if no such rule was stored."""
        async with self.connection_manager.transaction() as conn:
            cursor = await conn.execute(
                "DELETE FROM automod_rules WHERE guild_id = ? AND id = ?",
                (int(guild_id), int(rule_id)),
            )
            deleted = cursor.rowcount > 0
            await cursor.close()
        return deleted
