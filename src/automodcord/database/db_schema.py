"""
Database schema initialization for automod persistence.

Two tables back the automod: ``automod_rules`` holds every rule definition
(ids are per guild, so the key is ``(guild_id, id)``), and ``automod_config``
holds the per-guild announcement, silence, roleban and modlog settings.
"""

import aiosqlite

from automodcord.util.logger import get_logger

logger = get_logger("database_schema")

SCHEMA_VERSION = 1


class SchemaManager:
    """Creates tables, indexes and triggers, and records the schema version."""

    @staticmethod
    async def initialize_schema(db: aiosqlite.Connection) -> None:
        """
        Create or update all tables, indexes and triggers.

        Args:
            db: Open database connection
        """
        await SchemaManager._create_tables(db)
        await SchemaManager._create_indexes(db)
        await SchemaManager._create_triggers(db)
        await SchemaManager._update_schema_version(db)
        await db.commit()
        logger.info("[SCHEMA] Database schema initialized (version %d)", SCHEMA_VERSION)

    @staticmethod
    async def _create_tables(db: aiosqlite.Connection) -> None:
        await db.execute("""
            CREATE TABLE IF NOT EXISTS automod_config (
                guild_id INTEGER PRIMARY KEY,
                prepend TEXT NOT NULL DEFAULT '',
                silence_prepend TEXT NOT NULL DEFAULT '[]',
                roleban_role INTEGER,
                modlog_channel INTEGER,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS automod_rules (
                guild_id INTEGER NOT NULL,
                id INTEGER NOT NULL,
                rule_name TEXT NOT NULL,
                punishment TEXT NOT NULL,
                trigger_limit INTEGER NOT NULL CHECK (trigger_limit >= 1),
                timeout INTEGER NOT NULL CHECK (timeout >= 0),
                params TEXT NOT NULL DEFAULT '[]',
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                PRIMARY KEY (guild_id, id)
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

    @staticmethod
    async def _create_indexes(db: aiosqlite.Connection) -> None:
        await db.execute("CREATE INDEX IF NOT EXISTS idx_automod_rules_guild ON automod_rules(guild_id, id)")

    @staticmethod
    async def _create_triggers(db: aiosqlite.Connection) -> None:
        await db.execute("""
            CREATE TRIGGER IF NOT EXISTS update_automod_config_timestamp
            AFTER UPDATE ON automod_config
            FOR EACH ROW
            BEGIN
                UPDATE automod_config SET updated_at = CURRENT_TIMESTAMP
                WHERE guild_id = NEW.guild_id;
            END
        """)

    @staticmethod
    async def _update_schema_version(db: aiosqlite.Connection) -> None:
        await db.execute("INSERT OR IGNORE INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
