"""
Database coordinator.

Lifecycle:
    1. ``await database.initialize()`` at startup opens the connection and
       creates the schema.
    2. Repositories run their queries through ``database.connection_manager``.
    3. ``await database.shutdown()`` at exit closes the connection.
"""

from __future__ import annotations

from pathlib import Path

from automodcord.database.db_connection import ConnectionManager
from automodcord.database.db_schema import SchemaManager
from automodcord.util.logger import get_logger

logger = get_logger("database")

DB_PATH = Path("./data/automod.db").resolve()


class Database:
    """Owns the connection manager and makes sure the schema exists before use."""

    def __init__(self, db_path: Path = DB_PATH):
        self.db_path = db_path
        self.connection_manager = ConnectionManager()
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> bool:
        """
        Open the database and create the schema.

        Returns:
            True if the database is ready, False if initialization failed.
        """
        if self._initialized:
            logger.debug("[DATABASE] Already initialized, skipping")
            return True

        try:
            await self.connection_manager.open(self.db_path)
            async with self.connection_manager.transaction() as conn:
                await SchemaManager.initialize_schema(conn)
        except Exception as exc:
            logger.error("[DATABASE] Database initialization failed: %s", exc)
            await self.connection_manager.close()
            return False

        self._initialized = True
        logger.info("[DATABASE] Database initialized at %s", self.db_path)
        return True

    async def shutdown(self) -> None:
        if not self._initialized:
            return
        await self.connection_manager.close()
        self._initialized = False
        logger.info("[DATABASE] Database shutdown complete")
