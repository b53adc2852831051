"""
Database connection management, one long-lived aiosqlite connection.

SQLite is single-writer, so writes are serialised through
:meth:`ConnectionManager.transaction`, which commits on a clean exit and
rolls back if the body raises. Reads go straight to the connection; WAL
mode lets them run alongside a writer.

Usage
-----
    connection_manager = ConnectionManager()
    await connection_manager.open(DB_PATH)

    async with connection_manager.read() as conn:
        async with conn.execute("SELECT ...") as cursor:
            rows = await cursor.fetchall()

    async with connection_manager.transaction() as conn:
        await conn.execute("INSERT ...")

    await connection_manager.close()
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import aiosqlite

from automodcord.util.logger import get_logger

logger = get_logger("database_connection")

# Applied once when the connection is opened
_PRAGMAS = [
    "PRAGMA journal_mode = WAL",
    "PRAGMA foreign_keys = ON",
    "PRAGMA synchronous = NORMAL",
    "PRAGMA temp_store = MEMORY",
    "PRAGMA busy_timeout = 5000",
]


class ConnectionManager:
    """
    Owner of the bot's single aiosqlite connection.

    Repositories never open their own connection; they receive the one
    yielded by :meth:`read` or :meth:`transaction`.
    """

    def __init__(self) -> None:
        self._conn: aiosqlite.Connection | None = None
        self._write_sem = asyncio.Semaphore(1)
        self._path: Path | None = None

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    async def open(self, path: Path) -> None:
        """
        Open the database file, creating its directory, and apply the pragmas.

        Calling it again while open is a logged no-op.
        """
        if self._conn is not None:
            logger.warning("[DB CONNECTION] open() called but connection already exists, ignoring")
            return

        self._path = path
        path.parent.mkdir(parents=True, exist_ok=True)

        self._conn = await aiosqlite.connect(path)
        self._conn.row_factory = aiosqlite.Row

        for pragma in _PRAGMAS:
            await self._conn.execute(pragma)
        await self._conn.commit()

        logger.info("[DB CONNECTION] Opened connection to %s", path)

    async def close(self) -> None:
        """Checkpoint the WAL and close the connection."""
        if self._conn is None:
            return

        try:
            await self._conn.execute("PRAGMA wal_checkpoint(TRUNCATE)")
            await self._conn.commit()
        except Exception:
            logger.exception("[DB CONNECTION] WAL checkpoint failed during close")
        finally:
            await self._conn.close()
            self._conn = None
            logger.info("[DB CONNECTION] Connection closed")

    @property
    def connection(self) -> aiosqlite.Connection:
        """
        The raw connection.

        Raises:
            RuntimeError: If :meth:`open` has not been awaited yet.
        """
        if self._conn is None:
            raise RuntimeError("ConnectionManager: connection is not open. Await open(path) at startup.")
        return self._conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Serialised write transaction; commits on success, rolls back on error."""
        conn = self.connection

        async with self._write_sem:
            try:
                yield conn
                await conn.commit()
            except Exception:
                await conn.rollback()
                raise

    @asynccontextmanager
    async def read(self) -> AsyncIterator[aiosqlite.Connection]:
        """Read access, symmetrical with :meth:`transaction`; takes no lock."""
        yield self.connection
