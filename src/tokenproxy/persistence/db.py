"""aiosqlite connection to the audit database."""

from pathlib import Path
from typing import Optional

import aiosqlite
import structlog

from .schema import REQUIRED_TABLES, SchemaError

logger = structlog.get_logger(__name__)

# Applied in order to every new connection
CONNECTION_PRAGMAS = (
    ("foreign_keys", "ON"),
    ("journal_mode", "WAL"),
    ("synchronous", "NORMAL"),
    ("busy_timeout", "5000"),
    ("temp_store", "MEMORY"),
)


class DatabaseManager:
    """Owns one lazily opened WAL connection and knows whether the audit schema is in place."""

    def __init__(self, db_path: str | Path):
        self.db_path = Path(db_path)
        self._connection: Optional[aiosqlite.Connection] = None
        self._schema_verified = False

    async def get_connection(self) -> aiosqlite.Connection:
        if self._connection is None:
            self._connection = await self._open()
        return self._connection

    async def _open(self) -> aiosqlite.Connection:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = await aiosqlite.connect(str(self.db_path))
        try:
            for pragma, value in CONNECTION_PRAGMAS:
                await conn.execute(f"PRAGMA {pragma}={value}")
            async with conn.execute("PRAGMA journal_mode") as cursor:
                (journal_mode,) = await cursor.fetchone()
            if journal_mode.lower() != "wal":
                raise RuntimeError(
                    f"Audit database {self.db_path} refused WAL journal mode (got '{journal_mode}')"
                )
        except Exception:
            await conn.close()
            raise

        logger.info("audit_db_connected", db_path=str(self.db_path), journal_mode=journal_mode)
        return conn

    async def verify_schema(self) -> None:
        """
        Check that every table the audit sink writes to exists.

        The result is remembered once the check passes.

        Raises:
            SchemaError: If a required table is missing
        """
        if self._schema_verified:
            return

        conn = await self.get_connection()
        async with conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'") as cursor:
            present = {row[0] for row in await cursor.fetchall()}

        missing = [table for table in REQUIRED_TABLES if table not in present]
        if missing:
            logger.error("audit_schema_missing", db_path=str(self.db_path), missing=missing)
            raise SchemaError(
                f"Audit database {self.db_path} has no {', '.join(missing)} table; "
                "apply migrations with scripts/migrate.py"
            )
        self._schema_verified = True

    async def close(self) -> None:
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            self._schema_verified = False
            logger.info("audit_db_closed", db_path=str(self.db_path))
