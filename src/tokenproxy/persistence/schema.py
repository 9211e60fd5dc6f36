"""Audit database schema: checksummed SQL migrations and the table check.

Migrations are the ``NNNN_*.sql`` files shipped in ``migrations/``. Each one
is recorded in ``schema_migrations`` with its SHA-256 so an edited file is
refused instead of silently diverging from the database it was applied to.
"""

import hashlib
import sqlite3
from datetime import datetime
from pathlib import Path

import structlog

logger = structlog.get_logger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "migrations"

# Tables the audit sink writes to
REQUIRED_TABLES = ("audit_log",)

_LEDGER_DDL = """
    CREATE TABLE IF NOT EXISTS schema_migrations (
        migration_name TEXT PRIMARY KEY,
        checksum TEXT NOT NULL,
        applied_at INTEGER NOT NULL
    ) STRICT
"""


class SchemaError(RuntimeError):
    """Audit schema missing or migrations tampered with."""


def migration_checksum(path: Path) -> str:
    return hashlib.sha256(path.read_bytes()).hexdigest()


def list_migrations(migrations_dir: Path = MIGRATIONS_DIR) -> list[Path]:
    """Migration files in the order they must be applied."""
    return sorted(migrations_dir.glob("[0-9]*.sql"))


def migrate(db_path: Path, migrations_dir: Path = MIGRATIONS_DIR) -> list[str]:
    """
    Bring the audit database up to date.

    Already-applied migrations are checked against their recorded checksum
    and skipped; pending ones run in their own transaction.

    Args:
        db_path: SQLite database file, created if missing
        migrations_dir: Directory holding the migration files

    Returns:
        Names of the migrations applied by this call

    Raises:
        SchemaError: If an applied migration file no longer matches its checksum
    """
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    applied_now: list[str] = []
    conn = sqlite3.connect(str(db_path))
    try:
        with conn:
            conn.execute(_LEDGER_DDL)
        recorded = dict(conn.execute("SELECT migration_name, checksum FROM schema_migrations"))

        for path in list_migrations(migrations_dir):
            checksum = migration_checksum(path)
            known = recorded.get(path.name)
            if known is not None:
                if known != checksum:
                    raise SchemaError(
                        f"Migration {path.name} changed after it was applied "
                        f"(recorded {known[:12]}, now {checksum[:12]})"
                    )
                continue

            with conn:
                conn.executescript(path.read_text())
                conn.execute(
                    "INSERT INTO schema_migrations (migration_name, checksum, applied_at) VALUES (?, ?, ?)",
                    (path.name, checksum, int(datetime.now().timestamp())),
                )
            logger.info("migration_applied", migration=path.name, db_path=str(db_path))
            applied_now.append(path.name)
    finally:
        conn.close()

    logger.info("audit_schema_ready", db_path=str(db_path), applied=len(applied_now))
    return applied_now
