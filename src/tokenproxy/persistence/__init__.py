# Persistence Layer - SQLite audit database, schema and audit event storage

from .db import DatabaseManager
from .schema import MIGRATIONS_DIR, SchemaError, migrate
from .audit import SqliteAuditSink

__all__ = [
    "DatabaseManager",
    "MIGRATIONS_DIR",
    "SchemaError",
    "migrate",
    "SqliteAuditSink",
]
