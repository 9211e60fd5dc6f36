"""Unit tests for persistence layer (database, migrations, audit sink)."""

import sqlite3
from unittest.mock import patch

import aiosqlite
import pytest
import structlog

from scripts import migrate as migrate_script
from tokenproxy.models import AuditEvent
from tokenproxy.persistence import DatabaseManager, SchemaError, SqliteAuditSink, migrate
from tokenproxy.persistence.schema import MIGRATIONS_DIR, list_migrations, migration_checksum


def _event(correlation_id="corr-123", tenant_id="tenant-1", **metadata):
    return AuditEvent(
        action="operation",
        tenant_id=tenant_id,
        user_id="user-1",
        correlation_id=correlation_id,
        operation_type="create_table",
        metadata=metadata,
    )


@pytest.fixture
async def db_manager(tmp_path):
    db_path = tmp_path / "test.db"
    migrate(db_path)
    manager = DatabaseManager(db_path)
    yield manager
    await manager.close()


# Database Connection Tests

@pytest.mark.asyncio
async def test_get_connection_wal_mode(tmp_path):
    """Verify WAL mode is enabled on database connection."""
    db_manager = DatabaseManager(tmp_path / "test.db")

    conn = await db_manager.get_connection()

    cursor = await conn.execute("PRAGMA journal_mode")
    mode = await cursor.fetchone()
    await cursor.close()

    assert mode[0].lower() == "wal", "WAL mode should be enabled"

    await db_manager.close()


@pytest.mark.asyncio
async def test_get_connection_pragmas(tmp_path):
    """Verify all required pragmas are set."""
    db_manager = DatabaseManager(tmp_path / "test.db")

    conn = await db_manager.get_connection()

    cursor = await conn.execute("PRAGMA foreign_keys")
    assert (await cursor.fetchone())[0] == 1
    await cursor.close()

    cursor = await conn.execute("PRAGMA busy_timeout")
    assert (await cursor.fetchone())[0] == 5000
    await cursor.close()

    await db_manager.close()


@pytest.mark.asyncio
async def test_connection_reused(tmp_path):
    db_manager = DatabaseManager(tmp_path / "test.db")

    conn1 = await db_manager.get_connection()
    conn2 = await db_manager.get_connection()

    assert conn1 is conn2, "Connection should be reused"

    await db_manager.close()


@pytest.mark.asyncio
async def test_verify_schema_after_migration(db_manager):
    await db_manager.verify_schema()
    await db_manager.verify_schema()


@pytest.mark.asyncio
async def test_verify_schema_reports_missing_table(tmp_path):
    db_manager = DatabaseManager(tmp_path / "empty.db")

    try:
        with pytest.raises(SchemaError, match="audit_log"):
            await db_manager.verify_schema()
    finally:
        await db_manager.close()


# Migration Tests

def test_migration_checksum_sha256(tmp_path):
    test_file = tmp_path / "test.sql"
    test_file.write_text("CREATE TABLE test (id INTEGER PRIMARY KEY);")

    checksum = migration_checksum(test_file)

    assert len(checksum) == 64
    assert checksum == migration_checksum(test_file)


def test_list_migrations_lexical_order(tmp_path):
    (tmp_path / "0002_second.sql").write_text("-- Second")
    (tmp_path / "0001_first.sql").write_text("-- First")
    (tmp_path / "notes.sql").write_text("-- not a migration")

    migrations = list_migrations(tmp_path)

    assert [path.name for path in migrations] == ["0001_first.sql", "0002_second.sql"]


def test_shipped_migrations_found():
    assert [path.name for path in list_migrations()] == ["0001_audit_log.sql"]
    assert MIGRATIONS_DIR.is_dir()


def test_migrate_idempotent(tmp_path):
    db_path = tmp_path / "test.db"

    assert migrate(db_path) == ["0001_audit_log.sql"]
    assert migrate(db_path) == []


def test_migrate_tamper_detection(tmp_path):
    db_path = tmp_path / "test.db"
    migrations_dir = tmp_path / "migrations"
    migrations_dir.mkdir()
    migration = migrations_dir / "0001_init.sql"
    migration.write_text("CREATE TABLE test (id INTEGER PRIMARY KEY) STRICT;")

    migrate(db_path, migrations_dir)
    migration.write_text("CREATE TABLE test (id INTEGER, secret TEXT);")

    with pytest.raises(SchemaError, match="changed after it was applied"):
        migrate(db_path, migrations_dir)


# Schema Tests

@pytest.mark.asyncio
async def test_audit_log_table_structure(tmp_path):
    """audit_log columns mirror AuditEvent; there is nowhere to store a credential."""
    db_path = tmp_path / "test.db"
    migrate(db_path)

    conn = await aiosqlite.connect(str(db_path))
    cursor = await conn.execute("PRAGMA table_info(audit_log)")
    columns = await cursor.fetchall()
    await cursor.close()
    await conn.close()

    assert {col[1] for col in columns} == {
        "id", "timestamp", "action", "tenant_id", "user_id",
        "correlation_id", "operation_type", "outcome", "metadata",
    }


def test_strict_table_type_enforcement(tmp_path):
    db_path = tmp_path / "test.db"
    migrate(db_path)

    conn = sqlite3.connect(str(db_path))
    try:
        with pytest.raises(sqlite3.IntegrityError):
            conn.execute(
                "INSERT INTO audit_log (timestamp, action, tenant_id, user_id, correlation_id, operation_type, outcome) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                ("not_an_integer", "operation", "t", "u", "c", "query", "intent"),
            )
    finally:
        conn.close()


# SqliteAuditSink Tests

@pytest.mark.asyncio
async def test_record_and_list(db_manager):
    sink = SqliteAuditSink(db_manager)

    await sink.record(_event(provider="supabase", policy_id="p-1"))

    events = await sink.list_events(correlation_id="corr-123")
    assert len(events) == 1
    assert events[0]["tenant_id"] == "tenant-1"
    assert events[0]["outcome"] == "intent"
    assert events[0]["metadata"] == {"provider": "supabase", "policy_id": "p-1"}
    assert isinstance(events[0]["timestamp"], int)


@pytest.mark.asyncio
async def test_list_filters_by_tenant(db_manager):
    sink = SqliteAuditSink(db_manager)
    await sink.record(_event(correlation_id="corr-1", tenant_id="tenant-1"))
    await sink.record(_event(correlation_id="corr-2", tenant_id="tenant-2"))
    await sink.record(_event(correlation_id="corr-3", tenant_id="tenant-1"))

    events = await sink.list_events(tenant_id="tenant-1")

    assert [e["correlation_id"] for e in events] == ["corr-1", "corr-3"]
    assert len(await sink.list_events()) == 3


@pytest.mark.asyncio
async def test_record_without_migrations_fails(tmp_path):
    db_manager = DatabaseManager(tmp_path / "empty.db")
    sink = SqliteAuditSink(db_manager)

    try:
        with pytest.raises(SchemaError, match="apply migrations"):
            await sink.record(_event())
    finally:
        await db_manager.close()


# Migration Script Tests

class TestMigrateScript:
    def teardown_method(self):
        structlog.reset_defaults()

    def test_migrates_given_path(self, tmp_path, capsys):
        db_path = tmp_path / "cli.db"

        assert migrate_script.main([str(db_path)]) == 0
        assert "0001_audit_log.sql" in capsys.readouterr().out

        assert migrate_script.main([str(db_path)]) == 0
        assert "already up to date" in capsys.readouterr().out

    def test_path_from_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TOKENPROXY_DATABASE_PATH", str(tmp_path / "env.db"))

        assert migrate_script.resolve_db_path([]) == tmp_path / "env.db"

    @patch("scripts.migrate.migrate", side_effect=SchemaError("Migration 0001_audit_log.sql changed"))
    def test_schema_error_exit_code(self, mock_migrate, tmp_path, capsys):
        assert migrate_script.main([str(tmp_path / "cli.db")]) == 1
        assert "changed" in capsys.readouterr().err
