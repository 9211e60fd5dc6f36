"""SQLite-backed audit sink."""

import json
from datetime import datetime
from typing import Any, Optional
import structlog

from ..broker.ports import AuditPort
from ..models import AuditEvent
from .db import DatabaseManager

logger = structlog.get_logger(__name__)


class SqliteAuditSink(AuditPort):
    """Persists audit events to the audit_log table."""

    def __init__(self, db_manager: DatabaseManager):
        """
        Initialize SQLite audit sink.

        Args:
            db_manager: DatabaseManager owning the connection
        """
        self.db_manager = db_manager

    async def record(self, event: AuditEvent) -> None:
        """
        Insert one audit event.

        Args:
            event: AuditEvent to persist; only its to_dict() fields are written

        Raises:
            SchemaError: If the audit_log table has not been migrated
            RuntimeError: If the insert fails
        """
        await self.db_manager.verify_schema()
        row = event.to_dict()
        db = await self.db_manager.get_connection()

        try:
            await db.execute(
                """
                INSERT INTO audit_log (
                    timestamp, action, tenant_id, user_id, correlation_id,
                    operation_type, outcome, metadata
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    int(datetime.now().timestamp()),
                    row["action"],
                    row["tenant_id"],
                    row["user_id"],
                    row["correlation_id"],
                    row["operation_type"],
                    row["outcome"],
                    json.dumps(row["metadata"], sort_keys=True),
                ),
            )
            await db.commit()
        except Exception as e:
            raise RuntimeError(f"Failed to write audit event to {self.db_manager.db_path}: {e}") from e

        logger.debug(
            "audit_event_persisted",
            correlation_id=row["correlation_id"],
            tenant_id=row["tenant_id"],
        )

    async def list_events(
        self,
        correlation_id: Optional[str] = None,
        tenant_id: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        """
        Read audit events back, oldest first.

        Args:
            correlation_id: Only events for this request
            tenant_id: Only events for this tenant

        Returns:
            List of event dicts with the AuditEvent fields plus timestamp
        """
        clauses = []
        params: list[Any] = []
        if correlation_id is not None:
            clauses.append("correlation_id = ?")
            params.append(correlation_id)
        if tenant_id is not None:
            clauses.append("tenant_id = ?")
            params.append(tenant_id)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        db = await self.db_manager.get_connection()
        cursor = await db.execute(
            f"""
            SELECT timestamp, action, tenant_id, user_id, correlation_id,
                   operation_type, outcome, metadata
            FROM audit_log {where}
            ORDER BY id
            """,
            params,
        )
        rows = await cursor.fetchall()
        await cursor.close()

        return [
            {
                "timestamp": r[0],
                "action": r[1],
                "tenant_id": r[2],
                "user_id": r[3],
                "correlation_id": r[4],
                "operation_type": r[5],
                "outcome": r[6],
                "metadata": json.loads(r[7]) if r[7] else {},
            }
            for r in rows
        ]
