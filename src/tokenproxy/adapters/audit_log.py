"""Audit sink that writes events to the structured log."""

import structlog

from ..broker.ports import AuditPort
from ..models import AuditEvent
from ..redaction import AUDIT_EVENT

audit_logger = structlog.get_logger("tokenproxy.audit")


class StructlogAuditSink(AuditPort):
    """Writes each event as one ``audit_event`` line, exempt from log redaction."""

    async def record(self, event: AuditEvent) -> None:
        audit_logger.info(AUDIT_EVENT, **event.to_dict())
