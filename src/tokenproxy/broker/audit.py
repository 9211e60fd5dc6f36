"""Audit recorder - hands intent events to the configured sink."""

import structlog

from ..errors import AuditWriteError
from ..models import AuditEvent
from .ports import AuditPort

logger = structlog.get_logger(__name__)


class AuditRecorder:
    """Emits one secret-free AuditEvent per authorized request."""

    def __init__(self, sink: AuditPort):
        self.sink = sink

    async def record(self, event: AuditEvent) -> None:
        """
        Hand an event to the sink before the broker proceeds.

        Only AuditEvent instances are accepted, so nothing but the event's
        declared fields can reach the sink.

        Raises:
            TypeError: If event is not an AuditEvent
            AuditWriteError: If the sink fails
        """
        if not isinstance(event, AuditEvent):
            raise TypeError(f"Expected AuditEvent, got {type(event).__name__}")

        try:
            await self.sink.record(event)
        except Exception as e:
            logger.error(
                "audit_write_failed",
                correlation_id=event.correlation_id,
                tenant_id=event.tenant_id,
                error_type=type(e).__name__,
            )
            raise AuditWriteError(
                "Audit sink unavailable",
                details={"correlation_id": event.correlation_id},
            ) from e

        logger.info(
            "audit_event_recorded",
            correlation_id=event.correlation_id,
            tenant_id=event.tenant_id,
            operation_type=event.operation_type,
            outcome=event.outcome,
        )
