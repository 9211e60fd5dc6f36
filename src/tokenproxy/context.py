"""Request correlation context and trusted-header binding."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from .errors import AuthorizationError
from .models import OperationRequest

TENANT_HEADER = "x-tenant-id"
USER_HEADER = "x-user-id"
CORRELATION_HEADER = "x-correlation-id"


def new_correlation_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class CorrelationContext:
    """Identity and correlation ID carried through one request."""

    tenant_id: str
    user_id: str
    correlation_id: str

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> "CorrelationContext":
        """
        Build context from headers set by the upstream auth layer.

        Header names are matched case-insensitively. A missing correlation ID
        is generated once here and reused for the whole request.

        Raises:
            AuthorizationError: If x-tenant-id or x-user-id is missing or blank
        """
        normalized = {str(k).lower(): v for k, v in headers.items()}
        tenant_id = (normalized.get(TENANT_HEADER) or "").strip()
        user_id = (normalized.get(USER_HEADER) or "").strip()
        if not tenant_id or not user_id:
            raise AuthorizationError(
                "missing auth context",
                details={"reason": "missing_auth_context"},
            )
        correlation_id = (normalized.get(CORRELATION_HEADER) or "").strip()
        return cls(
            tenant_id=tenant_id,
            user_id=user_id,
            correlation_id=correlation_id or new_correlation_id(),
        )

    def to_request(
        self,
        provider: str,
        operation_type: str,
        payload: Mapping[str, Any],
        token_ref: Optional[str] = None,
    ) -> OperationRequest:
        return OperationRequest(
            tenant_id=self.tenant_id,
            user_id=self.user_id,
            correlation_id=self.correlation_id,
            provider=provider,
            operation_type=operation_type,
            payload=payload,
            token_ref=token_ref,
        )

    def response_headers(self) -> dict[str, str]:
        return {CORRELATION_HEADER: self.correlation_id}


def request_from_headers(
    headers: Mapping[str, str],
    provider: str,
    operation_type: str,
    payload: Mapping[str, Any],
    token_ref: Optional[str] = None,
) -> OperationRequest:
    """Build an OperationRequest from trusted headers and a request body."""
    context = CorrelationContext.from_headers(headers)
    return context.to_request(provider, operation_type, payload, token_ref)
