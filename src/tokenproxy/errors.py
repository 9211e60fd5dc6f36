"""Structured broker errors.

Every failure the broker can report is a ``BrokerError`` subclass carrying a
stable ``code``, the HTTP status an API binding should use, and whether the
caller may retry. Messages and details must never contain credential material.
"""

from __future__ import annotations

from typing import Any


class BrokerError(Exception):
    """Base class for all typed broker failures."""

    code = "broker_error"
    http_status = 500
    retryable = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
            "retryable": self.retryable,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class AuthorizationError(BrokerError):
    """Tenant/user/action denied, or the auth context is invalid."""

    code = "unauthorized"
    http_status = 401


class CredentialError(BrokerError):
    """Credential could not be resolved for the request."""

    code = "credential_error"
    http_status = 401


class MissingCredential(CredentialError):
    """No credential is configured for the tenant/provider."""

    code = "missing_credential"


class InvalidCredential(CredentialError):
    """Stored credential does not belong to the requesting tenant or provider."""

    code = "invalid_credential"


class UnsupportedOperation(BrokerError):
    """Unknown operation kind or provider."""

    code = "unsupported_operation"
    http_status = 400


class InvalidRequest(BrokerError):
    """Operation payload is malformed."""

    code = "invalid_request"
    http_status = 400


class ProviderError(BrokerError):
    """Provider I/O failed after the intent was audited."""

    code = "provider_error"
    http_status = 502


class AuditWriteError(BrokerError):
    """Audit sink rejected the intent record; nothing was executed."""

    code = "audit_unavailable"
    http_status = 500


class FeatureDisabled(BrokerError):
    """Token proxy feature flag is off."""

    code = "feature_disabled"
    http_status = 503


class OperationTimeout(BrokerError):
    """Pipeline exceeded the configured timeout."""

    code = "timeout"
    http_status = 504
    retryable = True
