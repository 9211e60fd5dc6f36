"""Broker data model.

Every object here lives inside a single ``execute_operation`` call. The
``AuditEvent`` shape is the guarantee that audit records stay secret-free: it
has no field able to hold a ``CredentialHandle`` and its metadata only accepts
plain scalars.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional

from .errors import InvalidCredential

AUDIT_ACTION_OPERATION = "operation"
AUDIT_OUTCOME_INTENT = "intent"

_SCALAR_TYPES = (str, int, float, bool, type(None))


@dataclass(frozen=True)
class OperationRequest:
    """Immutable request to run one provider operation for a tenant.

    The payload is deep-copied on construction and exposed read-only at the
    top level, so later changes to the caller's dicts never reach the request.
    """

    tenant_id: str
    user_id: str
    correlation_id: str
    provider: str
    operation_type: str
    payload: Mapping[str, Any] = field(default_factory=dict)
    token_ref: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.payload, Mapping):
            # Left as-is so payload validation can report it as invalid_request
            return
        object.__setattr__(self, "payload", MappingProxyType(copy.deepcopy(dict(self.payload))))


@dataclass(frozen=True)
class PolicyDecision:
    """Allow/deny verdict for a {tenant, user, resource, action} tuple."""

    allow: bool
    reason: Optional[str] = None
    policy_id: Optional[str] = None
    correlation_id: Optional[str] = None


class CredentialHandle:
    """Opaque reference to provider secret material.

    Only ``provider``, ``tenant_id`` and ``token_ref`` are readable. Material is
    reachable through ``reveal()`` alone, may be claimed for exactly one
    provider call and is wiped by ``discard()``. The handle refuses to be
    pickled or copied and never prints its material.
    """

    __slots__ = ("provider", "tenant_id", "token_ref", "_material", "_claimed")

    def __init__(
        self,
        provider: str,
        tenant_id: str,
        material: Mapping[str, str],
        token_ref: Optional[str] = None,
    ):
        self.provider = provider
        self.tenant_id = tenant_id
        self.token_ref = token_ref
        self._material = dict(material)
        self._claimed = False

    def reveal(self, name: str) -> str:
        """Return one secret value by name (e.g. ``url``, ``key``, ``secret``)."""
        if name not in self._material:
            raise KeyError(f"credential has no field {name!r}")
        return self._material[name]

    def has(self, name: str) -> bool:
        return name in self._material

    def scrub(self, text: str) -> str:
        """Replace every occurrence of this handle's secret values in text."""
        for value in self._material.values():
            if value:
                text = text.replace(value, "[REDACTED]")
        return text

    def claim(self) -> None:
        """Mark the handle as used; a handle serves a single provider call."""
        if self._claimed:
            raise InvalidCredential(
                "credential handle already consumed",
                details={"provider": self.provider},
            )
        self._claimed = True

    def discard(self) -> None:
        self._material.clear()
        self._claimed = True

    @property
    def discarded(self) -> bool:
        return self._claimed and not self._material

    def __repr__(self) -> str:
        return (
            f"<CredentialHandle provider={self.provider!r} "
            f"tenant_id={self.tenant_id!r} fields={sorted(self._material)}>"
        )

    __str__ = __repr__

    def __reduce__(self):
        raise TypeError("CredentialHandle cannot be serialized")

    def __copy__(self):
        raise TypeError("CredentialHandle cannot be copied")

    def __deepcopy__(self, memo):
        raise TypeError("CredentialHandle cannot be copied")


@dataclass(frozen=True, slots=True)
class AuditEvent:
    """Secret-free record of an authorized operation's intent."""

    action: str
    tenant_id: str
    user_id: str
    correlation_id: str
    operation_type: str
    outcome: str = AUDIT_OUTCOME_INTENT
    metadata: Mapping[str, str | int | float | bool | None] = field(default_factory=dict)

    def __post_init__(self):
        for name in ("action", "tenant_id", "user_id", "correlation_id", "operation_type", "outcome"):
            value = getattr(self, name)
            if not isinstance(value, str):
                raise TypeError(f"AuditEvent.{name} must be str, got {type(value).__name__}")

        if not isinstance(self.metadata, Mapping):
            raise TypeError("AuditEvent.metadata must be a mapping")
        clean: dict[str, Any] = {}
        for key, value in self.metadata.items():
            if not isinstance(key, str):
                raise TypeError("AuditEvent.metadata keys must be str")
            # bool is an int subclass; handles and containers are neither
            if isinstance(value, CredentialHandle) or not isinstance(value, _SCALAR_TYPES):
                raise TypeError(
                    f"AuditEvent.metadata[{key!r}] must be a scalar, got {type(value).__name__}"
                )
            clean[key] = value
        object.__setattr__(self, "metadata", MappingProxyType(clean))

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action,
            "tenant_id": self.tenant_id,
            "user_id": self.user_id,
            "correlation_id": self.correlation_id,
            "operation_type": self.operation_type,
            "outcome": self.outcome,
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True)
class ProviderResult:
    """Typed result of a provider operation."""

    ok: bool
    status: int
    data: Any = None
    error: Optional[str] = None
    correlation_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"ok": self.ok, "status": self.status}
        if self.data is not None:
            body["data"] = self.data
        if self.error is not None:
            body["error"] = self.error
        if self.correlation_id is not None:
            body["correlation_id"] = self.correlation_id
        return body
