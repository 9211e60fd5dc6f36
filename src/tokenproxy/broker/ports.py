"""Capability interfaces the broker depends on.

The orchestrator only ever sees these abstract ports; concrete adapters live
in ``tokenproxy.adapters`` and ``tokenproxy.persistence``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional

from ..models import AuditEvent, CredentialHandle, PolicyDecision, ProviderResult


class PolicyPort(ABC):
    """Port: policy decisions and tenant membership."""

    @abstractmethod
    async def tenant_for_user(self, user_id: str) -> Optional[str]:
        """Return the tenant the policy engine associates with a user, if any."""

    @abstractmethod
    async def decide(
        self,
        tenant_id: str,
        user_id: str,
        resource: str,
        action: str,
    ) -> PolicyDecision:
        """Decide whether the user may perform action on resource in tenant."""


class SecretsPort(ABC):
    """Port: credential lookup."""

    @abstractmethod
    async def get_credential(
        self,
        tenant_id: str,
        provider: str,
        token_ref: Optional[str] = None,
    ) -> CredentialHandle:
        """Fetch credential material as an opaque handle.

        Raises:
            MissingCredential: Nothing is configured for the lookup.
            InvalidCredential: The stored credential belongs elsewhere.
        """


class AuditPort(ABC):
    """Port: audit event sink."""

    @abstractmethod
    async def record(self, event: AuditEvent) -> None:
        """Persist or emit one audit event."""


class ProviderPort(ABC):
    """Port: provider client, one method per operation kind.

    Methods return plain result data, or a ``ProviderResult`` when the provider
    answered with its own status. Raising any exception means the I/O failed.
    """

    name: str

    @abstractmethod
    async def create_table(
        self, payload: Mapping[str, Any], credential: CredentialHandle
    ) -> Any | ProviderResult:
        ...

    @abstractmethod
    async def query(
        self, payload: Mapping[str, Any], credential: CredentialHandle
    ) -> Any | ProviderResult:
        ...

    @abstractmethod
    async def insert(
        self, payload: Mapping[str, Any], credential: CredentialHandle
    ) -> Any | ProviderResult:
        ...

    @abstractmethod
    async def update(
        self, payload: Mapping[str, Any], credential: CredentialHandle
    ) -> Any | ProviderResult:
        ...

    @abstractmethod
    async def delete(
        self, payload: Mapping[str, Any], credential: CredentialHandle
    ) -> Any | ProviderResult:
        ...
