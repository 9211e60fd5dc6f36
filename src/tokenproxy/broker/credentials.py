"""Credential broker - resolves provider credentials after authorization."""

from typing import Optional

import structlog

from ..errors import AuthorizationError, CredentialError, InvalidCredential, MissingCredential
from ..models import CredentialHandle, PolicyDecision
from .ports import SecretsPort

logger = structlog.get_logger(__name__)


class CredentialBroker:
    """Resolves tenant credentials through a SecretsPort.

    Material never leaves this component except inside the opaque
    CredentialHandle handed to the provider executor.
    """

    def __init__(self, secrets: SecretsPort):
        self.secrets = secrets

    async def resolve(
        self,
        tenant_id: str,
        provider: str,
        token_ref: Optional[str] = None,
        *,
        decision: PolicyDecision,
    ) -> CredentialHandle:
        """
        Resolve the credential for an authorized request.

        Args:
            tenant_id: Requesting tenant
            provider: Provider the credential must belong to
            token_ref: Optional reference to a stored token
            decision: The allow decision issued for this request

        Returns:
            CredentialHandle bound to tenant_id and provider

        Raises:
            AuthorizationError: If no allow decision is supplied
            MissingCredential: If nothing is configured for the lookup
            InvalidCredential: If the credential belongs to another tenant or provider
            CredentialError: If the secrets store fails
        """
        if not isinstance(decision, PolicyDecision) or decision.allow is not True:
            raise AuthorizationError(
                "Credential resolution requires an allow decision",
                details={"reason": "not_authorized"},
            )

        correlation_id = decision.correlation_id

        try:
            handle = await self.secrets.get_credential(tenant_id, provider, token_ref)
        except CredentialError as e:
            logger.warning(
                "credential_resolution_failed",
                correlation_id=correlation_id,
                tenant_id=tenant_id,
                provider=provider,
                token_ref=token_ref,
                code=e.code,
            )
            raise
        except Exception as e:
            logger.error(
                "credential_store_error",
                correlation_id=correlation_id,
                tenant_id=tenant_id,
                provider=provider,
                error_type=type(e).__name__,
            )
            raise CredentialError(
                "Credential store unavailable",
                details={"provider": provider},
            ) from e

        if handle is None:
            raise MissingCredential(
                "Credential not configured",
                details={"provider": provider},
            )

        if not isinstance(handle, CredentialHandle):
            raise CredentialError(
                "Credential store returned an unsupported credential",
                details={"provider": provider},
            )

        if handle.tenant_id != tenant_id or handle.provider != provider:
            handle.discard()
            logger.warning(
                "credential_mismatch_blocked",
                correlation_id=correlation_id,
                tenant_id=tenant_id,
                provider=provider,
                token_ref=token_ref,
                credential_tenant_id=handle.tenant_id,
                credential_provider=handle.provider,
            )
            raise InvalidCredential(
                "Invalid credential",
                details={"provider": provider, "reason": "tenant_or_provider_mismatch"},
            )

        logger.info(
            "credential_resolved",
            correlation_id=correlation_id,
            tenant_id=tenant_id,
            provider=provider,
            token_ref=token_ref,
        )
        return handle
