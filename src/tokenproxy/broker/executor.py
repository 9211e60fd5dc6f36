"""Provider executor - runs one operation kind with a credential handle."""

import copy
from typing import Any, Iterable, Mapping, Optional, assert_never

import structlog

from ..errors import ProviderError, UnsupportedOperation
from ..models import CredentialHandle, ProviderResult
from ..redaction import redact_string
from .operations import SUCCESS_STATUS, OperationKind
from .ports import ProviderPort

logger = structlog.get_logger(__name__)


class ProviderExecutor:
    """Dispatches operation kinds to registered ProviderPort adapters."""

    def __init__(self, providers: Iterable[ProviderPort]):
        """
        Initialize provider executor.

        Args:
            providers: Provider adapters, registered under their ``name``
        """
        self.providers: dict[str, ProviderPort] = {}
        for provider in providers:
            self.providers[provider.name] = provider

    def supports(self, provider: str) -> bool:
        return provider in self.providers

    def get_provider(self, provider: str) -> ProviderPort:
        """
        Look up a provider adapter by name.

        Raises:
            UnsupportedOperation: If no adapter is registered for provider
        """
        adapter = self.providers.get(provider)
        if adapter is None:
            raise UnsupportedOperation(
                f"Unsupported provider: {provider}",
                details={
                    "reason": "unsupported_provider",
                    "provider": provider,
                    "supported": sorted(self.providers),
                },
            )
        return adapter

    async def execute(
        self,
        kind: OperationKind,
        payload: Mapping[str, Any],
        credential: CredentialHandle,
        *,
        provider: str,
        correlation_id: Optional[str] = None,
    ) -> ProviderResult:
        """
        Execute an operation against the provider.

        The handle is claimed before the call and discarded afterwards,
        whatever the outcome. The adapter works on its own deep copy of the
        payload.

        Args:
            kind: Operation kind
            payload: Operation parameters
            credential: Handle from CredentialBroker.resolve
            provider: Provider name
            correlation_id: Request correlation ID copied onto the result

        Returns:
            ProviderResult from the adapter, or a success result wrapping its data

        Raises:
            UnsupportedOperation: If provider is not registered
            ProviderError: If the provider call fails (status 502)
        """
        adapter = self.get_provider(provider)
        credential.claim()
        try:
            outcome = await self._dispatch(
                adapter, kind, copy.deepcopy(dict(payload)), credential
            )
        except Exception as e:
            logger.error(
                "provider_execution_failed",
                correlation_id=correlation_id,
                provider=provider,
                operation_type=kind.value,
                error_type=type(e).__name__,
            )
            raise ProviderError(
                redact_string(credential.scrub(str(e))) or "provider error",
                details={"provider": provider, "operation_type": kind.value},
            ) from e
        else:
            if isinstance(outcome, ProviderResult) and outcome.error:
                error = redact_string(credential.scrub(outcome.error))
            else:
                error = None
        finally:
            credential.discard()

        if isinstance(outcome, ProviderResult):
            result = ProviderResult(
                ok=outcome.ok,
                status=outcome.status,
                data=outcome.data,
                error=error,
                correlation_id=correlation_id,
            )
        else:
            result = ProviderResult(
                ok=True,
                status=SUCCESS_STATUS[kind],
                data=outcome,
                correlation_id=correlation_id,
            )

        logger.info(
            "provider_execution_finished",
            correlation_id=correlation_id,
            provider=provider,
            operation_type=kind.value,
            ok=result.ok,
            status=result.status,
        )
        return result

    async def _dispatch(
        self,
        adapter: ProviderPort,
        kind: OperationKind,
        payload: Mapping[str, Any],
        credential: CredentialHandle,
    ) -> Any:
        if kind is OperationKind.CREATE_TABLE:
            return await adapter.create_table(payload, credential)
        elif kind is OperationKind.QUERY:
            return await adapter.query(payload, credential)
        elif kind is OperationKind.INSERT:
            return await adapter.insert(payload, credential)
        elif kind is OperationKind.UPDATE:
            return await adapter.update(payload, credential)
        elif kind is OperationKind.DELETE:
            return await adapter.delete(payload, credential)
        else:
            assert_never(kind)
