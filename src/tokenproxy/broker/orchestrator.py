"""Broker orchestrator - sequences authorization, credentials, audit and execution."""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Optional

import structlog
from structlog.contextvars import bound_contextvars

from ..errors import BrokerError, FeatureDisabled, OperationTimeout
from ..models import (
    AUDIT_ACTION_OPERATION,
    AUDIT_OUTCOME_INTENT,
    AuditEvent,
    OperationRequest,
    ProviderResult,
)
from ..config.manager import ConfigManager
from .audit import AuditRecorder
from .authorization import AuthorizationGate
from .credentials import CredentialBroker
from .executor import ProviderExecutor
from .operations import parse_operation_kind, policy_action, validate_payload
from .ports import AuditPort, PolicyPort, ProviderPort, SecretsPort

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30


class BrokerState(str, Enum):
    PENDING = "pending"
    AUTHORIZED = "authorized"
    CREDENTIALED = "credentialed"
    AUDITED = "audited"
    EXECUTED = "executed"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class InternalBrokerError(BrokerError):
    """Unexpected failure inside the broker itself."""

    code = "internal_error"
    http_status = 500


@dataclass
class BrokerResult:
    """Outcome of one execute_operation call.

    ``state`` is terminal (SUCCEEDED or FAILED); ``reached`` is the last
    pipeline step completed before it, so a FAILED result with ``reached`` at
    AUDITED means the intent was logged but the outcome is unknown or failed.
    """

    correlation_id: str
    state: BrokerState
    reached: BrokerState
    result: Optional[ProviderResult] = None
    error: Optional[BrokerError] = None

    @property
    def ok(self) -> bool:
        return self.state is BrokerState.SUCCEEDED

    @property
    def intent_logged(self) -> bool:
        return self.reached in (BrokerState.AUDITED, BrokerState.EXECUTED)

    @property
    def http_status(self) -> int:
        if self.error is not None:
            return self.error.http_status
        if self.result is not None:
            return self.result.status
        return 500

    def to_response(self) -> tuple[int, dict[str, Any]]:
        """Status code and JSON body for an HTTP binding."""
        if self.error is not None:
            body = {
                "ok": False,
                "error": self.error.to_dict(),
                "correlation_id": self.correlation_id,
            }
        else:
            body = self.result.to_dict() if self.result is not None else {"ok": False}
            body["correlation_id"] = self.correlation_id
        return self.http_status, body


class _Progress:
    """Tracks the last completed step of one request."""

    def __init__(self):
        self.state = BrokerState.PENDING

    def advance(self, state: BrokerState) -> None:
        logger.debug("broker_state_changed", from_state=self.state.value, to_state=state.value)
        self.state = state


class BrokerOrchestrator:
    """Single entry point for executing provider operations on behalf of a tenant."""

    def __init__(
        self,
        gate: AuthorizationGate,
        credentials: CredentialBroker,
        audit: AuditRecorder,
        executor: ProviderExecutor,
        config_manager: Optional[ConfigManager] = None,
    ):
        """
        Initialize broker orchestrator.

        Args:
            gate: AuthorizationGate wrapping the policy port
            credentials: CredentialBroker wrapping the secrets port
            audit: AuditRecorder wrapping the audit sink
            executor: ProviderExecutor with registered providers
            config_manager: ConfigManager for timeout and feature flag (optional for tests)
        """
        self.gate = gate
        self.credentials = credentials
        self.audit = audit
        self.executor = executor
        self.config_manager = config_manager

    @classmethod
    def from_ports(
        cls,
        policy: PolicyPort,
        secrets: SecretsPort,
        audit_sink: AuditPort,
        providers: Iterable[ProviderPort],
        config_manager: Optional[ConfigManager] = None,
    ) -> "BrokerOrchestrator":
        return cls(
            gate=AuthorizationGate(policy),
            credentials=CredentialBroker(secrets),
            audit=AuditRecorder(audit_sink),
            executor=ProviderExecutor(providers),
            config_manager=config_manager,
        )

    async def execute_operation(self, request: OperationRequest) -> BrokerResult:
        """
        Run one operation through the broker.

        Order (NON-NEGOTIABLE):
        1. Feature flag, operation kind, payload and provider checks (no side effects)
        2. Authorize tenant/user/action          PENDING -> AUTHORIZED
        3. Resolve credential                    -> CREDENTIALED
        4. Record intent audit event             -> AUDITED
        5. Execute provider operation            -> EXECUTED
        6. SUCCEEDED or FAILED from ProviderResult.ok

        Any error stops the pipeline where it occurs. Broker errors are
        returned in the BrokerResult, never raised.

        Args:
            request: Immutable operation request

        Returns:
            BrokerResult with terminal state, provider result or typed error
        """
        progress = _Progress()

        with bound_contextvars(
            correlation_id=request.correlation_id,
            tenant_id=request.tenant_id,
            user_id=request.user_id,
        ):
            if not self._feature_enabled():
                return self._failed(
                    request,
                    progress,
                    FeatureDisabled("Token proxy disabled", details={"flag": "features.token_proxy_enabled"}),
                )

            try:
                async with asyncio.timeout(self._timeout_seconds()):
                    result = await self._run(request, progress)
            except BrokerError as e:
                return self._failed(request, progress, e)
            except asyncio.TimeoutError:
                return self._failed(
                    request,
                    progress,
                    OperationTimeout(
                        "Operation timed out",
                        details={"reached": progress.state.value},
                    ),
                )
            except Exception as e:
                logger.error(
                    "broker_internal_error",
                    reached=progress.state.value,
                    error_type=type(e).__name__,
                )
                return self._failed(
                    request, progress, InternalBrokerError("Internal broker error")
                )

            state = BrokerState.SUCCEEDED if result.ok else BrokerState.FAILED
            logger.info(
                "operation_finished",
                provider=request.provider,
                operation_type=request.operation_type,
                state=state.value,
                status=result.status,
            )
            return BrokerResult(
                correlation_id=request.correlation_id,
                state=state,
                reached=progress.state,
                result=result,
            )

    async def _run(self, request: OperationRequest, progress: _Progress) -> ProviderResult:
        kind = parse_operation_kind(request.operation_type)
        validate_payload(kind, request.payload)
        self.executor.get_provider(request.provider)

        decision = await self.gate.decide(
            request.tenant_id,
            request.user_id,
            resource=request.provider,
            action=policy_action(request.provider, kind),
            correlation_id=request.correlation_id,
        )
        progress.advance(BrokerState.AUTHORIZED)

        handle = await self.credentials.resolve(
            request.tenant_id,
            request.provider,
            request.token_ref,
            decision=decision,
        )
        progress.advance(BrokerState.CREDENTIALED)

        try:
            await self.audit.record(
                AuditEvent(
                    action=AUDIT_ACTION_OPERATION,
                    tenant_id=request.tenant_id,
                    user_id=request.user_id,
                    correlation_id=request.correlation_id,
                    operation_type=kind.value,
                    outcome=AUDIT_OUTCOME_INTENT,
                    metadata={
                        "provider": request.provider,
                        "policy_id": decision.policy_id,
                        "token_ref": request.token_ref,
                    },
                )
            )
            progress.advance(BrokerState.AUDITED)

            result = await self.executor.execute(
                kind,
                request.payload,
                handle,
                provider=request.provider,
                correlation_id=request.correlation_id,
            )
            progress.advance(BrokerState.EXECUTED)
        finally:
            handle.discard()
            del handle

        return result

    def _failed(
        self, request: OperationRequest, progress: _Progress, error: BrokerError
    ) -> BrokerResult:
        logger.warning(
            "operation_failed",
            provider=request.provider,
            operation_type=request.operation_type,
            reached=progress.state.value,
            code=error.code,
            status=error.http_status,
        )
        result = None
        if progress.state in (BrokerState.AUDITED, BrokerState.EXECUTED):
            result = ProviderResult(
                ok=False,
                status=error.http_status,
                error=error.message,
                correlation_id=request.correlation_id,
            )
        return BrokerResult(
            correlation_id=request.correlation_id,
            state=BrokerState.FAILED,
            reached=progress.state,
            result=result,
            error=error,
        )

    def _timeout_seconds(self) -> int:
        if self.config_manager is None:
            return DEFAULT_TIMEOUT_SECONDS
        return self.config_manager.get("broker.operation_timeout_seconds")

    def _feature_enabled(self) -> bool:
        if self.config_manager is None:
            return True
        return bool(self.config_manager.get("features.token_proxy_enabled"))
