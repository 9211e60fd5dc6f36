# Broker Layer - Authorization, credential brokering, audit and provider execution

from .audit import AuditRecorder
from .authorization import AuthorizationGate
from .credentials import CredentialBroker
from .executor import ProviderExecutor
from .operations import OperationKind, parse_operation_kind, validate_payload
from .orchestrator import BrokerOrchestrator, BrokerResult, BrokerState
from .ports import AuditPort, PolicyPort, ProviderPort, SecretsPort

__all__ = [
    "AuditRecorder",
    "AuthorizationGate",
    "CredentialBroker",
    "ProviderExecutor",
    "OperationKind",
    "parse_operation_kind",
    "validate_payload",
    "BrokerOrchestrator",
    "BrokerResult",
    "BrokerState",
    "AuditPort",
    "PolicyPort",
    "ProviderPort",
    "SecretsPort",
]
