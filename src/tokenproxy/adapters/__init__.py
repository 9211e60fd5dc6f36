# Adapters - Reference implementations of the broker ports

from .audit_log import StructlogAuditSink
from .policy_static import StaticPolicyEngine
from .provider_stub import StubSupabaseProvider
from .secrets_env import EnvSecretsStore
from .token_store import MemoryTokenStore, TokenRecord

__all__ = [
    "StructlogAuditSink",
    "StaticPolicyEngine",
    "StubSupabaseProvider",
    "EnvSecretsStore",
    "MemoryTokenStore",
    "TokenRecord",
]
