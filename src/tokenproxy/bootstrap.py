"""Wire a BrokerOrchestrator from configuration.

Every port can be overridden; anything not passed is built from config.
"""

from pathlib import Path
from typing import Iterable, Optional

import structlog

from .adapters import (
    EnvSecretsStore,
    StaticPolicyEngine,
    StructlogAuditSink,
    StubSupabaseProvider,
)
from .broker import (
    AuditPort,
    BrokerOrchestrator,
    PolicyPort,
    ProviderPort,
    SecretsPort,
)
from .config.manager import ConfigManager
from .logging_config import configure_logging
from .persistence import DatabaseManager, SqliteAuditSink, migrate

logger = structlog.get_logger(__name__)


def setup_logging(config: ConfigManager) -> None:
    """Apply logging.* settings and follow runtime changes to logging.level."""
    json_output = config.get("logging.json")
    configure_logging(config.get("logging.level"), json_output=json_output)

    def on_config_updated(key, value):
        if key == "logging.level":
            configure_logging(value, json_output=json_output)

    config.subscribe(on_config_updated)


def build_audit_sink(config: ConfigManager) -> AuditPort:
    """The sqlite sink migrates its database before the broker can write to it."""
    if config.get("audit.sink") == "sqlite":
        db_path = Path(config.get("database.path"))
        migrate(db_path)
        return SqliteAuditSink(DatabaseManager(db_path))
    return StructlogAuditSink()


def build_policy(config: ConfigManager) -> PolicyPort:
    return StaticPolicyEngine(
        memberships=config.get("policy.memberships"),
        grants=config.get("policy.grants"),
    )


def build_secrets(config: ConfigManager) -> SecretsPort:
    return EnvSecretsStore(
        url_env=config.get("secrets.supabase_url_env"),
        key_env=config.get("secrets.supabase_key_env"),
    )


def create_broker(
    config: ConfigManager,
    *,
    policy: Optional[PolicyPort] = None,
    secrets: Optional[SecretsPort] = None,
    providers: Optional[Iterable[ProviderPort]] = None,
    audit_sink: Optional[AuditPort] = None,
) -> BrokerOrchestrator:
    """
    Build the broker with its ports.

    Args:
        config: Loaded ConfigManager
        policy: Policy port (default: StaticPolicyEngine from policy.* tables)
        secrets: Secrets port (default: EnvSecretsStore from secrets.* env names)
        providers: Provider clients (default: StubSupabaseProvider)
        audit_sink: Audit port (default: chosen by audit.sink)

    Returns:
        Ready BrokerOrchestrator
    """
    policy = policy if policy is not None else build_policy(config)
    secrets = secrets if secrets is not None else build_secrets(config)
    providers = list(providers) if providers is not None else [StubSupabaseProvider()]
    audit_sink = audit_sink if audit_sink is not None else build_audit_sink(config)

    broker = BrokerOrchestrator.from_ports(
        policy=policy,
        secrets=secrets,
        audit_sink=audit_sink,
        providers=providers,
        config_manager=config,
    )
    logger.info(
        "broker_created",
        policy=type(policy).__name__,
        secrets_port=type(secrets).__name__,
        audit_sink=type(audit_sink).__name__,
        providers=[p.name for p in providers],
    )
    return broker
