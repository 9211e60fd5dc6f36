"""Configuration Registry - Defines all configuration keys with tier classification.

This module provides the ConfigKey dataclass and REGISTRY dictionary that defines
all configuration options available in tokenproxy.

Two-Tier System:
- Static Config (tier="static"): Requires restart to apply changes
  Examples: database path, audit sink, secret env var names, policy tables
- Dynamic Config (tier="dynamic"): Can be hot-reloaded without restart
  Examples: timeouts, log level, feature flags
"""

import copy
from dataclasses import dataclass
from typing import Any, Callable, Literal, Optional


@dataclass
class ConfigKey:
    """Defines a single configuration key with validation and tier classification.

    Attributes:
        tier: "static" (restart required) or "dynamic" (hot-reloadable)
        value_type: Expected Python type (str, int, float, bool, list, dict)
        default: Default value if not specified in config files
        min_value: Minimum value for numeric types (optional)
        max_value: Maximum value for numeric types (optional)
        restart_required: Auto-derived from tier (True for static, False for dynamic)
        validator: Custom validation function (optional)
    """
    tier: Literal["static", "dynamic"]
    value_type: type
    default: Any
    min_value: Optional[Any] = None
    max_value: Optional[Any] = None
    restart_required: bool = False
    validator: Optional[Callable[[Any], bool]] = None

    def __post_init__(self):
        """Auto-derive restart_required from tier."""
        self.restart_required = (self.tier == "static")


def _is_membership_table(value: dict) -> bool:
    return all(isinstance(k, str) and isinstance(v, str) for k, v in value.items())


def _is_grant_table(value: dict) -> bool:
    return all(
        isinstance(k, str)
        and isinstance(v, list)
        and all(isinstance(p, str) and ":" in p for p in v)
        for k, v in value.items()
    )


# Configuration Registry
# =======================
# All configuration keys must be registered here with their tier classification.

REGISTRY: dict[str, ConfigKey] = {
    # ===== DATABASE (Static - Foundation) =====
    "database.path": ConfigKey(
        tier="static",
        value_type=str,
        default="data/tokenproxy.db",
    ),

    # ===== LOGGING (Static rendering, Dynamic verbosity) =====
    "logging.level": ConfigKey(
        tier="dynamic",
        value_type=str,
        default="INFO",
        validator=lambda v: v in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"),
    ),
    "logging.json": ConfigKey(
        tier="static",
        value_type=bool,
        default=True,
    ),

    # ===== AUDIT (Static - Sink selection) =====
    "audit.sink": ConfigKey(
        tier="static",
        value_type=str,
        default="log",
        validator=lambda v: v in ("log", "sqlite"),
    ),

    # ===== BROKER (Dynamic - Operational tuning) =====
    "broker.operation_timeout_seconds": ConfigKey(
        tier="dynamic",
        value_type=int,
        default=30,
        min_value=1,
        max_value=300,
    ),

    # ===== FEATURE FLAGS (Dynamic - Kill switch) =====
    "features.token_proxy_enabled": ConfigKey(
        tier="dynamic",
        value_type=bool,
        default=True,
    ),

    # ===== SECRETS (Static - Env var names, never values) =====
    "secrets.supabase_url_env": ConfigKey(
        tier="static",
        value_type=str,
        default="SUPABASE_URL",
        validator=lambda v: bool(v) and v.replace("_", "").isalnum(),
    ),
    "secrets.supabase_key_env": ConfigKey(
        tier="static",
        value_type=str,
        default="SUPABASE_SERVICE_KEY",
        validator=lambda v: bool(v) and v.replace("_", "").isalnum(),
    ),

    # ===== POLICY (Static - Security Boundary) =====
    # user_id -> tenant_id
    "policy.memberships": ConfigKey(
        tier="static",
        value_type=dict,
        default={},
        validator=_is_membership_table,
    ),
    # tenant_id -> ["resource:action", ...], fnmatch wildcards allowed
    "policy.grants": ConfigKey(
        tier="static",
        value_type=dict,
        default={},
        validator=_is_grant_table,
    ),
}


def get_config_key(key: str) -> ConfigKey:
    """Get configuration key definition from registry.

    Args:
        key: Configuration key path (e.g., "audit.sink")

    Returns:
        ConfigKey definition

    Raises:
        KeyError: If key not found in registry
    """
    if key not in REGISTRY:
        raise KeyError(f"Configuration key '{key}' not found in registry")
    return REGISTRY[key]


def validate_config_value(key: str, value: Any) -> tuple[bool, Optional[str]]:
    """Validate a configuration value against its registered definition.

    Args:
        key: Configuration key path
        value: Value to validate

    Returns:
        Tuple of (is_valid, error_message)
        error_message is None if valid
    """
    try:
        config_key = get_config_key(key)
    except KeyError as e:
        return False, str(e)

    # Type validation (bool is an int subclass; keep them apart)
    if config_key.value_type is int and isinstance(value, bool):
        return False, "Expected type int, got bool"
    if not isinstance(value, config_key.value_type):
        return False, f"Expected type {config_key.value_type.__name__}, got {type(value).__name__}"

    # Range validation for numeric types
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        if config_key.min_value is not None and value < config_key.min_value:
            return False, f"Value {value} below minimum {config_key.min_value}"
        if config_key.max_value is not None and value > config_key.max_value:
            return False, f"Value {value} above maximum {config_key.max_value}"

    # Custom validator
    if config_key.validator is not None:
        try:
            if not config_key.validator(value):
                return False, f"Custom validation failed for value: {value}"
        except Exception as e:
            return False, f"Validator error: {str(e)}"

    return True, None


def get_default_values() -> dict[str, Any]:
    """Get default values for all configuration keys.

    Returns:
        Dictionary of key -> default_value
    """
    return {key: copy.deepcopy(config_key.default) for key, config_key in REGISTRY.items()}


def get_static_keys() -> list[str]:
    """Get list of all static configuration keys (restart required)."""
    return [key for key, config_key in REGISTRY.items() if config_key.tier == "static"]


def get_dynamic_keys() -> list[str]:
    """Get list of all dynamic configuration keys (hot-reloadable)."""
    return [key for key, config_key in REGISTRY.items() if config_key.tier == "dynamic"]
