# Configuration Layer - Two-tier static/dynamic configuration

from .manager import ConfigManager, env_var_name
from .registry import REGISTRY, ConfigKey, get_config_key, validate_config_value

__all__ = [
    "ConfigManager",
    "env_var_name",
    "REGISTRY",
    "ConfigKey",
    "get_config_key",
    "validate_config_value",
]
