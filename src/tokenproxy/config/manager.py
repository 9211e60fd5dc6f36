"""Broker configuration: TOML file, ``.env`` and ``TOKENPROXY_*`` overrides.

Every key is declared in ``registry.REGISTRY``. A value resolves as registry
default, then the TOML file, then the environment, and is validated before it
is stored. Static keys stay fixed for the life of the process; dynamic keys
(timeout, log level, kill switch) change through ``update_dynamic_config`` and
each change is pushed to subscribers.
"""

import inspect
import json
import os
import tomllib
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
import structlog

from ..redaction import redact_value
from .registry import (
    REGISTRY,
    get_config_key,
    get_default_values,
    get_dynamic_keys,
    get_static_keys,
    validate_config_value,
)

logger = structlog.get_logger(__name__)

ENV_PREFIX = "TOKENPROXY_"
DEFAULT_CONFIG_FILE = Path("config/default.toml")
DEFAULT_ENV_FILE = Path(".env")

Subscriber = Callable[[str, Any], Any]


def env_var_name(key: str) -> str:
    """``policy.grants`` -> ``TOKENPROXY_POLICY_GRANTS``."""
    return ENV_PREFIX + key.replace(".", "_").upper()


def _parse_bool(raw: str) -> bool:
    return raw.strip().lower() in ("true", "1", "yes", "on")


def _parse_table(raw: str) -> dict:
    parsed = json.loads(raw)
    if not isinstance(parsed, dict):
        raise ValueError("expected a JSON object")
    return parsed


def _parse_list(raw: str) -> list:
    return [item.strip() for item in raw.split(",")]


_ENV_PARSERS: dict[type, Callable[[str], Any]] = {
    bool: _parse_bool,
    int: int,
    float: float,
    str: str,
    list: _parse_list,
    dict: _parse_table,
}


def parse_env_value(raw: str, value_type: type) -> Any:
    """
    Convert an environment string to a registry value type.

    Tables (policy.*) are given as JSON objects.

    Raises:
        ValueError: If the string does not parse as value_type
    """
    parser = _ENV_PARSERS.get(value_type)
    if parser is None:
        raise ValueError(f"No env parser for type {value_type.__name__}")
    return parser(raw)


def flatten_tables(data: Mapping[str, Any], prefix: str = "") -> dict[str, Any]:
    """Flatten TOML tables to dotted keys; dict-valued registry keys stay whole."""
    flat: dict[str, Any] = {}
    for name, value in data.items():
        key = f"{prefix}.{name}" if prefix else name
        definition = REGISTRY.get(key)
        if isinstance(value, dict) and not (definition and definition.value_type is dict):
            flat.update(flatten_tables(value, key))
        else:
            flat[key] = value
    return flat


class ConfigManager:
    """Resolved configuration values, split into static and dynamic tiers."""

    def __init__(self, config_file: Optional[Path] = None, env_file: Optional[Path] = None):
        self.config_file = Path(config_file) if config_file is not None else DEFAULT_CONFIG_FILE
        self.env_file = Path(env_file) if env_file is not None else DEFAULT_ENV_FILE
        self.static_config: dict[str, Any] = {}
        self.dynamic_config: dict[str, Any] = {}
        self._subscribers: list[Subscriber] = []

    def load(self) -> "ConfigManager":
        """
        Resolve and validate every registered key.

        Returns:
            self, so ``ConfigManager(path).load()`` can be chained

        Raises:
            ValueError: If an env override does not parse or a value is invalid
        """
        if self.env_file.exists():
            load_dotenv(self.env_file)
            logger.info("env_file_loaded", env_file=str(self.env_file))

        resolved = get_default_values()
        resolved.update(
            (key, value) for key, value in self._read_file().items() if key in REGISTRY
        )

        for key in REGISTRY:
            env_var = env_var_name(key)
            raw = os.getenv(env_var)
            if raw is not None:
                try:
                    resolved[key] = parse_env_value(raw, REGISTRY[key].value_type)
                except ValueError as e:
                    raise ValueError(f"Failed to parse env var {env_var}: {e}") from e
                logger.info("env_override_applied", key=key, env_var=env_var)

            is_valid, error = validate_config_value(key, resolved[key])
            if not is_valid:
                logger.error("config_value_invalid", key=key, error=error)
                raise ValueError(f"Invalid config value for '{key}': {error}")

        self.static_config = {key: resolved[key] for key in get_static_keys()}
        self.dynamic_config = {key: resolved[key] for key in get_dynamic_keys()}
        logger.info(
            "config_loaded",
            config_file=str(self.config_file),
            static_keys=len(self.static_config),
            dynamic_keys=len(self.dynamic_config),
        )
        return self

    def get(self, key: str) -> Any:
        """
        Current value of a key, or its registry default before ``load``.

        Raises:
            KeyError: If key is not registered
        """
        definition = get_config_key(key)
        values = self.static_config if definition.tier == "static" else self.dynamic_config
        return values.get(key, definition.default)

    def subscribe(self, callback: Subscriber) -> None:
        """Register ``callback(key, value)``; it may be sync or async."""
        self._subscribers.append(callback)

    async def update_dynamic_config(self, key: str, value: Any) -> None:
        """
        Change a dynamic key at runtime and notify subscribers.

        A failing subscriber is logged and does not stop the others.

        Raises:
            KeyError: If key is unknown or static
            ValueError: If value fails validation
        """
        definition = get_config_key(key)
        if definition.tier != "dynamic":
            raise KeyError(f"Cannot hot-update static config key '{key}' - restart required")

        is_valid, error = validate_config_value(key, value)
        if not is_valid:
            raise ValueError(f"Invalid config value for '{key}': {error}")

        previous = self.get(key)
        self.dynamic_config[key] = value
        logger.info(
            "dynamic_config_updated",
            key=key,
            old_value=redact_value(previous, key),
            new_value=redact_value(value, key),
        )

        for callback in list(self._subscribers):
            try:
                outcome = callback(key, value)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:
                logger.error(
                    "config_subscriber_failed",
                    key=key,
                    subscriber=getattr(callback, "__name__", repr(callback)),
                    error=str(e),
                )

    def _read_file(self) -> dict[str, Any]:
        if not self.config_file.exists():
            logger.warning("config_file_not_found", config_file=str(self.config_file))
            return {}

        with open(self.config_file, "rb") as f:
            return flatten_tables(tomllib.load(f))
