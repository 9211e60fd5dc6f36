"""Unit tests for configuration registry."""

import pytest

from tokenproxy.config.registry import (
    ConfigKey,
    REGISTRY,
    get_config_key,
    validate_config_value,
    get_default_values,
    get_static_keys,
    get_dynamic_keys,
)


class TestConfigKey:
    """Test ConfigKey dataclass."""

    def test_config_key_static_restart_required(self):
        """Static config keys should have restart_required=True."""
        key = ConfigKey(tier="static", value_type=str, default="test")
        assert key.restart_required is True

    def test_config_key_dynamic_no_restart(self):
        """Dynamic config keys should have restart_required=False."""
        key = ConfigKey(tier="dynamic", value_type=int, default=42)
        assert key.restart_required is False


class TestRegistry:
    """Test configuration registry."""

    def test_registry_has_required_keys(self):
        """Registry should contain the keys the broker reads."""
        required_keys = [
            "database.path",
            "logging.level",
            "audit.sink",
            "broker.operation_timeout_seconds",
            "features.token_proxy_enabled",
            "secrets.supabase_url_env",
            "secrets.supabase_key_env",
            "policy.memberships",
            "policy.grants",
        ]
        for key in required_keys:
            assert key in REGISTRY

    def test_all_keys_have_valid_tiers(self):
        """All registry keys must have tier 'static' or 'dynamic'."""
        for key, config_key in REGISTRY.items():
            assert config_key.tier in ("static", "dynamic"), f"Invalid tier for {key}"

    def test_defaults_pass_validation(self):
        """Every default must satisfy its own key definition."""
        for key, value in get_default_values().items():
            is_valid, error = validate_config_value(key, value)
            assert is_valid, f"{key}: {error}"


class TestGetConfigKey:
    """Test get_config_key function."""

    def test_get_existing_key(self):
        key = get_config_key("audit.sink")
        assert isinstance(key, ConfigKey)
        assert key.tier == "static"

    def test_get_nonexistent_key_raises_error(self):
        with pytest.raises(KeyError, match="not found in registry"):
            get_config_key("nonexistent.key")


class TestValidateConfigValue:
    """Test validate_config_value function."""

    def test_validate_wrong_type(self):
        is_valid, error = validate_config_value("broker.operation_timeout_seconds", "30")
        assert is_valid is False
        assert "Expected type int" in error

    def test_validate_bool_is_not_int(self):
        is_valid, error = validate_config_value("broker.operation_timeout_seconds", True)
        assert is_valid is False
        assert "got bool" in error

    def test_validate_below_minimum(self):
        is_valid, error = validate_config_value("broker.operation_timeout_seconds", 0)
        assert is_valid is False
        assert "below minimum" in error

    def test_validate_above_maximum(self):
        is_valid, error = validate_config_value("broker.operation_timeout_seconds", 301)
        assert is_valid is False
        assert "above maximum" in error

    def test_validate_custom_validator_fail(self):
        is_valid, error = validate_config_value("logging.level", "INVALID_LEVEL")
        assert is_valid is False
        assert "Custom validation failed" in error

    def test_validate_audit_sink_choices(self):
        assert validate_config_value("audit.sink", "sqlite") == (True, None)
        assert validate_config_value("audit.sink", "kafka")[0] is False

    def test_validate_env_var_names(self):
        assert validate_config_value("secrets.supabase_key_env", "SB_KEY")[0] is True
        assert validate_config_value("secrets.supabase_key_env", "SB KEY; rm")[0] is False

    def test_validate_grant_table(self):
        assert validate_config_value("policy.grants", {"tenant-1": ["supabase:*"]})[0] is True
        assert validate_config_value("policy.grants", {"tenant-1": ["supabase"]})[0] is False
        assert validate_config_value("policy.grants", {"tenant-1": "supabase:*"})[0] is False

    def test_validate_membership_table(self):
        assert validate_config_value("policy.memberships", {"user-1": "tenant-1"})[0] is True
        assert validate_config_value("policy.memberships", {"user-1": ["tenant-1"]})[0] is False


class TestHelperFunctions:
    """Test helper functions."""

    def test_get_default_values_are_copies(self):
        defaults = get_default_values()
        defaults["policy.grants"]["tenant-x"] = ["supabase:*"]

        assert REGISTRY["policy.grants"].default == {}

    def test_static_and_dynamic_partition(self):
        """Static and dynamic keys should partition the registry."""
        static = set(get_static_keys())
        dynamic = set(get_dynamic_keys())

        assert len(static & dynamic) == 0
        assert static | dynamic == set(REGISTRY.keys())


class TestSecurityInvariants:
    """Security boundaries must not be hot-reloadable."""

    @pytest.mark.parametrize(
        "key",
        ["policy.memberships", "policy.grants", "secrets.supabase_key_env", "audit.sink"],
    )
    def test_security_keys_are_static(self, key):
        config_key = get_config_key(key)
        assert config_key.tier == "static"
        assert config_key.restart_required is True

    def test_kill_switch_is_dynamic(self):
        assert get_config_key("features.token_proxy_enabled").tier == "dynamic"
