"""
Configuration Tests
-------------------
Tests for loading, overriding and persisting configuration.
"""

import pytest
from pathlib import Path
import sys

import yaml

sys.path.insert(0, str(Path(__file__).parent.parent))

from elevenlabs_cli.infra.config import (
    AppConfig, ConfigError, ConfigManager, McpSettings, build_policy_config, known_keys,
)


@pytest.fixture
def config_path(tmp_path):
    return tmp_path / "config.yaml"


class TestLoading:
    """Reading the YAML file."""

    def test_missing_file_gives_defaults(self, config_path):
        config = ConfigManager(config_path).load()

        assert config == AppConfig()
        assert config.retry.to_retry_config().max_attempts == 3

    def test_values_loaded_and_validated(self, config_path):
        config_path.write_text(yaml.safe_dump({
            "api_key": "sk_file",
            "default_voice": "v1",
            "mcp": {"disable_tools": "delete_voice, delete_agent", "read_only": True},
        }))

        config = ConfigManager(config_path).load()

        assert config.api_key == "sk_file"
        assert config.mcp.disable_tools == ["delete_agent", "delete_voice"]
        assert config.mcp.read_only is True

    def test_unknown_key_rejected(self, config_path):
        config_path.write_text("colour: blue\n")
        with pytest.raises(ConfigError):
            ConfigManager(config_path).load()

    def test_invalid_value_rejected(self, config_path):
        config_path.write_text("retry:\n  jitter: 5\n")
        with pytest.raises(ConfigError):
            ConfigManager(config_path).load()

    def test_not_a_mapping(self, config_path):
        config_path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError):
            ConfigManager(config_path).load()

    def test_env_var_selects_file(self, monkeypatch, config_path):
        monkeypatch.setenv("ELEVENLABS_CONFIG", str(config_path))
        assert ConfigManager().path == config_path


class TestOverrides:
    """Environment and flag precedence."""

    def test_env_overrides_file(self, config_path):
        config_path.write_text("api_key: sk_file\n")
        manager = ConfigManager(config_path, environ={"ELEVENLABS_API_KEY": "sk_env"})

        assert manager.effective().api_key == "sk_env"

    def test_flag_overrides_env(self, config_path):
        manager = ConfigManager(config_path, environ={"ELEVENLABS_API_KEY": "sk_env"})
        assert manager.effective(api_key="sk_flag").api_key == "sk_flag"

    def test_masked_hides_key(self):
        masked = AppConfig(api_key="sk_1234567890abcdef").masked()
        assert "1234567890" not in masked["api_key"]


class TestPersistence:
    """config set / unset."""

    def test_set_and_unset(self, config_path):
        manager = ConfigManager(config_path, environ={})

        manager.set("default_voice", "v1")
        manager.set("mcp.disable_admin", "true")
        manager.set("retry.base_delay", "1.5")

        config = manager.load()
        assert config.default_voice == "v1"
        assert config.mcp.disable_admin is True
        assert config.retry.base_delay == 1.5

        manager.unset("mcp.disable_admin")
        assert manager.load().mcp.disable_admin is False
        assert manager.load().default_voice == "v1"

    def test_numeric_looking_key_kept_as_string(self, config_path):
        manager = ConfigManager(config_path, environ={})
        manager.set("api_key", "12345")
        assert manager.load().api_key == "12345"

    def test_unknown_key(self, config_path):
        with pytest.raises(ConfigError):
            ConfigManager(config_path).set("colour", "blue")

    def test_invalid_value_not_saved(self, config_path):
        manager = ConfigManager(config_path)
        with pytest.raises(ConfigError):
            manager.set("mcp.max_workers", "0")
        assert not config_path.exists()

    def test_known_keys(self):
        keys = known_keys()
        assert "api_key" in keys
        assert "mcp.read_only" in keys
        assert "retry.base_delay" in keys
        assert "retry.max_attempts" not in keys
        assert "mcp" not in keys

    def test_attempt_limit_not_configurable(self, config_path):
        config_path.write_text("retry:\n  max_attempts: 5\n")
        with pytest.raises(ConfigError):
            ConfigManager(config_path).load()

    def test_retry_settings_convert(self):
        retry = AppConfig().retry.to_retry_config()
        assert retry.max_attempts == 3
        assert retry.base_delay == 0.5


class TestPolicyMerge:
    """Flags merged over the mcp section."""

    def test_flags_and_file_combine(self):
        settings = McpSettings(disable_tools=["delete_voice"], disable_destructive=True)

        policy = build_policy_config(settings, disable_tools="delete_agent", read_only=False)

        assert policy.disabled_names == frozenset({"delete_voice", "delete_agent"})
        assert policy.disable_destructive is True

    def test_flag_enable_list_replaces_file(self):
        settings = McpSettings(enable_tools=["list_voices"])

        assert build_policy_config(settings).enabled_names == frozenset({"list_voices"})
        assert build_policy_config(settings, enable_tools="text_to_speech").enabled_names == frozenset({"text_to_speech"})
