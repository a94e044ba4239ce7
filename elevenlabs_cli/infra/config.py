"""
Configuration Manager
---------------------
YAML configuration validated with pydantic, with environment and
command-line overrides.

Precedence (highest first):
1. command-line flags (--api-key, policy flags)
2. environment (ELEVENLABS_API_KEY, ELEVENLABS_CONFIG for the file location)
3. config file (~/.config/elevenlabs/config.yaml)
4. built-in defaults

Rules:
- The API key is never printed; `masked()` is what `config show` renders
- Only known keys can be set or unset
"""

from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union
import logging
import os

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from elevenlabs_cli.api.client import DEFAULT_BASE_URL, DEFAULT_TIMEOUT_SECS
from elevenlabs_cli.api.retry import RetryConfig
from elevenlabs_cli.tools.policy import PolicyConfig, parse_name_list

CONFIG_ENV_VAR = "ELEVENLABS_CONFIG"
API_KEY_ENV_VAR = "ELEVENLABS_API_KEY"
DEFAULT_CONFIG_PATH = Path("~/.config/elevenlabs/config.yaml")

# Values for these keys are taken verbatim from the command line
_STRING_KEYS = {
    "api_key", "default_voice", "default_model", "default_output_format", "base_url",
    "mcp.enable_tools", "mcp.disable_tools",
}


class ConfigError(Exception):
    """Configuration file is unreadable, invalid, or a key is unknown."""


def _name_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set, frozenset)):
        value = [str(v) for v in value]
    return sorted(parse_name_list(value))


class McpSettings(BaseModel):
    """Tool server defaults, merged with the mcp command's flags."""
    model_config = ConfigDict(extra="forbid")

    enable_tools: List[str] = Field(default_factory=list)
    disable_tools: List[str] = Field(default_factory=list)
    disable_admin: bool = False
    disable_destructive: bool = False
    read_only: bool = False
    max_workers: int = Field(default=4, ge=1, le=64)

    @field_validator("enable_tools", "disable_tools", mode="before")
    @classmethod
    def _split_names(cls, value: Any) -> List[str]:
        return _name_list(value)


class RetrySettings(BaseModel):
    """Backoff schedule for remote calls."""
    model_config = ConfigDict(extra="forbid")

    base_delay: float = Field(default=0.5, ge=0)
    max_delay: float = Field(default=8.0, gt=0)
    jitter: float = Field(default=0.25, ge=0, le=1)
    max_retry_after: float = Field(default=30.0, ge=0)
    max_total_delay: float = Field(default=60.0, ge=0)

    def to_retry_config(self) -> RetryConfig:
        return RetryConfig(
            base_delay=self.base_delay,
            max_delay=max(self.max_delay, self.base_delay),
            jitter=self.jitter,
            max_retry_after=self.max_retry_after,
            max_total_delay=self.max_total_delay,
        )


class AppConfig(BaseModel):
    """Complete application configuration."""
    model_config = ConfigDict(extra="forbid")

    api_key: Optional[str] = None
    default_voice: Optional[str] = None
    default_model: str = "eleven_multilingual_v2"
    default_output_format: str = "mp3_44100_128"
    base_url: str = DEFAULT_BASE_URL
    timeout_seconds: float = Field(default=DEFAULT_TIMEOUT_SECS, gt=0)
    mcp: McpSettings = Field(default_factory=McpSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)

    def masked(self) -> Dict[str, Any]:
        """Config as a dict with the API key hidden."""
        data = self.model_dump()
        key = data.get("api_key")
        if key:
            data["api_key"] = f"{key[:4]}…{key[-2:]}" if len(key) > 8 else "****"
        return data


def default_config_path(environ: Optional[Mapping[str, str]] = None) -> Path:
    environ = os.environ if environ is None else environ
    override = environ.get(CONFIG_ENV_VAR)
    return Path(override).expanduser() if override else DEFAULT_CONFIG_PATH.expanduser()


def known_keys() -> List[str]:
    """Dotted names accepted by `config set` / `config unset`."""
    keys = []
    for name, info in AppConfig.model_fields.items():
        annotation = info.annotation
        if isinstance(annotation, type) and issubclass(annotation, BaseModel):
            keys.extend(f"{name}.{sub}" for sub in annotation.model_fields)
        else:
            keys.append(name)
    return keys


class ConfigManager:
    """
    Loads, validates and persists the YAML configuration file.

    Environment variables override file values; see `effective`.
    """

    def __init__(
        self,
        config_path: Optional[Union[str, Path]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self._environ = os.environ if environ is None else environ
        self._config_path = Path(config_path).expanduser() if config_path else default_config_path(self._environ)
        self._logger = logging.getLogger("elevenlabs.infra.config")

    @property
    def path(self) -> Path:
        return self._config_path

    def _read_raw(self) -> Dict[str, Any]:
        if not self._config_path.exists():
            self._logger.debug(f"Config file not found: {self._config_path}")
            return {}
        try:
            with open(self._config_path, "r", encoding="utf-8") as f:
                raw = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Could not read {self._config_path}: {e}") from e
        if not isinstance(raw, dict):
            raise ConfigError(f"{self._config_path} must contain a mapping")
        return raw

    def load(self) -> AppConfig:
        """Config file contents, validated. Missing file means defaults."""
        raw = self._read_raw()
        try:
            config = AppConfig.model_validate(raw)
        except ValidationError as e:
            raise ConfigError(f"Invalid config in {self._config_path}:\n{e}") from e
        if raw:
            self._logger.info(f"Loaded config from {self._config_path}")
        return config

    def effective(self, api_key: Optional[str] = None) -> AppConfig:
        """File config with environment and flag overrides applied."""
        config = self.load()
        key = api_key or self._environ.get(API_KEY_ENV_VAR) or config.api_key
        return config.model_copy(update={"api_key": key or None})

    def save(self, config: AppConfig) -> None:
        data = config.model_dump(exclude_defaults=True)
        try:
            self._config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._config_path, "w", encoding="utf-8") as f:
                yaml.safe_dump(data, f, default_flow_style=False, sort_keys=True)
            # The file can hold an API key
            os.chmod(self._config_path, 0o600)
        except OSError as e:
            raise ConfigError(f"Could not write {self._config_path}: {e}") from e
        self._logger.info(f"Saved config to {self._config_path}")

    def set(self, key: str, value: str) -> AppConfig:
        """Set a dotted key from its command-line string form and persist."""
        self._check_key(key)
        parsed: Any = value if key in _STRING_KEYS else yaml.safe_load(value)
        raw = self._read_raw()
        self._assign(raw, key, parsed)
        return self._validate_and_save(raw)

    def unset(self, key: str) -> AppConfig:
        """Remove a dotted key (reverting it to its default) and persist."""
        self._check_key(key)
        raw = self._read_raw()
        parts = key.split(".")
        section = raw
        for part in parts[:-1]:
            section = section.get(part)
            if not isinstance(section, dict):
                return self.load()
        section.pop(parts[-1], None)
        return self._validate_and_save(raw)

    def _validate_and_save(self, raw: Dict[str, Any]) -> AppConfig:
        try:
            config = AppConfig.model_validate(raw)
        except ValidationError as e:
            raise ConfigError(f"Invalid value:\n{e}") from e
        self.save(config)
        return config

    @staticmethod
    def _check_key(key: str) -> None:
        if key not in known_keys():
            raise ConfigError(f"Unknown config key: {key} (known: {', '.join(known_keys())})")

    @staticmethod
    def _assign(raw: Dict[str, Any], key: str, value: Any) -> None:
        parts = key.split(".")
        section = raw
        for part in parts[:-1]:
            if not isinstance(section.get(part), dict):
                section[part] = {}
            section = section[part]
        section[parts[-1]] = value


def build_policy_config(
    settings: McpSettings,
    enable_tools: Optional[str] = None,
    disable_tools: Optional[str] = None,
    disable_admin: bool = False,
    disable_destructive: bool = False,
    read_only: bool = False,
) -> PolicyConfig:
    """
    Merge command-line policy flags over the config file's mcp section.

    A flag-supplied enable list replaces the file's; disable lists are
    combined, and boolean restrictions from either source apply.
    """
    enabled = parse_name_list(enable_tools) if enable_tools is not None else frozenset(settings.enable_tools)
    disabled = frozenset(settings.disable_tools) | parse_name_list(disable_tools)
    return PolicyConfig(
        enabled_names=enabled,
        disabled_names=disabled,
        disable_admin=disable_admin or settings.disable_admin,
        disable_destructive=disable_destructive or settings.disable_destructive,
        read_only=read_only or settings.read_only,
    )
