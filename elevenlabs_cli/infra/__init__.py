# Infrastructure module - Tool server, configuration and logging
# The tool server speaks JSON-RPC on stdio; logs always go to stderr

from .config import (
    AppConfig, McpSettings, RetrySettings, ConfigManager, ConfigError,
    build_policy_config, default_config_path, known_keys,
)
from .logging import (
    get_logger, configure_logging, RequestContext,
    get_request_id, generate_request_id,
)
from .server import ToolServer, tool_result, PROTOCOL_VERSION

__all__ = [
    # Config
    "AppConfig",
    "McpSettings",
    "RetrySettings",
    "ConfigManager",
    "ConfigError",
    "build_policy_config",
    "default_config_path",
    "known_keys",
    # Logging
    "get_logger",
    "configure_logging",
    "RequestContext",
    "get_request_id",
    "generate_request_id",
    # Server
    "ToolServer",
    "tool_result",
    "PROTOCOL_VERSION",
]
