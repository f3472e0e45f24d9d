"""
Bridge Configuration Module

Re-exports commonly used functions for cleaner imports across the codebase.
"""

# Logging (most commonly used)
from stdio_bridge.configs.logging import get_logger, setup_logging

# Constants
from stdio_bridge.configs.constants import (
    DEFAULT_ARGS,
    DEFAULT_COMMAND,
    MAX_BODY_BYTES,
    TIMEOUTS,
    get_timeout,
)

# YAML config
from stdio_bridge.configs.yaml_config import (
    DEFAULT_CONFIG_YAML,
    create_default_config,
    get_config_path,
    load_yaml_config,
)

# Runtime
from stdio_bridge.configs.runtime import (
    BridgeConfig,
    load_config,
    parse_args,
    parse_env,
)

__all__ = [
    # Logging
    "get_logger",
    "setup_logging",
    # Constants
    "DEFAULT_ARGS",
    "DEFAULT_COMMAND",
    "MAX_BODY_BYTES",
    "TIMEOUTS",
    "get_timeout",
    # YAML config
    "DEFAULT_CONFIG_YAML",
    "create_default_config",
    "get_config_path",
    "load_yaml_config",
    # Runtime
    "BridgeConfig",
    "load_config",
    "parse_args",
    "parse_env",
]
