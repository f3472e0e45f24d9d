"""
Bridge YAML Configuration

Loading and defaults for the optional config.yaml.
"""

import os
from pathlib import Path

import yaml

from stdio_bridge.exceptions import ConfigurationError

DEFAULT_CONFIG_DIR = Path.home() / ".stdio-bridge"

# --- Default Config Template ---

DEFAULT_CONFIG_YAML = """\
# stdio-bridge configuration
# Environment variables override every value in this file.

# HTTP listener
host: "0.0.0.0"
port: 3000

# Child process
command: "npx"
args:
  - "-y"
  - "@makafeli/n8n-workflow-builder"
env: {}

# Seconds to wait for the child's response to a request
request_timeout: 15

# Largest accepted request body in bytes
max_body_bytes: 1048576

# Seconds between SIGTERM and SIGKILL when stopping the child
shutdown_grace: 5
"""


def get_config_path() -> Path:
    """Get the path to config.yaml (BRIDGE_CONFIG overrides the default)."""
    override = os.environ.get("BRIDGE_CONFIG")
    if override:
        return Path(override).expanduser()
    return DEFAULT_CONFIG_DIR / "config.yaml"


def load_yaml_config(path: Path | None = None) -> dict:
    """
    Load configuration from config.yaml.

    Args:
        path: Explicit file to read. Defaults to get_config_path().

    Returns:
        Configuration dictionary (empty if file doesn't exist)

    Raises:
        ConfigurationError: If the file is not valid YAML or not a mapping
    """
    config_path = path or get_config_path()
    if not config_path.exists():
        return {}

    try:
        data = yaml.safe_load(config_path.read_text())
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {config_path} must contain a mapping")
    return data


def create_default_config(path: Path | None = None) -> bool:
    """
    Create default config.yaml if it doesn't exist.

    Returns:
        True if file was created, False if it already exists
    """
    config_path = path or get_config_path()
    if config_path.exists():
        return False

    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(DEFAULT_CONFIG_YAML)
    return True
