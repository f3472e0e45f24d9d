"""
Bridge Runtime Configuration

Resolves the bridge configuration once at startup.
Combines defaults, YAML config, and environment variables.
"""

import json
import os
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from stdio_bridge.configs.constants import (
    DEFAULT_ARGS,
    DEFAULT_COMMAND,
    DEFAULT_HOST,
    DEFAULT_PORT,
    MAX_BODY_BYTES,
    get_timeout,
)
from stdio_bridge.configs.yaml_config import load_yaml_config
from stdio_bridge.exceptions import ConfigurationError


@dataclass(frozen=True)
class BridgeConfig:
    """Immutable settings for one bridge process."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    command: str = DEFAULT_COMMAND
    args: list[str] = field(default_factory=lambda: list(DEFAULT_ARGS))
    env: dict[str, str] = field(default_factory=dict)
    request_timeout: float = get_timeout("request")
    max_body_bytes: int = MAX_BODY_BYTES
    shutdown_grace: float = get_timeout("shutdown_grace")

    @property
    def command_line(self) -> str:
        return " ".join([self.command, *self.args])


def _stringify(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value)


def _parse_json(value: Optional[str]) -> Any:
    if not value:
        return None
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return None


def parse_args(value: Optional[str]) -> list[str]:
    """
    Parse the child's argument list.

    Accepts a JSON array (elements are stringified) or a whitespace-separated
    string. An empty value yields the default arguments.
    """
    parsed = _parse_json(value)
    if isinstance(parsed, list):
        return [_stringify(item) for item in parsed]
    if not value:
        return list(DEFAULT_ARGS)
    return value.split()


def parse_env(value: Optional[str]) -> dict[str, str]:
    """
    Parse the child's environment overlay from a JSON object.

    Anything that is not a JSON object is ignored.
    """
    parsed = _parse_json(value)
    if not isinstance(parsed, dict):
        return {}
    return {str(key): _stringify(val) for key, val in parsed.items()}


def _number(name: str, value: Any, kind: type) -> Any:
    try:
        number = kind(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be a number, got {value!r}")
    if number <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value!r}")
    return number


def load_config(
    environ: Optional[Mapping[str, str]] = None,
    yaml_config: Optional[dict] = None,
) -> BridgeConfig:
    """
    Get full configuration merged from defaults, YAML, and environment.

    Priority (highest wins):
    1. Environment variables
    2. YAML config file
    3. Defaults

    Args:
        environ: Environment to read. Defaults to os.environ.
        yaml_config: Parsed YAML config. Defaults to load_yaml_config().

    Returns:
        Resolved BridgeConfig

    Raises:
        ConfigurationError: If a numeric setting is invalid
    """
    if environ is None:
        environ = os.environ
    if yaml_config is None:
        yaml_config = load_yaml_config()

    values: dict[str, Any] = {}

    # Merge YAML config
    for key in ("host", "port", "command", "request_timeout", "max_body_bytes", "shutdown_grace"):
        if yaml_config.get(key) is not None:
            values[key] = yaml_config[key]
    yaml_args = yaml_config.get("args")
    if isinstance(yaml_args, list):
        values["args"] = [_stringify(item) for item in yaml_args]
    elif isinstance(yaml_args, str):
        values["args"] = parse_args(yaml_args)
    yaml_env = yaml_config.get("env")
    if isinstance(yaml_env, dict):
        values["env"] = {str(k): _stringify(v) for k, v in yaml_env.items()}

    # Environment overrides
    if environ.get("HOST"):
        values["host"] = environ["HOST"]
    if environ.get("PORT"):
        values["port"] = environ["PORT"]
    if environ.get("MCP_COMMAND"):
        values["command"] = environ["MCP_COMMAND"]
    if environ.get("MCP_ARGS"):
        values["args"] = parse_args(environ["MCP_ARGS"])
    if environ.get("MCP_ENV"):
        values["env"] = parse_env(environ["MCP_ENV"])
    if environ.get("BRIDGE_REQUEST_TIMEOUT"):
        values["request_timeout"] = environ["BRIDGE_REQUEST_TIMEOUT"]
    if environ.get("BRIDGE_MAX_BODY_BYTES"):
        values["max_body_bytes"] = environ["BRIDGE_MAX_BODY_BYTES"]
    if environ.get("BRIDGE_SHUTDOWN_GRACE"):
        values["shutdown_grace"] = environ["BRIDGE_SHUTDOWN_GRACE"]

    # Normalize numbers
    if "port" in values:
        values["port"] = _number("port", values["port"], int)
    if "max_body_bytes" in values:
        values["max_body_bytes"] = _number("max_body_bytes", values["max_body_bytes"], int)
    for key in ("request_timeout", "shutdown_grace"):
        if key in values:
            values[key] = _number(key, values[key], float)

    return BridgeConfig(**values)
