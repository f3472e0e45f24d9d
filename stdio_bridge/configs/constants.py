"""
Bridge Constants

Static defaults that rarely change: launch command, body ceiling,
and timeout configuration.
"""

# --- Child Process Defaults ---

DEFAULT_COMMAND = "npx"
DEFAULT_ARGS = ["-y", "@makafeli/n8n-workflow-builder"]

# --- HTTP Defaults ---

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3000

MAX_BODY_BYTES = 1024 * 1024  # 1MB request body ceiling

# --- Timeout Configuration ---
# Centralized timeout values in seconds

TIMEOUTS = {
    "request": 15,  # Waiting for the child's response to one request
    "shutdown_grace": 5,  # Between SIGTERM and SIGKILL on stop
}


def get_timeout(key: str, default: int | float | None = None) -> int | float:
    """
    Get a timeout value by key.

    Args:
        key: Timeout key from TIMEOUTS dict
        default: Default value if key not found

    Returns:
        Timeout value in seconds
    """
    if default is None:
        default = TIMEOUTS["request"]
    return TIMEOUTS.get(key, default)
