"""
Bridge Exception Hierarchy

Centralized exception classes for structured error handling across the bridge.
All bridge-specific exceptions inherit from BridgeError and carry the HTTP
status code the router answers with when one reaches the caller.

Usage:
    from stdio_bridge.exceptions import BridgeError, ProcessExited

    try:
        result = await bridge.send(message)
    except ProcessExited as e:
        logger.error(f"Child is gone: {e}")
"""

from typing import Any


class BridgeError(Exception):
    """Base exception for all bridge errors."""

    status_code = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} ({self.details})"
        return self.message


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(BridgeError):
    """Error in bridge configuration."""

    pass


# =============================================================================
# Channel Errors
# =============================================================================


class ChannelError(BridgeError):
    """Base class for stdio framing errors."""

    pass


class MalformedFrame(ChannelError):
    """A complete frame did not decode to a JSON object."""

    status_code = 502

    def __init__(self, message: str, frame: bytes = b""):
        details = {"frame": frame[:200].decode("utf-8", "replace")} if frame else {}
        super().__init__(message, details)
        self.frame = frame


# =============================================================================
# Request Errors
# =============================================================================


class RequestError(BridgeError):
    """Base class for request correlation errors."""

    pass


class RequestTimeout(RequestError):
    """No response arrived within the request timeout."""

    status_code = 504

    def __init__(self, message: str, request_id: Any = None, timeout: float | None = None):
        super().__init__(message)
        self.request_id = request_id
        self.timeout = timeout


class DuplicateRequestId(RequestError):
    """A request with the same id is still waiting for its response."""

    status_code = 409

    def __init__(self, message: str, request_id: Any = None):
        super().__init__(message)
        self.request_id = request_id


# =============================================================================
# Process Errors
# =============================================================================


class ProcessError(BridgeError):
    """Base class for child process errors."""

    pass


class ProcessExited(ProcessError):
    """The child process terminated."""

    status_code = 502

    def __init__(self, message: str = "MCP process exited", code: int | None = None):
        super().__init__(message)
        self.code = code


class NotWritable(ProcessError):
    """The child's stdin can no longer accept frames."""

    status_code = 503


class ProcessSpawnError(ProcessError):
    """The child process could not be launched."""

    def __init__(self, message: str, command: list[str] | None = None):
        details = {"command": " ".join(command)} if command else {}
        super().__init__(message, details)
        self.command = command


# =============================================================================
# HTTP Errors
# =============================================================================


class HttpError(BridgeError):
    """Base class for errors in the inbound HTTP request."""

    status_code = 400


class PayloadTooLarge(HttpError):
    """Request body exceeds the size ceiling."""

    status_code = 413


class InvalidRequestBody(HttpError):
    """Request body is not a JSON object or array of objects."""

    pass


class MethodNotAllowed(HttpError):
    """HTTP method is not supported on this path."""

    status_code = 405
