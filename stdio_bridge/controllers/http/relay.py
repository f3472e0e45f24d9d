"""
Relay Endpoint

POST on any path forwards the JSON body to the child process and answers with
the correlated response(s). Every other method is rejected.
"""

import asyncio
import json
import math
from typing import Any, Union

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from stdio_bridge.configs.logging import get_logger
from stdio_bridge.exceptions import (
    BridgeError,
    InvalidRequestBody,
    MethodNotAllowed,
    PayloadTooLarge,
)

logger = get_logger("http.relay")

router = APIRouter()

RELAY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"]

Payload = Union[dict[str, Any], list[dict[str, Any]]]


# --- Response Models ---


class ErrorResponse(BaseModel):
    """Body of every failed request."""
    error: str


def error_response(error: Exception) -> JSONResponse:
    """Render an exception as {"error": message} with its status code."""
    if isinstance(error, BridgeError):
        status_code = error.status_code
        message = error.message
    else:
        status_code = 500
        message = str(error) or "Unknown error"
    return JSONResponse(ErrorResponse(error=message).model_dump(), status_code=status_code)


# --- Body Handling ---


async def read_body(request: Request, max_bytes: int) -> bytes:
    """
    Read the request body, giving up as soon as it exceeds max_bytes.

    Raises:
        PayloadTooLarge: If Content-Length or the streamed size exceeds max_bytes
    """
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > max_bytes:
        raise PayloadTooLarge("Body too large")

    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > max_bytes:
            raise PayloadTooLarge("Body too large")
    return bytes(body)


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not valid JSON")


def _check_id(message: dict[str, Any]) -> None:
    # 1e400 parses to inf, which can never match a response id
    request_id = message.get("id")
    if isinstance(request_id, float) and not math.isfinite(request_id):
        raise InvalidRequestBody("Request id must be a finite number")


def parse_payload(body: bytes) -> Payload:
    """
    Parse a request body into one message or a batch of messages.

    Raises:
        InvalidRequestBody: If the body is not a JSON object or array of objects, or a
            message id is not a finite number
    """
    try:
        payload = json.loads(body, parse_constant=_reject_constant)
    except (UnicodeDecodeError, ValueError) as e:
        raise InvalidRequestBody(f"Invalid JSON body: {e}") from e

    if isinstance(payload, dict):
        _check_id(payload)
        return payload
    if isinstance(payload, list):
        if not all(isinstance(item, dict) for item in payload):
            raise InvalidRequestBody("Batch elements must be JSON objects")
        for item in payload:
            _check_id(item)
        return payload
    raise InvalidRequestBody("Request body must be a JSON object or array")


async def send_batch(bridge, messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """
    Send every message concurrently and collect the responses in input order.

    Notifications produce no entry. The first failure (in input order) fails
    the whole batch, after every element has settled.
    """
    outcomes = await asyncio.gather(
        *(bridge.send(message) for message in messages),
        return_exceptions=True,
    )
    for outcome in outcomes:
        if isinstance(outcome, BaseException):
            raise outcome
    return [outcome for outcome in outcomes if outcome is not None]


# --- Endpoints ---


@router.api_route("/{path:path}", methods=RELAY_METHODS)
async def relay(request: Request, path: str) -> Response:
    """
    Forward a JSON-RPC message or batch to the child process.

    Returns:
        200 with the response object or array, 204 for a lone notification,
        or {"error": ...} with an error status
    """
    if request.method != "POST":
        return error_response(MethodNotAllowed("Method not allowed"))

    bridge = request.app.state.bridge

    try:
        body = await read_body(request, bridge.config.max_body_bytes)
        payload = parse_payload(body)

        if isinstance(payload, list):
            logger.debug(f"Relaying batch of {len(payload)} message(s) from /{path}")
            results = await send_batch(bridge, payload)
            return JSONResponse(results)

        logger.debug(f"Relaying {payload.get('method', '<response>')} (id={payload.get('id')!r}) from /{path}")
        result = await bridge.send(payload)
        if result is None:
            return Response(status_code=204)
        return JSONResponse(result)

    except BridgeError as e:
        logger.warning(f"Relay failed: {e.message}")
        return error_response(e)
    except Exception as e:
        logger.exception("Unexpected relay failure")
        return error_response(e)
