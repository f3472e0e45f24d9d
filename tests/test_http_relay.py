"""
Tests for the HTTP surface (health check and relay endpoint).

The relay tests run the real application lifespan, which spawns
tests/fixtures/echo_child.py as the child process.
"""

import json
import time

import pytest
from fastapi.testclient import TestClient

from stdio_bridge.controllers.http import create_app
from stdio_bridge.controllers.http.relay import error_response, parse_payload, read_body
from stdio_bridge.exceptions import (
    InvalidRequestBody,
    NotWritable,
    PayloadTooLarge,
    ProcessExited,
    RequestTimeout,
)

from conftest import make_config


class FakeRequest:
    """Minimal stand-in for a Starlette request body stream."""

    def __init__(self, chunks: list[bytes], headers: dict | None = None):
        self.headers = headers or {}
        self._chunks = chunks
        self.consumed = 0

    async def stream(self):
        for chunk in self._chunks:
            self.consumed += 1
            yield chunk


class TestReadBody:
    """Tests for bounded body reading."""

    @pytest.mark.asyncio
    async def test_reads_all_chunks(self):
        request = FakeRequest([b'{"id":', b' 1}'])
        assert await read_body(request, max_bytes=100) == b'{"id": 1}'

    @pytest.mark.asyncio
    async def test_rejects_mid_stream(self):
        """Reading stops at the chunk that crosses the ceiling."""
        request = FakeRequest([b"x" * 60, b"x" * 60, b"x" * 60, b"x" * 60])

        with pytest.raises(PayloadTooLarge):
            await read_body(request, max_bytes=100)
        assert request.consumed == 2

    @pytest.mark.asyncio
    async def test_rejects_declared_length(self):
        """A Content-Length over the ceiling is refused before reading."""
        request = FakeRequest([b"x"], headers={"content-length": "5000"})

        with pytest.raises(PayloadTooLarge):
            await read_body(request, max_bytes=100)
        assert request.consumed == 0


class TestParsePayload:
    """Tests for body parsing."""

    def test_object_and_array(self):
        assert parse_payload(b'{"id": 1}') == {"id": 1}
        assert parse_payload(b'[{"id": 1}, {"method": "n"}]') == [{"id": 1}, {"method": "n"}]
        assert parse_payload(b"[]") == []

    @pytest.mark.parametrize("body", [b"", b"{not json", b"42", b'"text"', b"null", b'[{"id": 1}, 2]', b"\xff"])
    def test_invalid_bodies(self, body):
        with pytest.raises(InvalidRequestBody):
            parse_payload(body)

    @pytest.mark.parametrize(
        "body",
        [b'{"id": NaN}', b'{"id": Infinity}', b'{"id": 1e400}', b'[{"id": 1}, {"id": NaN}]', b'[{"id": -1e400}]'],
    )
    def test_non_finite_ids_rejected(self, body):
        """An id that can never match a response is refused up front."""
        with pytest.raises(InvalidRequestBody):
            parse_payload(body)

    def test_large_finite_id_accepted(self):
        assert parse_payload(b'{"id": 1e300}') == {"id": 1e300}


class TestErrorResponse:
    """Tests for error rendering."""

    @pytest.mark.parametrize(
        "error,status",
        [
            (PayloadTooLarge("Body too large"), 413),
            (InvalidRequestBody("bad"), 400),
            (RequestTimeout("MCP request timed out"), 504),
            (ProcessExited(code=1), 502),
            (NotWritable("MCP process is not writable"), 503),
            (RuntimeError("boom"), 500),
        ],
    )
    def test_status_codes(self, error, status):
        response = error_response(error)

        assert response.status_code == status
        assert "error" in json.loads(response.body)


class TestHealth:
    """Tests for GET /health."""

    def test_health(self, http_client):
        response = http_client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"ok": True}


class TestMethods:
    """Tests for method handling."""

    @pytest.mark.parametrize("method", ["PUT", "PATCH", "DELETE"])
    def test_other_methods_rejected(self, http_client, method):
        response = http_client.request(method, "/")

        assert response.status_code == 405
        assert response.json() == {"error": "Method not allowed"}

    def test_get_other_path_rejected(self, http_client):
        response = http_client.get("/mcp")

        assert response.status_code == 405
        assert response.json() == {"error": "Method not allowed"}

    @pytest.mark.parametrize("method", ["TRACE", "PROPFIND"])
    def test_unlisted_methods_use_error_shape(self, http_client, method):
        """Methods the relay route does not list still get an {"error": ...} body."""
        response = http_client.request(method, "/mcp")

        assert response.status_code == 405
        assert response.json() == {"error": "Method not allowed"}


class TestRelaySingle:
    """Tests for single-message POSTs."""

    def test_ping(self, http_client):
        """The child's response object is returned as is."""
        response = http_client.post("/", json={"jsonrpc": "2.0", "id": 1, "method": "ping"})

        assert response.status_code == 200
        assert response.json() == {"jsonrpc": "2.0", "id": 1, "result": "pong"}

    def test_any_path(self, http_client):
        """The path is not interpreted."""
        response = http_client.post("/mcp/anything", json={"jsonrpc": "2.0", "id": "a", "method": "ping"})

        assert response.status_code == 200
        assert response.json()["id"] == "a"

    def test_notification_returns_204(self, http_client):
        response = http_client.post("/", json={"method": "notify"})

        assert response.status_code == 204
        assert response.content == b""

    def test_child_error_response_relayed(self, http_client):
        """JSON-RPC errors from the child are ordinary responses."""
        response = http_client.post("/", json={"jsonrpc": "2.0", "id": 3, "method": "nope"})

        assert response.status_code == 200
        assert response.json()["error"]["code"] == -32601

    def test_split_and_garbage_output(self, http_client):
        """Fragmented frames and bad lines from the child are handled."""
        split = http_client.post("/", json={"jsonrpc": "2.0", "id": 1, "method": "split"})
        garbage = http_client.post("/", json={"jsonrpc": "2.0", "id": 2, "method": "garbage"})

        assert split.json()["result"] == "joined"
        assert garbage.json()["result"] == "ok"

    def test_invalid_json(self, http_client):
        response = http_client.post("/", content=b"{nope", headers={"content-type": "application/json"})

        assert response.status_code == 400
        assert "Invalid JSON" in response.json()["error"]

    def test_scalar_body(self, http_client):
        response = http_client.post("/", content=b"42")

        assert response.status_code == 400


class TestRelayBatch:
    """Tests for batched POSTs."""

    def test_results_in_input_order(self, http_client):
        """id 2 answers first, but the response follows input order."""
        response = http_client.post("/", json=[
            {"jsonrpc": "2.0", "id": 1, "method": "sleep", "params": {"seconds": 0.3}},
            {"jsonrpc": "2.0", "id": 2, "method": "sleep", "params": {"seconds": 0}},
        ])

        assert response.status_code == 200
        assert [item["id"] for item in response.json()] == [1, 2]

    def test_notifications_omitted(self, http_client):
        response = http_client.post("/", json=[
            {"jsonrpc": "2.0", "method": "notify"},
            {"jsonrpc": "2.0", "id": 7, "method": "ping"},
        ])

        assert response.status_code == 200
        assert response.json() == [{"jsonrpc": "2.0", "id": 7, "result": "pong"}]

    def test_empty_batch(self, http_client):
        response = http_client.post("/", json=[])

        assert response.status_code == 200
        assert response.json() == []

    def test_non_object_element(self, http_client):
        response = http_client.post("/", json=[{"id": 1, "method": "ping"}, "ping"])

        assert response.status_code == 400


class TestRelayFailures:
    """Tests for timeouts, oversized bodies and child exit."""

    def test_timeout(self):
        app = create_app(make_config(request_timeout=0.3))
        with TestClient(app) as client:
            response = client.post("/", json={"jsonrpc": "2.0", "id": 1, "method": "silent"})

        assert response.status_code == 504
        assert response.json() == {"error": "MCP request timed out"}

    def test_batch_fails_when_one_element_fails(self):
        app = create_app(make_config(request_timeout=0.3))
        with TestClient(app) as client:
            response = client.post("/", json=[
                {"jsonrpc": "2.0", "id": 1, "method": "ping"},
                {"jsonrpc": "2.0", "id": 2, "method": "silent"},
            ])

        assert response.status_code == 504
        assert "timed out" in response.json()["error"]

    def test_body_too_large(self):
        app = create_app(make_config(max_body_bytes=64))
        with TestClient(app) as client:
            response = client.post("/", json={"id": 1, "method": "echo", "params": {"pad": "x" * 500}})

        assert response.status_code == 413
        assert response.json() == {"error": "Body too large"}

    def test_child_exit_fails_request_promptly(self):
        """An outstanding request fails with 502 well before the timeout."""
        app = create_app(make_config(request_timeout=30))
        with TestClient(app) as client:
            started = time.monotonic()
            response = client.post("/", json={"jsonrpc": "2.0", "id": 5, "method": "exit"})
            elapsed = time.monotonic() - started

            assert response.status_code == 502
            assert "exited" in response.json()["error"]
            assert elapsed < 10

            # Later requests fail fast and the health check keeps answering
            follow_up = client.post("/", json={"jsonrpc": "2.0", "id": 6, "method": "ping"})
            assert follow_up.status_code == 502
            assert client.get("/health").json() == {"ok": True}
