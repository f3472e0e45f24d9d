"""
Message Correlator

Pairs requests written to the child with the responses it writes back.
Each request gets a PendingEntry keyed by its id and its own timer; the entry
is settled exactly once with an Outcome, by the matching response, by the
timer, or by the child exiting.

All state lives on the event loop thread. An entry is always removed from the
registry before its future is completed, so a late response can never settle
an entry that already timed out.
"""

import asyncio
import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Hashable, Optional

from stdio_bridge.channel.reader import serialize_message
from stdio_bridge.configs.constants import get_timeout
from stdio_bridge.configs.logging import get_logger
from stdio_bridge.exceptions import DuplicateRequestId, ProcessExited, RequestTimeout

logger = get_logger("channel.correlator")

Writer = Callable[[bytes], Awaitable[None]]


def get_request_id(message: Any) -> Any:
    """Return the message's correlation id, or None for a notification."""
    if isinstance(message, dict):
        return message.get("id")
    return None


def _registry_key(request_id: Any) -> Hashable:
    # JSON does not distinguish 1 from 1.0, but does distinguish 1 from "1" and true
    if isinstance(request_id, str):
        return ("str", request_id)
    if isinstance(request_id, (int, float)) and not isinstance(request_id, bool):
        return ("num", request_id)
    return ("json", json.dumps(request_id, sort_keys=True))


class OutcomeKind(Enum):
    SUCCESS = "success"
    TIMED_OUT = "timed_out"
    PROCESS_EXITED = "process_exited"


@dataclass(frozen=True)
class Outcome:
    """How a pending request ended."""

    kind: OutcomeKind
    message: Optional[dict] = None
    code: Optional[int] = None

    @classmethod
    def success(cls, message: dict) -> "Outcome":
        return cls(OutcomeKind.SUCCESS, message=message)

    @classmethod
    def timed_out(cls) -> "Outcome":
        return cls(OutcomeKind.TIMED_OUT)

    @classmethod
    def process_exited(cls, code: Optional[int]) -> "Outcome":
        return cls(OutcomeKind.PROCESS_EXITED, code=code)


@dataclass
class PendingEntry:
    """A request that is waiting for its response."""

    request_id: Any
    future: asyncio.Future
    timeout: float
    timer: Optional[asyncio.TimerHandle] = None

    def settle(self, outcome: Outcome) -> bool:
        """Complete the entry. Returns False if it was already settled."""
        if self.timer is not None:
            self.timer.cancel()
        if self.future.done():
            return False
        self.future.set_result(outcome)
        return True


class MessageCorrelator:
    """
    Registry of outstanding requests for one child process lifetime.

    Args:
        writer: Coroutine function that writes one serialized frame to the child
        default_timeout: Seconds to wait for a response when send() gets no timeout
    """

    def __init__(self, writer: Writer, default_timeout: Optional[float] = None):
        self._write = writer
        self.default_timeout = default_timeout if default_timeout is not None else get_timeout("request")
        self._pending: dict[Hashable, PendingEntry] = {}
        self._closed = False
        self._exit_code: Optional[int] = None

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, message: dict, timeout: Optional[float] = None) -> Optional[dict]:
        """
        Write a message to the child and wait for its response.

        Args:
            message: Request or notification to relay
            timeout: Seconds to wait for the response (default_timeout if None)

        Returns:
            The response message, or None for a notification

        Raises:
            ProcessExited: If the child has exited or exits before responding
            RequestTimeout: If no response arrives in time
            DuplicateRequestId: If a request with this id is still outstanding
            NotWritable: If the frame could not be written
        """
        if self._closed:
            raise ProcessExited(code=self._exit_code)

        frame = serialize_message(message)
        request_id = get_request_id(message)

        if request_id is None:
            await self._write(frame)
            return None

        key = _registry_key(request_id)
        if key in self._pending:
            raise DuplicateRequestId(f"Request id {request_id!r} is already in flight", request_id)

        if timeout is None:
            timeout = self.default_timeout
        loop = asyncio.get_running_loop()
        entry = PendingEntry(request_id=request_id, future=loop.create_future(), timeout=timeout)
        entry.timer = loop.call_later(timeout, self._expire, key, entry)
        self._pending[key] = entry

        try:
            await self._write(frame)
            outcome = await entry.future
        except BaseException:
            # Write failed or the caller was cancelled
            self._discard(key, entry)
            raise

        return self._unwrap(entry, outcome)

    def on_inbound_message(self, message: Any) -> None:
        """Settle the pending entry matching the message's id, if any."""
        request_id = get_request_id(message)
        if request_id is None:
            logger.debug("Ignoring child message without an id")
            return

        entry = self._pending.pop(_registry_key(request_id), None)
        if entry is None:
            logger.debug(f"Discarding response with no pending request: id={request_id!r}")
            return

        entry.settle(Outcome.success(message))

    def on_process_exit(self, code: Optional[int]) -> None:
        """Fail every pending entry and refuse further sends."""
        self._closed = True
        self._exit_code = code
        if not self._pending:
            return

        entries = list(self._pending.values())
        self._pending.clear()
        logger.error(f"Failing {len(entries)} pending request(s): process exited with code {code}")
        for entry in entries:
            entry.settle(Outcome.process_exited(code))

    def _expire(self, key: Hashable, entry: PendingEntry) -> None:
        if self._pending.get(key) is not entry:
            return
        del self._pending[key]
        logger.warning(f"Request id={entry.request_id!r} timed out after {entry.timeout}s")
        entry.settle(Outcome.timed_out())

    def _discard(self, key: Hashable, entry: PendingEntry) -> None:
        if self._pending.get(key) is entry:
            del self._pending[key]
        if entry.timer is not None:
            entry.timer.cancel()

    @staticmethod
    def _unwrap(entry: PendingEntry, outcome: Outcome) -> dict:
        if outcome.kind is OutcomeKind.SUCCESS:
            return outcome.message
        if outcome.kind is OutcomeKind.TIMED_OUT:
            raise RequestTimeout("MCP request timed out", entry.request_id, entry.timeout)
        raise ProcessExited(code=outcome.code)
