"""
Framed Channel Reader

Incremental decoder for newline-delimited JSON. Bytes are appended as they
arrive from the child's stdout, in whatever chunks the pipe delivers them,
and complete frames are pulled out one at a time.
"""

import json
from typing import Any, Iterator, Optional

from stdio_bridge.configs.logging import get_logger
from stdio_bridge.exceptions import MalformedFrame

logger = get_logger("channel.reader")

FRAME_DELIMITER = b"\n"


def serialize_message(message: Any) -> bytes:
    """Encode one message as a single newline-terminated frame."""
    return json.dumps(message, separators=(",", ":")).encode("utf-8") + FRAME_DELIMITER


def deserialize_frame(frame: bytes) -> dict[str, Any]:
    """
    Decode one frame (without its delimiter) into a message.

    Raises:
        MalformedFrame: If the frame is not UTF-8 JSON or not a JSON object
    """
    try:
        message = json.loads(frame.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedFrame(f"Undecodable frame: {e}", frame) from e

    if not isinstance(message, dict):
        raise MalformedFrame(f"Frame is a JSON {type(message).__name__}, expected an object", frame)
    return message


class FrameReader:
    """
    Buffer that turns an arbitrarily chunked byte stream into messages.

    Call append() with each chunk, then read_message() until it returns None
    (or iterate drain()), since one chunk may carry zero, one or many frames.
    A partial frame left in the buffer when the stream ends is never decoded.
    """

    def __init__(self) -> None:
        self._buffer = bytearray()

    def append(self, data: bytes) -> None:
        self._buffer.extend(data)

    def read_message(self) -> Optional[dict[str, Any]]:
        """
        Extract the next complete frame.

        Returns:
            The decoded message, or None when no complete frame is buffered

        Raises:
            MalformedFrame: If the next frame does not decode. The buffer has
                already moved past it, so the next call continues cleanly.
        """
        while True:
            index = self._buffer.find(FRAME_DELIMITER)
            if index == -1:
                return None

            frame = bytes(self._buffer[:index])
            del self._buffer[: index + 1]

            frame = frame.rstrip(b"\r")
            if not frame.strip():
                continue
            return deserialize_frame(frame)

    def drain(self) -> Iterator[dict[str, Any]]:
        """Yield every complete message currently buffered, skipping malformed frames."""
        while True:
            try:
                message = self.read_message()
            except MalformedFrame as e:
                logger.warning(f"Skipping malformed frame from child: {e}")
                continue
            if message is None:
                return
            yield message

    def clear(self) -> None:
        """Discard any buffered bytes."""
        self._buffer.clear()

    @property
    def pending_bytes(self) -> int:
        return len(self._buffer)
