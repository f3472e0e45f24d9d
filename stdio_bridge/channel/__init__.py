"""
Stdio Channel

Newline-delimited JSON framing and request/response correlation.
"""

from stdio_bridge.channel.correlator import (
    MessageCorrelator,
    Outcome,
    OutcomeKind,
    PendingEntry,
    get_request_id,
)
from stdio_bridge.channel.reader import FrameReader, deserialize_frame, serialize_message

__all__ = [
    "FrameReader",
    "MessageCorrelator",
    "Outcome",
    "OutcomeKind",
    "PendingEntry",
    "deserialize_frame",
    "get_request_id",
    "serialize_message",
]
