"""Streaming model drivers, configuration and usage accounting."""

from .types import StreamCompleted, StreamEvent, TextDelta, UsageCounter, UsageUpdate
from .driver import ChatStream, StreamingDriver

__all__ = [
    "StreamCompleted",
    "StreamEvent",
    "TextDelta",
    "UsageCounter",
    "UsageUpdate",
    "ChatStream",
    "StreamingDriver",
]
