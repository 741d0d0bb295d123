from __future__ import annotations

import copy
from typing import Any, Iterable, Iterator

from halu.llm.driver import StreamingDriver
from halu.llm.types import StreamCompleted, StreamEvent, TextDelta, UsageUpdate


def _to_event(item: Any) -> StreamEvent:
    if isinstance(item, str):
        return TextDelta(item)
    if isinstance(item, (TextDelta, UsageUpdate, StreamCompleted)):
        return item
    raise TypeError(f"Unsupported FakeStreamingDriver event: {type(item).__name__}")


class FakeStream:
    """Replays one scripted call; exceptions in the script are raised mid-stream."""

    def __init__(self, items: list[Any]):
        self._items = items
        self.closed = False

    def __iter__(self) -> Iterator[StreamEvent]:
        for item in self._items:
            if self.closed:
                return
            if isinstance(item, BaseException):
                raise item
            yield _to_event(item)

    def close(self) -> None:
        self.closed = True


class FakeStreamingDriver(StreamingDriver):
    """Scripted driver for tests.

    Each script entry is one ``open_stream`` call: either a list of
    fragments/events (strings become TextDelta), or an exception that is
    raised when the stream is opened.
    """

    def __init__(self, script: Iterable[Any]):
        self._script = list(script)
        self._cursor = 0
        self.requests: list[dict] = []
        self.streams: list[FakeStream] = []

    def open_stream(
        self,
        *,
        messages: list[dict],
        tools: list[dict] | None = None,
        **kwargs: Any,
    ) -> FakeStream:
        if self._cursor >= len(self._script):
            raise RuntimeError("FakeStreamingDriver script exhausted")
        item = self._script[self._cursor]
        self._cursor += 1
        self.requests.append({
            "messages": copy.deepcopy(messages),
            "tools": copy.deepcopy(tools),
        })
        if isinstance(item, BaseException):
            raise item
        if isinstance(item, str):
            item = [item]
        if not isinstance(item, list):
            raise TypeError(f"Unsupported FakeStreamingDriver script item: {type(item).__name__}")
        stream = FakeStream(list(item))
        self.streams.append(stream)
        return stream


__all__ = ["FakeStreamingDriver", "FakeStream"]
