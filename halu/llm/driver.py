from __future__ import annotations

from typing import Any, Iterator, Protocol

from halu.llm.types import StreamEvent


class ChatStream(Protocol):
    def __iter__(self) -> Iterator[StreamEvent]:
        ...

    def close(self) -> None:
        ...


class StreamingDriver(Protocol):
    def open_stream(
        self,
        *,
        messages: list[dict],
        tools: list[dict] | None = None,
        **kwargs: Any,
    ) -> ChatStream:
        ...
