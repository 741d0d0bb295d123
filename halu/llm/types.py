from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union


@dataclass
class UsageCounter:
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def add(self, other: "UsageCounter") -> None:
        self.input_tokens += other.input_tokens
        self.output_tokens += other.output_tokens

    def copy(self) -> "UsageCounter":
        return UsageCounter(self.input_tokens, self.output_tokens)


@dataclass(frozen=True)
class TextDelta:
    text: str


@dataclass(frozen=True)
class UsageUpdate:
    input_tokens: int
    output_tokens: int


@dataclass(frozen=True)
class StreamCompleted:
    finish_reason: Optional[str] = None
    usage: Optional[UsageUpdate] = None


StreamEvent = Union[TextDelta, UsageUpdate, StreamCompleted]


__all__ = [
    "UsageCounter",
    "TextDelta",
    "UsageUpdate",
    "StreamCompleted",
    "StreamEvent",
]
