"""Request-side token estimates.

Used by the agent loop before each streamed call; actual usage reported by
the stream replaces the estimate.
"""

from __future__ import annotations

import json
from typing import Protocol


class TokenCounter(Protocol):
    def count_text(self, text: str) -> int:
        ...

    def count_messages(self, messages: list[dict]) -> int:
        ...


class TiktokenCounter:
    """Token counter using tiktoken.

    Falls back to o200k_base when the model is unknown to tiktoken, which
    is the case for most open-weight models served through vLLM.
    """

    def __init__(self, model: str = "gpt-4o", encoding_name: str | None = None) -> None:
        import tiktoken

        if encoding_name is not None:
            self._enc = tiktoken.get_encoding(encoding_name)
        else:
            try:
                self._enc = tiktoken.encoding_for_model(model)
            except KeyError:
                self._enc = tiktoken.get_encoding("o200k_base")

        self._encoding_name = self._enc.name

    @property
    def encoding_name(self) -> str:
        return self._encoding_name

    def count_text(self, text: str) -> int:
        if not text:
            return 0
        return len(self._enc.encode(text))

    def count_messages(self, messages: list[dict]) -> int:
        """Count tokens in a message list including per-message overhead.

        3 tokens per message, 1 per name field, 3 for the response primer.
        """
        if not messages:
            return 0

        total = 0
        for message in messages:
            total += 3
            for key, value in message.items():
                if isinstance(value, str):
                    total += len(self._enc.encode(value))
                if key == "name":
                    total += 1
        total += 3
        return total


def estimate_request_tokens(counter: TokenCounter, messages: list[dict], tools: list[dict] | None) -> int:
    total = counter.count_messages(messages)
    if tools:
        total += counter.count_text(json.dumps(tools, ensure_ascii=False))
    return total


__all__ = ["TokenCounter", "TiktokenCounter", "estimate_request_tokens"]
