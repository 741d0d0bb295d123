from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, Optional

import httpx
import openai
from openai import OpenAI

from halu.errors import LLMRequestError, TransientStreamError
from halu.llm.driver import StreamingDriver
from halu.llm.types import StreamCompleted, StreamEvent, TextDelta, UsageUpdate

logger = logging.getLogger(__name__)


def _descriptors_to_chat_tools(tools: list[dict]) -> list[dict]:
    out: list[dict] = []
    for tool in tools:
        out.append({
            "type": "function",
            "function": {
                "name": tool.get("name", ""),
                "description": tool.get("description", ""),
                "parameters": tool.get("parameters", {}),
            },
        })
    return out


def _classify_open_error(exc: Exception) -> Exception:
    if isinstance(exc, openai.APIConnectionError):
        return TransientStreamError(f"connection failed: {exc}")
    if isinstance(exc, openai.InternalServerError):
        return TransientStreamError(f"server error {exc.status_code}: {exc.message}")
    if isinstance(exc, openai.APIStatusError):
        return LLMRequestError(f"HTTP {exc.status_code}: {exc.message}", status_code=exc.status_code)
    return exc


class OpenAIChatStream:
    """Adapts an openai ``Stream[ChatCompletionChunk]`` to halu stream events."""

    def __init__(self, raw: Any):
        self._raw = raw

    def __iter__(self) -> Iterator[StreamEvent]:
        finish_reason: Optional[str] = None
        usage: Optional[UsageUpdate] = None
        try:
            for chunk in self._raw:
                chunk_usage = getattr(chunk, "usage", None)
                if chunk_usage is not None:
                    usage = UsageUpdate(
                        input_tokens=int(getattr(chunk_usage, "prompt_tokens", 0) or 0),
                        output_tokens=int(getattr(chunk_usage, "completion_tokens", 0) or 0),
                    )
                    yield usage
                for choice in getattr(chunk, "choices", None) or []:
                    if choice.finish_reason:
                        finish_reason = choice.finish_reason
                    delta = getattr(choice, "delta", None)
                    content = getattr(delta, "content", None) if delta is not None else None
                    if content:
                        yield TextDelta(content)
        except openai.APIStatusError as exc:
            if exc.status_code >= 500:
                raise TransientStreamError(f"server error {exc.status_code} mid-stream: {exc.message}") from exc
            raise LLMRequestError(f"HTTP {exc.status_code}: {exc.message}", status_code=exc.status_code) from exc
        except openai.APIError as exc:
            raise TransientStreamError(f"stream error: {exc.message}") from exc
        except httpx.TransportError as exc:
            raise TransientStreamError(f"stream interrupted: {exc}") from exc
        yield StreamCompleted(finish_reason=finish_reason, usage=usage)

    def close(self) -> None:
        self._raw.close()


class OpenAIChatCompletionsDriver(StreamingDriver):
    """Streams chat completions from any OpenAI-compatible endpoint (OpenAI, vLLM, OpenRouter)."""

    def __init__(
        self,
        *,
        model: str,
        api_key: str,
        base_url: Optional[str] = None,
        default_headers: Optional[Dict[str, str]] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        timeout_s: Optional[float] = None,
        native_tools: bool = False,
        extra: Optional[Dict[str, Any]] = None,
        client: Any | None = None,
    ) -> None:
        if client is not None:
            self.client = client
        else:
            kwargs: dict[str, Any] = {"api_key": api_key, "max_retries": 0}
            if base_url:
                kwargs["base_url"] = base_url
            if default_headers:
                kwargs["default_headers"] = default_headers
            if timeout_s is not None:
                kwargs["timeout"] = timeout_s
            self.client = OpenAI(**kwargs)
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.native_tools = native_tools
        self.extra = dict(extra or {})

    def open_stream(
        self,
        *,
        messages: list[dict],
        tools: list[dict] | None = None,
        **kwargs: Any,
    ) -> OpenAIChatStream:
        payload: dict[str, Any] = {
            "model": kwargs.pop("model", None) or self.model,
            "messages": messages,
            "stream": True,
            "stream_options": {"include_usage": True},
        }
        # Tool descriptors already live in the system prompt; native schemas are opt-in.
        if self.native_tools and tools:
            payload["tools"] = _descriptors_to_chat_tools(tools)
        if self.temperature is not None:
            payload["temperature"] = self.temperature
        if self.max_tokens is not None:
            payload["max_tokens"] = self.max_tokens
        payload.update(self.extra)
        payload.update(kwargs)

        logger.debug("Opening stream model=%s messages=%d", payload["model"], len(messages))
        try:
            raw = self.client.chat.completions.create(**payload)
        except openai.APIError as exc:
            raise _classify_open_error(exc) from exc
        return OpenAIChatStream(raw)


__all__ = ["OpenAIChatCompletionsDriver", "OpenAIChatStream"]
