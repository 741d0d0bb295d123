from __future__ import annotations

import os

from halu.errors import LLMConfigError
from halu.llm.config import HaluProfile, LLMConfig
from halu.llm.driver import StreamingDriver


def _require_api_key(cfg: LLMConfig) -> str:
    if cfg.api_key:
        return cfg.api_key
    if cfg.api_key_env:
        key = os.getenv(cfg.api_key_env, "")
        if key:
            return key
    # vLLM accepts any key unless started with --api-key.
    if cfg.provider == "vllm":
        return "EMPTY"
    raise LLMConfigError(f"Missing API key. Set env {cfg.api_key_env!r} or provide api_key in config.")


def build_driver(profile: HaluProfile) -> StreamingDriver:
    cfg = profile.llm
    if cfg.provider in ("openai", "openrouter", "vllm", "oai_compatible"):
        from halu.llm.openai_chat_completions_driver import OpenAIChatCompletionsDriver

        return OpenAIChatCompletionsDriver(
            model=cfg.model,
            api_key=_require_api_key(cfg),
            base_url=cfg.base_url,
            default_headers=cfg.default_headers or None,
            temperature=cfg.temperature,
            max_tokens=cfg.max_tokens,
            timeout_s=cfg.timeout_s,
            native_tools=cfg.native_tools,
            extra=cfg.extra,
        )
    raise LLMConfigError(f"Unsupported provider: {cfg.provider}")


__all__ = ["build_driver"]
