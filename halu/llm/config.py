from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Literal
import logging
import os

import yaml

Provider = Literal["openai", "openrouter", "vllm", "oai_compatible"]
ToolResultRole = Literal["system", "user"]

_DEFAULT_CONFIG_PATH = Path("configs/halu.yaml")
_logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = "You are halu, a coding assistant working inside the user's workspace."


@dataclass
class LLMConfig:
    provider: Provider = "vllm"
    model: str = "Qwen/Qwen2.5-Coder-32B-Instruct-AWQ"

    temperature: Optional[float] = None
    max_tokens: Optional[int] = None

    api_key_env: Optional[str] = None
    api_key: Optional[str] = None
    base_url: Optional[str] = None

    default_headers: Dict[str, str] = field(default_factory=dict)
    native_tools: bool = False

    timeout_s: Optional[float] = 300.0
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LLMConfig":
        if not isinstance(data, dict):
            return cls()
        default_headers = data.get("default_headers") or {}
        extra = data.get("extra") or {}
        provider = _to_str_or_none(data.get("provider"))
        if provider:
            provider = provider.lower()
        timeout_s = _to_float(data.get("timeout_s"))
        return cls(
            provider=provider or None,  # type: ignore[arg-type]
            model=_to_str_or_none(data.get("model")) or "",
            temperature=_to_float(data.get("temperature")),
            max_tokens=_to_int(data.get("max_tokens")),
            api_key_env=_to_str_or_none(data.get("api_key_env")),
            api_key=_to_str_or_none(data.get("api_key")),
            base_url=_to_str_or_none(data.get("base_url")),
            default_headers=dict(default_headers) if isinstance(default_headers, dict) else {},
            native_tools=bool(data.get("native_tools", False)),
            timeout_s=timeout_s if timeout_s is not None else cls.timeout_s,
            extra=dict(extra) if isinstance(extra, dict) else {},
        )

    def apply_env_fallbacks(self) -> None:
        if not self.provider:
            env_provider = os.getenv("HALU_LLM_PROVIDER", "").strip().lower()
            self.provider = env_provider or "vllm"  # type: ignore[assignment]
        provider = self.provider
        if not self.model:
            model = os.getenv("HALU_LLM_MODEL", "").strip()
            self.model = model or "Qwen/Qwen2.5-Coder-32B-Instruct-AWQ"
        if self.api_key_env is None:
            self.api_key_env = _default_api_key_env(provider)
        if self.base_url is None:
            env_base = os.getenv("HALU_BASE_URL", "").strip()
            if env_base:
                self.base_url = env_base
            elif provider == "openrouter":
                base_url = os.getenv("OPENROUTER_BASE_URL", "").strip()
                self.base_url = base_url or "https://openrouter.ai/api/v1"
            elif provider == "vllm":
                self.base_url = "http://localhost:8000/v1"
        if self.temperature is None:
            self.temperature = _to_float(os.getenv("HALU_TEMPERATURE", ""))


@dataclass
class AgentConfig:
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    max_attempts: int = 10
    max_rounds: int = 50
    tool_result_role: ToolResultRole = "system"
    estimate_tokens: bool = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AgentConfig":
        if not isinstance(data, dict):
            return cls()
        role = _to_str_or_none(data.get("tool_result_role")) or cls.tool_result_role
        if role not in ("system", "user"):
            raise ValueError(f"tool_result_role must be system or user, got {role!r}")
        return cls(
            system_prompt=_to_str_or_none(data.get("system_prompt")) or cls.system_prompt,
            max_attempts=_to_int(data.get("max_attempts")) or cls.max_attempts,
            max_rounds=_to_int(data.get("max_rounds")) or cls.max_rounds,
            tool_result_role=role,  # type: ignore[arg-type]
            estimate_tokens=bool(data.get("estimate_tokens", cls.estimate_tokens)),
        )

    def apply_env_fallbacks(self) -> None:
        attempts = _to_int(os.getenv("HALU_MAX_ATTEMPTS", ""))
        if attempts:
            self.max_attempts = attempts
        rounds = _to_int(os.getenv("HALU_MAX_ROUNDS", ""))
        if rounds:
            self.max_rounds = rounds


@dataclass
class HaluProfile:
    """Model connection, loop limits and an optional price table override."""

    llm: LLMConfig = field(default_factory=LLMConfig)
    agent: AgentConfig = field(default_factory=AgentConfig)
    prices: Dict[str, Dict[str, float]] = field(default_factory=dict)

    @staticmethod
    def from_env() -> "HaluProfile":
        llm = LLMConfig(provider=None, model="")  # type: ignore[arg-type]
        llm.apply_env_fallbacks()
        agent = AgentConfig()
        agent.apply_env_fallbacks()
        return HaluProfile(llm=llm, agent=agent)

    @staticmethod
    def from_env_or_file(path: Optional[str] = None) -> "HaluProfile":
        config_path = Path(path) if path else Path(os.getenv("HALU_CONFIG", str(_DEFAULT_CONFIG_PATH)))
        if not config_path.exists():
            if path:
                raise FileNotFoundError(f"Config file not found: {config_path}")
            return HaluProfile.from_env()
        _logger.info("Loading config %s", config_path)
        raw = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
        if not isinstance(raw, dict):
            raise ValueError(f"Config must be a mapping: {config_path}")
        llm_raw = raw.get("llm") if "llm" in raw else {}
        prices_raw = raw.get("prices") or {}
        profile = HaluProfile(
            llm=LLMConfig.from_dict(llm_raw if isinstance(llm_raw, dict) else {}),
            agent=AgentConfig.from_dict(raw.get("agent") or {}),
            prices=_parse_prices(prices_raw),
        )
        profile.llm.apply_env_fallbacks()
        profile.agent.apply_env_fallbacks()
        return profile


def _parse_prices(data: Any) -> Dict[str, Dict[str, float]]:
    if not isinstance(data, dict):
        raise ValueError("prices must be a mapping of model -> {input, output}")
    out: Dict[str, Dict[str, float]] = {}
    for model, entry in data.items():
        if not isinstance(entry, dict):
            raise ValueError(f"price entry for {model!r} must be a mapping")
        out[str(model)] = {
            "input": _to_float(entry.get("input")) or 0.0,
            "output": _to_float(entry.get("output")) or 0.0,
        }
    return out


def _default_api_key_env(provider: str) -> str:
    if provider == "openrouter":
        return "OPENROUTER_API_KEY"
    if provider == "vllm":
        return "VLLM_API_KEY"
    return "OPENAI_API_KEY"


def _to_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str) and value.strip():
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _to_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip():
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _to_str_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


__all__ = [
    "LLMConfig",
    "AgentConfig",
    "HaluProfile",
    "Provider",
    "DEFAULT_SYSTEM_PROMPT",
]
