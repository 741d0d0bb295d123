"""
Progress events the agent loop hands to a Reporter.
"""
from __future__ import annotations

from dataclasses import dataclass, field
import time
from typing import Any, Dict, Optional

LLM_CALL_START = "LLM_CALL_START"
LLM_CALL_END = "LLM_CALL_END"
LLM_RETRY = "LLM_RETRY"
TOOL_CALL_START = "TOOL_CALL_START"
TOOL_CALL_END = "TOOL_CALL_END"
INTERACTION_END = "INTERACTION_END"

EVENT_CATEGORIES: Dict[str, str] = {
    LLM_CALL_START: "llm",
    LLM_CALL_END: "llm",
    LLM_RETRY: "llm",
    TOOL_CALL_START: "tool",
    TOOL_CALL_END: "tool",
    INTERACTION_END: "interaction",
}

# Shown only with --ui-debug.
_DEBUG_ONLY = frozenset({LLM_CALL_START, LLM_CALL_END})


@dataclass(frozen=True)
class UIEvent:
    name: str
    level: str = "info"
    payload: Dict[str, Any] = field(default_factory=dict)
    interaction_id: Optional[int] = None
    round_id: Optional[int] = None
    ts: float = field(default_factory=time.time)

    @property
    def category(self) -> str:
        return EVENT_CATEGORIES[self.name]

    @property
    def debug_only(self) -> bool:
        return self.name in _DEBUG_ONLY


def make_event(
    name: str,
    *,
    level: str = "info",
    payload: Optional[Dict[str, Any]] = None,
    interaction_id: Optional[int] = None,
    round_id: Optional[int] = None,
) -> UIEvent:
    if name not in EVENT_CATEGORIES:
        raise ValueError(f"unknown event: {name}")
    return UIEvent(
        name=name,
        level=level,
        payload=dict(payload or {}),
        interaction_id=interaction_id,
        round_id=round_id,
    )


__all__ = [
    "EVENT_CATEGORIES",
    "INTERACTION_END",
    "LLM_CALL_END",
    "LLM_CALL_START",
    "LLM_RETRY",
    "TOOL_CALL_END",
    "TOOL_CALL_START",
    "UIEvent",
    "make_event",
]
