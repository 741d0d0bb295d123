"""Agent loop, streaming tool-call scanner and retry policy."""

from .agent_loop import AgentLoop, InteractionResult
from .retry_policy import RetryPolicy
from .stream_scanner import StreamScanner, ToolCallRequest, decode_tool_call
from .prompts import build_system_prompt

__all__ = [
    "AgentLoop",
    "InteractionResult",
    "RetryPolicy",
    "StreamScanner",
    "ToolCallRequest",
    "decode_tool_call",
    "build_system_prompt",
]
