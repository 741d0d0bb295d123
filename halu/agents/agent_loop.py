from __future__ import annotations

from contextlib import closing
from dataclasses import dataclass, field
import json
import logging
from typing import Any, Callable, Dict, List, Optional

from halu.agents.prompts import build_system_prompt
from halu.agents.retry_policy import DEFAULT_MAX_ATTEMPTS, RetryPolicy
from halu.agents.stream_scanner import StreamScanner, ToolCallRequest
from halu.errors import HaluError, InteractionCancelledError, MaxRoundsExceededError, UnknownToolError
from halu.llm.config import DEFAULT_SYSTEM_PROMPT
from halu.llm.driver import StreamingDriver
from halu.llm.pricing import PriceTable
from halu.llm.tokens import TokenCounter, estimate_request_tokens
from halu.llm.types import StreamCompleted, TextDelta, UsageCounter, UsageUpdate
from halu.runtime.cancellation import CancellationToken
from halu.runtime.tool_executor import ToolExecutor
from halu.runtime.trace_store import TraceStore
from halu.runtime.transcript import SYSTEM, Transcript, Turn
from halu.tools.registry import ToolRegistry
from halu.ui import NullReporter, Reporter, make_event
from halu.ui.events import (
    INTERACTION_END,
    LLM_CALL_END,
    LLM_CALL_START,
    LLM_RETRY,
    TOOL_CALL_END,
    TOOL_CALL_START,
)


@dataclass
class InteractionResult:
    text: str
    usage: UsageCounter
    rounds: int
    tool_calls: List[ToolCallRequest] = field(default_factory=list)


@dataclass
class _StreamOutcome:
    content: str
    text: str
    calls: List[ToolCallRequest]
    reported: Optional[UsageUpdate]


class AgentLoop:
    """Turn-taking loop between a streaming model and the tool registry.

    One ``run`` call is one interaction: a non-empty prompt becomes a user turn, then
    the model is called until it answers without requesting tools. The
    transcript and ``session_usage`` persist across interactions.
    """

    def __init__(
        self,
        *,
        driver: StreamingDriver,
        registry: ToolRegistry,
        system_prompt: Optional[str] = None,
        reporter: Optional[Reporter] = None,
        display: Optional[Callable[[str], None]] = None,
        retry_policy: Optional[RetryPolicy] = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        max_rounds: int = 50,
        token_counter: Optional[TokenCounter] = None,
        tool_result_role: str = SYSTEM,
        trace_store: Optional[TraceStore] = None,
        model_name: str = "",
        price_table: Optional[PriceTable] = None,
        driver_kwargs: Optional[Dict[str, Any]] = None,
    ) -> None:
        if max_rounds < 1:
            raise ValueError("max_rounds must be >= 1")
        self.driver = driver
        self.registry = registry
        self.reporter = reporter or NullReporter()
        self.display = display or self.reporter.write_text
        self.retry_policy = retry_policy or RetryPolicy(max_attempts)
        if self.retry_policy.on_retry is None:
            self.retry_policy.on_retry = self._on_retry
        self.max_rounds = max_rounds
        self.token_counter = token_counter
        self.tool_result_role = tool_result_role
        self.trace_store = trace_store
        self.model_name = model_name
        self.price_table = price_table
        self.driver_kwargs = driver_kwargs or {}
        self.executor = ToolExecutor(registry, trace_store=trace_store)
        self.session_usage = UsageCounter()
        self.logger = logging.getLogger(__name__)

        self.transcript = Transcript()
        self.transcript.append(Turn.system(build_system_prompt(
            system_prompt or DEFAULT_SYSTEM_PROMPT,
            registry.as_tool_descriptors(),
        )))
        self._interaction_id = 0
        self._round_id: Optional[int] = None

    def _emit(
        self,
        name: str,
        *,
        level: str = "info",
        payload: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.reporter.emit(make_event(
            name,
            level=level,
            interaction_id=self._interaction_id,
            round_id=self._round_id,
            payload=payload or {},
        ))

    def session_cost(self) -> Optional[float]:
        if self.price_table is None:
            return None
        return self.price_table.estimate_cost(self.model_name, self.session_usage)

    def run(self, prompt: str, *, cancel: Optional[CancellationToken] = None) -> InteractionResult:
        """Run one interaction to completion.

        Raises RetryExhaustedError, LLMRequestError, UnknownToolError,
        MaxRoundsExceededError or InteractionCancelledError; turns appended
        before the failure stay in the transcript.
        """
        cancel = cancel or CancellationToken()
        self._interaction_id += 1
        usage = UsageCounter()
        dispatched: List[ToolCallRequest] = []
        rounds = 0
        status = "failed"

        # An empty prompt continues from the transcript as it stands.
        if prompt:
            self.transcript.append(Turn.user(prompt))
        try:
            for round_id in range(self.max_rounds):
                self._round_id = round_id
                rounds = round_id + 1
                outcome = self._stream_turn(usage, cancel)
                self.transcript.append(Turn.assistant(outcome.content))

                if not outcome.calls:
                    status = "done"
                    return InteractionResult(
                        text=outcome.text,
                        usage=usage.copy(),
                        rounds=rounds,
                        tool_calls=dispatched,
                    )

                for call in outcome.calls:
                    cancel.raise_if_cancelled()
                    self._dispatch(call)
                    dispatched.append(call)
            raise MaxRoundsExceededError(self.max_rounds)
        except InteractionCancelledError:
            status = "cancelled"
            raise
        except HaluError as exc:
            self.logger.warning("Interaction %d failed: %s", self._interaction_id, exc)
            raise
        finally:
            self.session_usage.add(usage)
            self._emit(INTERACTION_END, payload={
                "status": status,
                "rounds": rounds,
                "input_tokens": usage.input_tokens,
                "output_tokens": usage.output_tokens,
            })
            self._round_id = None

    def _dispatch(self, call: ToolCallRequest) -> None:
        if not self.registry.has_tool(call.name):
            raise UnknownToolError(call.name)
        self._emit(TOOL_CALL_START, payload={
            "tool": call.name,
            "params_compact": self._compact_params(call.arguments),
            "arguments_json": json.dumps(call.arguments, ensure_ascii=False, indent=2),
        })
        result = self.executor.execute(call.name, call.arguments)
        self.transcript.append(Turn.tool_result(result.as_turn_content(call.name), tool_name=call.name))
        self._emit(TOOL_CALL_END, level="info" if result.succeeded else "warning", payload={
            "tool": call.name,
            "status": "ok" if result.succeeded else "failed",
            "result_snippet": result.text,
        })

    def _stream_turn(self, usage: UsageCounter, cancel: CancellationToken) -> _StreamOutcome:
        messages = self.transcript.to_messages(tool_result_role=self.tool_result_role)
        tools = self.registry.as_tool_descriptors()
        estimate = 0
        if self.token_counter is not None:
            estimate = estimate_request_tokens(self.token_counter, messages, tools)

        self._emit(LLM_CALL_START, payload={"estimated_input_tokens": estimate})
        outcome = self.retry_policy.attempt(lambda: self._attempt_stream(messages, tools, cancel))

        if outcome.reported is not None:
            usage.add(UsageCounter(outcome.reported.input_tokens, outcome.reported.output_tokens))
        else:
            output_estimate = self.token_counter.count_text(outcome.content) if self.token_counter else 0
            usage.add(UsageCounter(estimate, output_estimate))

        self._emit(LLM_CALL_END, payload={"n_tool_calls": len(outcome.calls)})
        if self.trace_store is not None:
            self.trace_store.record_model_turn(
                interaction_id=self._interaction_id,
                round_id=self._round_id,
                content=outcome.content,
                tool_calls=[{"name": c.name, "arguments": c.arguments} for c in outcome.calls],
                usage_reported=outcome.reported is not None,
            )
        return outcome

    def _attempt_stream(
        self,
        messages: list[dict],
        tools: list[dict],
        cancel: CancellationToken,
    ) -> _StreamOutcome:
        cancel.raise_if_cancelled()
        scanner = StreamScanner()
        content: List[str] = []
        reported: Optional[UsageUpdate] = None

        stream = self.driver.open_stream(messages=messages, tools=tools, **self.driver_kwargs)
        with closing(stream):
            for event in stream:
                cancel.raise_if_cancelled()
                if isinstance(event, TextDelta):
                    content.append(event.text)
                    for text in scanner.feed(event.text):
                        self.display(text)
                elif isinstance(event, UsageUpdate):
                    reported = event
                elif isinstance(event, StreamCompleted) and event.usage is not None:
                    reported = event.usage

        for text in scanner.flush():
            self.display(text)
        return _StreamOutcome(
            content="".join(content),
            text=scanner.text,
            calls=scanner.finalize(),
            reported=reported,
        )

    def _on_retry(self, attempt: int, max_attempts: int, exc: BaseException) -> None:
        self._emit(LLM_RETRY, level="warning", payload={
            "attempt": attempt,
            "max_attempts": max_attempts,
            "error": str(exc),
        })

    @staticmethod
    def _snippet(text: Any, limit: int = 140) -> str:
        if text is None:
            return ""
        cleaned = " ".join(str(text).split())
        if len(cleaned) <= limit:
            return cleaned
        return cleaned[: max(0, limit - 3)] + "..."

    @staticmethod
    def _compact_params(params: Any, max_items: int = 4, max_len: int = 140) -> str:
        if not isinstance(params, dict):
            return AgentLoop._snippet(params, max_len)
        parts = []
        for key in list(params.keys())[:max_items]:
            val = params.get(key)
            if isinstance(val, (str, int, float, bool)):
                sval = str(val)
            elif isinstance(val, list):
                sval = f"list[{len(val)}]"
            elif isinstance(val, dict):
                sval = f"dict[{len(val)}]"
            else:
                sval = type(val).__name__
            parts.append(f"{key}={sval}")
        return AgentLoop._snippet(", ".join(parts), max_len)


__all__ = ["AgentLoop", "InteractionResult"]
