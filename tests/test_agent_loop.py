from __future__ import annotations

import json

import pytest
import tenacity
from pydantic import BaseModel, Field

from halu.agents import AgentLoop, RetryPolicy
from halu.errors import (
    InteractionCancelledError,
    LLMRequestError,
    MaxRoundsExceededError,
    RetryExhaustedError,
    TransientStreamError,
    UnknownToolError,
)
from halu.llm.fake_driver import FakeStreamingDriver
from halu.llm.pricing import PriceTable
from halu.llm.types import StreamCompleted, UsageUpdate
from halu.runtime import CancellationToken, TraceStore
from halu.tools.registry import ToolRegistry
from halu.ui import Reporter


class EchoInput(BaseModel):
    """Echo text back."""

    text: str = Field(..., description="Text to echo")


class RecordingReporter(Reporter):
    def __init__(self) -> None:
        self.events = []
        self.text = []

    def write_text(self, text: str) -> None:
        self.text.append(text)

    def emit(self, event) -> None:
        self.events.append(event)


class CharCounter:
    def count_text(self, text: str) -> int:
        return len(text)

    def count_messages(self, messages: list[dict]) -> int:
        return sum(len(m["content"]) for m in messages)


def _call(name: str, **arguments) -> str:
    return f"<tool_call>{json.dumps({'name': name, **arguments})}</tool_call>"


def _build(script, *, max_attempts: int = 10, **kwargs):
    seen: list[str] = []

    def echo(payload: dict) -> str:
        seen.append(payload["text"])
        return payload["text"]

    def boom(payload: dict) -> str:
        raise ValueError("bad input")

    registry = ToolRegistry(register_all_tools=False)
    registry.register_tool("echo", echo, EchoInput)
    registry.register_tool("boom", boom, EchoInput)
    driver = FakeStreamingDriver(script)
    reporter = kwargs.pop("reporter", None) or RecordingReporter()
    loop = AgentLoop(
        driver=driver,
        registry=registry,
        reporter=reporter,
        retry_policy=RetryPolicy(max_attempts, wait=tenacity.wait_none()),
        **kwargs,
    )
    return loop, driver, reporter, seen


def test_plain_answer_streams_to_display() -> None:
    loop, driver, reporter, _ = _build([["Hel", "lo", " world"]])

    result = loop.run("hi")

    assert result.text == "Hello world"
    assert result.rounds == 1
    assert "".join(reporter.text) == "Hello world"
    assert loop.transcript.roles() == ["system", "user", "assistant"]
    assert driver.requests[0]["messages"][-1] == {"role": "user", "content": "hi"}


def test_system_prompt_lists_tools() -> None:
    loop, driver, _, _ = _build([["ok"]])
    loop.run("hi")

    system = driver.requests[0]["messages"][0]
    assert system["role"] == "system"
    assert "## Tools" in system["content"]
    assert "### echo" in system["content"]
    assert "<tool_call>" in system["content"]
    assert [t["name"] for t in driver.requests[0]["tools"]] == ["echo", "boom"]


def test_two_calls_execute_and_append_in_order() -> None:
    loop, driver, reporter, seen = _build([
        ["Working. ", _call("echo", text="a"), _call("echo", text="b")],
        ["done"],
    ])

    result = loop.run("go")

    assert seen == ["a", "b"]
    assert result.text == "done"
    assert [c.arguments for c in result.tool_calls] == [{"text": "a"}, {"text": "b"}]
    assert loop.transcript.roles() == [
        "system", "user", "assistant", "tool_result", "tool_result", "assistant",
    ]
    second = driver.requests[1]["messages"]
    assert second[3] == {"role": "system", "content": "a\n"}
    assert second[4] == {"role": "system", "content": "b\n"}
    assert "".join(reporter.text) == "Working. done"
    starts = [e.payload["tool"] for e in reporter.events if e.name == "TOOL_CALL_START"]
    assert starts == ["echo", "echo"]


def test_transient_failures_then_success_yield_one_assistant_turn() -> None:
    loop, driver, reporter, seen = _build([
        ["partial ", TransientStreamError("reset")],
        TransientStreamError("refused"),
        [TransientStreamError("503")],
        [_call("echo", text="x")],
        ["final"],
    ])

    result = loop.run("go")

    assert result.text == "final"
    assert seen == ["x"]
    assert loop.transcript.roles() == ["system", "user", "assistant", "tool_result", "assistant"]
    assert len(driver.requests) == 5
    assert driver.requests[0]["messages"] == driver.requests[3]["messages"]
    retries = [e for e in reporter.events if e.name == "LLM_RETRY"]
    assert [e.payload["attempt"] for e in retries] == [1, 2, 3]
    assert all(stream.closed for stream in driver.streams)


def test_retry_exhaustion_is_fatal() -> None:
    loop, driver, _, _ = _build([TransientStreamError("down")] * 3, max_attempts=3)

    with pytest.raises(RetryExhaustedError) as excinfo:
        loop.run("go")

    assert excinfo.value.attempts == 3
    assert loop.transcript.roles() == ["system", "user"]


def test_request_error_is_not_retried() -> None:
    loop, driver, _, _ = _build([LLMRequestError("bad request", status_code=400), ["never"]])

    with pytest.raises(LLMRequestError):
        loop.run("go")
    assert len(driver.requests) == 1


def test_unknown_tool_aborts_interaction() -> None:
    loop, _, _, _ = _build([[_call("nope", x=1)]])

    with pytest.raises(UnknownToolError) as excinfo:
        loop.run("go")

    assert excinfo.value.name == "nope"
    assert loop.transcript.roles() == ["system", "user", "assistant"]


def test_unknown_tool_after_known_tool_keeps_earlier_result() -> None:
    loop, _, _, seen = _build([[_call("echo", text="first"), _call("nope")]])

    with pytest.raises(UnknownToolError):
        loop.run("go")

    assert seen == ["first"]
    assert loop.transcript.roles() == ["system", "user", "assistant", "tool_result"]


def test_tool_failure_becomes_turn_and_loop_continues() -> None:
    loop, driver, reporter, _ = _build([[_call("boom", text="x")], ["recovered"]])

    result = loop.run("go")

    assert result.text == "recovered"
    failure = loop.transcript.turns[3]
    assert failure.role == "tool_result"
    assert failure.tool_name == "boom"
    assert failure.content == "Tool boom failed: ValueError: bad input\n"
    ends = [e for e in reporter.events if e.name == "TOOL_CALL_END"]
    assert ends[0].payload["status"] == "failed"


def test_invalid_arguments_become_failed_turn() -> None:
    loop, _, _, seen = _build([[_call("echo", wrong=1)], ["ok"]])

    loop.run("go")

    assert seen == []
    content = loop.transcript.turns[3].content
    assert content.startswith("Tool echo failed: invalid arguments:")
    assert "wrong" in content


def test_cancellation_closes_stream() -> None:
    token = CancellationToken()
    loop, driver, _, _ = _build([["one ", "two ", "three"]], display=lambda text: token.cancel())

    with pytest.raises(InteractionCancelledError):
        loop.run("go", cancel=token)

    assert driver.streams[0].closed
    assert loop.transcript.roles() == ["system", "user"]


def test_cancelled_token_stops_before_model_call() -> None:
    token = CancellationToken()
    token.cancel()
    loop, driver, _, _ = _build([["never"]])

    with pytest.raises(InteractionCancelledError):
        loop.run("go", cancel=token)
    assert driver.requests == []


def test_max_rounds_bound() -> None:
    loop, _, _, seen = _build(
        [[_call("echo", text="1")], [_call("echo", text="2")], ["unreached"]],
        max_rounds=2,
    )

    with pytest.raises(MaxRoundsExceededError):
        loop.run("go")
    assert seen == ["1", "2"]


def test_reported_usage_accumulates_per_interaction_and_session() -> None:
    loop, _, reporter, _ = _build([
        [_call("echo", text="a"), UsageUpdate(10, 5)],
        ["done", StreamCompleted("stop", UsageUpdate(20, 2))],
        ["again", UsageUpdate(7, 1)],
    ])

    first = loop.run("one")
    second = loop.run("two")

    assert (first.usage.input_tokens, first.usage.output_tokens) == (30, 7)
    assert (second.usage.input_tokens, second.usage.output_tokens) == (7, 1)
    assert (loop.session_usage.input_tokens, loop.session_usage.output_tokens) == (37, 8)
    ends = [e for e in reporter.events if e.name == "INTERACTION_END"]
    assert [e.payload["status"] for e in ends] == ["done", "done"]


def test_aborted_interaction_usage_still_counts() -> None:
    loop, _, reporter, _ = _build([[_call("nope"), UsageUpdate(12, 3)]])

    with pytest.raises(UnknownToolError):
        loop.run("go")

    assert loop.session_usage.total_tokens == 15
    ends = [e for e in reporter.events if e.name == "INTERACTION_END"]
    assert ends[0].payload["status"] == "failed"


def test_estimated_usage_when_stream_reports_none() -> None:
    loop, driver, _, _ = _build([["abcd"]], token_counter=CharCounter())

    result = loop.run("hi")

    messages = driver.requests[0]["messages"]
    tools = driver.requests[0]["tools"]
    expected_input = sum(len(m["content"]) for m in messages) + len(json.dumps(tools, ensure_ascii=False))
    assert result.usage.input_tokens == expected_input
    assert result.usage.output_tokens == 4


def test_session_cost_uses_price_table() -> None:
    prices = PriceTable(prices={"m": {"input": 1.0, "output": 2.0}})
    loop, _, _, _ = _build([["x", UsageUpdate(1_000_000, 500_000)]], model_name="vendor/m", price_table=prices)

    loop.run("go")

    assert loop.session_cost() == pytest.approx(2.0)


def test_tool_results_can_use_user_role() -> None:
    loop, driver, _, _ = _build([[_call("echo", text="a")], ["ok"]], tool_result_role="user")

    loop.run("go")

    assert driver.requests[1]["messages"][3] == {"role": "user", "content": "a\n"}


def test_trace_store_records_turns_and_tool_calls(tmp_path) -> None:
    store = TraceStore(tmp_path / "trace")
    loop, _, _, _ = _build([[_call("echo", text="a")], ["ok"]], trace_store=store)

    loop.run("go")

    toolcalls = store.tool_calls()
    assert [t["tool_name"] for t in toolcalls] == ["echo"]
    assert toolcalls[0]["succeeded"] is True
    turns = store.model_turns()
    assert [t["round_id"] for t in turns] == [0, 1]
    assert turns[0]["tool_calls"] == [{"name": "echo", "arguments": {"text": "a"}}]


def test_empty_prompt_continues_without_user_turn() -> None:
    loop, driver, _, _ = _build([["resumed"]])

    result = loop.run("")

    assert result.text == "resumed"
    assert loop.transcript.roles() == ["system", "assistant"]
    assert [m["role"] for m in driver.requests[0]["messages"]] == ["system"]


def test_empty_prompt_resumes_after_retry_exhaustion() -> None:
    loop, driver, _, seen = _build(
        [[_call("echo", text="a")], TransientStreamError("down"), ["after"]],
        max_attempts=1,
    )

    with pytest.raises(RetryExhaustedError):
        loop.run("go")
    assert loop.transcript.roles() == ["system", "user", "assistant", "tool_result"]

    result = loop.run("")

    assert result.text == "after"
    assert seen == ["a"]
    assert loop.transcript.roles() == ["system", "user", "assistant", "tool_result", "assistant"]
    assert driver.requests[2]["messages"] == driver.requests[1]["messages"]
