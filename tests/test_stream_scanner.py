from __future__ import annotations

import json

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from halu.agents.stream_scanner import StreamScanner, ToolCallRequest, decode_tool_call


def _scan(fragments: list[str]) -> tuple[str, list[ToolCallRequest]]:
    scanner = StreamScanner()
    events: list[str] = []
    for fragment in fragments:
        events.extend(scanner.feed(fragment))
    events.extend(scanner.flush())
    calls = scanner.finalize()
    assert "".join(events) == scanner.text
    return "".join(events), calls


def _split(text: str, cuts: list[int]) -> list[str]:
    points = sorted({c % (len(text) + 1) for c in cuts})
    pieces = []
    start = 0
    for point in points:
        pieces.append(text[start:point])
        start = point
    pieces.append(text[start:])
    return pieces


def test_round_trip_text_and_call() -> None:
    text, calls = _scan(['hello <tool_call> {"name": "t", "x": 1} </tool_call> world'])

    assert text == "hello  world"
    assert len(calls) == 1
    assert calls[0].name == "t"
    assert calls[0].arguments == {"x": 1}
    assert calls[0].raw_span.startswith("<tool_call>")
    assert calls[0].raw_span.endswith("</tool_call>")


def test_less_than_in_prose_passes_through() -> None:
    text, calls = _scan(["a < b"])

    assert text == "a < b"
    assert calls == []


def test_unterminated_call_is_dropped_and_prior_text_kept() -> None:
    text, calls = _scan(["before ", '<tool_call>{"name": "t"'])

    assert text == "before "
    assert calls == []


def test_two_calls_are_captured_in_order() -> None:
    stream = (
        'first <tool_call>{"name": "a", "n": 1}</tool_call>'
        ' then <tool_call>{"name": "b", "n": 2}</tool_call> end'
    )
    text, calls = _scan([stream])

    assert text == "first  then  end"
    assert [c.name for c in calls] == ["a", "b"]
    assert [c.arguments["n"] for c in calls] == [1, 2]


def test_tags_match_with_inner_whitespace() -> None:
    text, calls = _scan(['<tool_call >{"name": "t"}</ tool_call>ok'])

    assert text == "ok"
    assert [c.name for c in calls] == ["t"]


def test_stray_close_tag_is_plain_text() -> None:
    text, calls = _scan(["x </tool_call> y"])

    assert text == "x </tool_call> y"
    assert calls == []


def test_malformed_payload_is_dropped_and_scanning_continues() -> None:
    stream = '<tool_call>{not json}</tool_call>after <tool_call>{"name": "ok"}</tool_call>'
    text, calls = _scan([stream])

    assert text == "after "
    assert [c.name for c in calls] == ["ok"]


def test_partial_tag_at_stream_end_is_flushed() -> None:
    scanner = StreamScanner()

    assert scanner.feed("value <tool") == ["value "]
    assert scanner.flush() == ["<tool"]
    assert scanner.finalize() == []


def test_double_open_bracket_restarts_candidate() -> None:
    text, calls = _scan(['<<tool_call>{"name": "t"}</tool_call>'])

    assert text == "<"
    assert [c.name for c in calls] == ["t"]


def test_less_than_inside_call_payload() -> None:
    text, calls = _scan(['<tool_call>{"name": "cmp", "expr": "a < b"}</tool_call>'])

    assert text == ""
    assert calls[0].arguments == {"expr": "a < b"}


def test_feed_after_flush_raises() -> None:
    scanner = StreamScanner()
    scanner.flush()
    with pytest.raises(RuntimeError):
        scanner.feed("late")


def test_finalize_is_idempotent() -> None:
    scanner = StreamScanner()
    scanner.feed('<tool_call>{"name": "t"}</tool_call>')

    assert scanner.finalize() == scanner.finalize()
    assert scanner.flush() == []


def test_decode_unwraps_nested_arguments() -> None:
    call = decode_tool_call('<tool_call>{"name": "t", "arguments": {"path": "a.txt"}}</tool_call>')

    assert call is not None
    assert call.arguments == {"path": "a.txt"}


def test_decode_rejects_missing_or_non_string_name() -> None:
    assert decode_tool_call('<tool_call>{"x": 1}</tool_call>') is None
    assert decode_tool_call('<tool_call>{"name": 3}</tool_call>') is None
    assert decode_tool_call('<tool_call>[1, 2]</tool_call>') is None


_ALPHABET = st.sampled_from(list("<>/tool_call {}\"xn:1ab\n"))


@settings(max_examples=200, deadline=None)
@given(
    text=st.text(alphabet=_ALPHABET, max_size=80),
    cuts=st.lists(st.integers(min_value=0, max_value=200), max_size=12),
)
def test_output_does_not_depend_on_chunk_boundaries(text: str, cuts: list[int]) -> None:
    whole_text, whole_calls = _scan([text])
    split_text, split_calls = _scan(_split(text, cuts))

    assert split_text == whole_text
    assert split_calls == whole_calls


_PROSE = st.text(alphabet=st.sampled_from(list("abc xyz.,>\n")), max_size=30)


@settings(max_examples=100, deadline=None)
@given(
    before=_PROSE,
    after=_PROSE,
    args=st.dictionaries(st.sampled_from(["path", "n", "flag"]), st.integers(), max_size=3),
    cuts=st.lists(st.integers(min_value=0, max_value=300), max_size=20),
)
def test_call_between_prose_survives_any_chunking(before: str, after: str, args: dict, cuts: list[int]) -> None:
    payload = json.dumps({"name": "tool", **args})
    stream = f"{before}<tool_call>{payload}</tool_call>{after}"

    text, calls = _scan(_split(stream, cuts))

    assert text == before + after
    assert len(calls) == 1
    assert calls[0].name == "tool"
    assert calls[0].arguments == args
