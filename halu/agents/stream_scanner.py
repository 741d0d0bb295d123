"""
Incremental extraction of ``<tool_call>`` blocks from a streamed model turn.

The scanner is a character-level automaton, so its output does not depend on
how the stream happens to be chunked. Plain text is released as soon as it can
no longer be the start of a tag; tool-call spans are held back and decoded
once the turn has ended.
"""
from __future__ import annotations

from dataclasses import dataclass, field
import json
import logging
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

OPEN_TAG = "<tool_call>"
CLOSE_TAG = "</tool_call>"
MAX_TAG_LEN = max(len(OPEN_TAG), len(CLOSE_TAG))

PLAIN = "PLAIN"
MAYBE_TAG = "MAYBE_TAG"
IN_CALL = "IN_CALL"


@dataclass(frozen=True)
class ToolCallRequest:
    name: str
    arguments: Dict[str, Any]
    raw_span: str = field(default="", repr=False)


def _squash(text: str) -> str:
    return "".join(text.split())


def _could_be_tag(key: str, *tags: str) -> bool:
    return any(tag.startswith(key) for tag in tags)


def decode_tool_call(raw_span: str) -> Optional[ToolCallRequest]:
    """Decode a closed span; returns None when the payload is not a usable call."""
    start = raw_span.find(">")
    end = raw_span.rfind("<")
    if start == -1 or end <= start:
        logger.debug("Dropping tool call with no payload: %r", raw_span)
        return None
    body = raw_span[start + 1:end].strip()
    try:
        payload = json.loads(body)
    except json.JSONDecodeError as exc:
        logger.debug("Dropping malformed tool call (%s): %r", exc, body)
        return None
    if not isinstance(payload, dict) or not isinstance(payload.get("name"), str):
        logger.debug("Dropping tool call without a string name: %r", body)
        return None

    name = payload["name"]
    rest = {k: v for k, v in payload.items() if k != "name"}
    if len(rest) == 1:
        (key, value), = rest.items()
        if key in ("arguments", "parameters") and isinstance(value, dict):
            rest = value
    return ToolCallRequest(name=name, arguments=rest, raw_span=raw_span)


class StreamScanner:
    """Splits the fragments of one model turn into plain text and tool-call spans.

    Use a fresh scanner per streaming attempt. ``feed`` returns the plain text
    that became certain with this fragment, ``flush`` releases any text still
    held at stream end, and ``finalize`` decodes the closed spans.
    """

    def __init__(self) -> None:
        self.mode = PLAIN
        self._pending = ""
        self._raw = ""
        self._content: List[str] = []
        self._spans: List[str] = []
        self._flushed = False
        self._calls: Optional[List[ToolCallRequest]] = None

    @property
    def text(self) -> str:
        """All plain text released so far."""
        return "".join(self._content)

    @property
    def raw_spans(self) -> List[str]:
        return list(self._spans)

    def feed(self, fragment: str) -> List[str]:
        if self._flushed:
            raise RuntimeError("scanner already flushed")
        out: List[str] = []
        for ch in fragment:
            if self.mode == PLAIN:
                self._plain_char(ch, out)
            elif self.mode == MAYBE_TAG:
                self._maybe_tag_char(ch, out)
            else:
                self._in_call_char(ch)
        return self._emit(out)

    def flush(self) -> List[str]:
        """End of stream: release a dangling tag candidate, drop an unterminated call."""
        if self._flushed:
            return []
        self._flushed = True
        out: List[str] = []
        if self.mode == MAYBE_TAG:
            out.append(self._pending)
        elif self.mode == IN_CALL:
            logger.debug("Discarding unterminated tool call: %r", self._raw + self._pending)
        self._pending = ""
        self._raw = ""
        self.mode = PLAIN
        return self._emit(out)

    def finalize(self) -> List[ToolCallRequest]:
        self.flush()
        if self._calls is None:
            decoded = (decode_tool_call(span) for span in self._spans)
            self._calls = [call for call in decoded if call is not None]
        return list(self._calls)

    def _emit(self, out: List[str]) -> List[str]:
        text = "".join(out)
        if not text:
            return []
        self._content.append(text)
        return [text]

    def _plain_char(self, ch: str, out: List[str]) -> None:
        if ch == "<":
            self._pending = ch
            self.mode = MAYBE_TAG
        else:
            out.append(ch)

    def _maybe_tag_char(self, ch: str, out: List[str]) -> None:
        self._pending += ch
        key = _squash(self._pending)
        if key == OPEN_TAG:
            self._raw = self._pending
            self._pending = ""
            self.mode = IN_CALL
        elif key == CLOSE_TAG:
            out.append(self._pending)
            self._pending = ""
            self.mode = PLAIN
        elif _could_be_tag(key, OPEN_TAG, CLOSE_TAG) and len(self._pending) <= MAX_TAG_LEN:
            return
        elif ch == "<":
            out.append(self._pending[:-1])
            self._pending = ch
        else:
            out.append(self._pending)
            self._pending = ""
            self.mode = PLAIN

    def _in_call_char(self, ch: str) -> None:
        if not self._pending:
            if ch == "<":
                self._pending = ch
            else:
                self._raw += ch
            return

        self._pending += ch
        key = _squash(self._pending)
        if key == CLOSE_TAG:
            self._spans.append(self._raw + self._pending)
            self._raw = ""
            self._pending = ""
            self.mode = PLAIN
        elif _could_be_tag(key, CLOSE_TAG) and len(self._pending) <= MAX_TAG_LEN:
            return
        elif ch == "<":
            self._raw += self._pending[:-1]
            self._pending = ch
        else:
            self._raw += self._pending
            self._pending = ""


__all__ = [
    "OPEN_TAG",
    "CLOSE_TAG",
    "ToolCallRequest",
    "StreamScanner",
    "decode_tool_call",
]
