from __future__ import annotations

import sys
from datetime import datetime
from typing import Any, Optional, TextIO

from .events import (
    INTERACTION_END,
    LLM_CALL_END,
    LLM_CALL_START,
    LLM_RETRY,
    TOOL_CALL_END,
    TOOL_CALL_START,
    UIEvent,
)


def _clean_text(value: Any) -> str:
    if value is None:
        return ""
    return " ".join(str(value).split())


def _truncate(value: Any, max_len: int = 160) -> str:
    text = _clean_text(value)
    if len(text) <= max_len:
        return text
    return text[: max(0, max_len - 3)] + "..."


def _summarize_event(event: UIEvent) -> str:
    name = event.name
    payload = event.payload or {}
    if name == LLM_CALL_START:
        est = payload.get("estimated_input_tokens")
        return f"round={event.round_id} est_input_tokens={est}" if est is not None else f"round={event.round_id}"
    if name == LLM_CALL_END:
        return f"round={event.round_id} tool_calls={payload.get('n_tool_calls', 0)}"
    if name == LLM_RETRY:
        return f"attempt {payload.get('attempt')}/{payload.get('max_attempts')}: {_truncate(payload.get('error'), 120)}"
    if name == TOOL_CALL_START:
        tool = payload.get("tool", "")
        params = payload.get("params_compact", "")
        return f"{tool} {params}".strip()
    if name == TOOL_CALL_END:
        tool = payload.get("tool", "")
        status = payload.get("status", "")
        return f"{tool} status={status}".strip()
    if name == INTERACTION_END:
        return (
            f"status={payload.get('status', '')} rounds={payload.get('rounds', 0)} "
            f"tokens={payload.get('input_tokens', 0)}/{payload.get('output_tokens', 0)}"
        )
    return name


def _format_plain_line(event: UIEvent) -> str:
    ts = datetime.fromtimestamp(event.ts).strftime("%H:%M:%S")
    summary = _summarize_event(event)
    return f"{ts} {event.name} {summary}".rstrip()


def _format_usage(usage: Any, cost: Optional[float]) -> str:
    line = f"tokens: input={usage.input_tokens} output={usage.output_tokens} total={usage.total_tokens}"
    if cost is not None:
        line += f" | est. cost: ${cost:.4f}"
    return line


class Reporter:
    """Receives streamed text through ``write_text`` and loop events through ``emit``."""

    ui_debug: bool = False

    def start(self) -> None:
        pass

    def write_text(self, text: str) -> None:
        pass

    def emit(self, event: UIEvent) -> None:
        pass

    def close(self) -> None:
        pass

    def show_usage(self, usage: Any, cost: Optional[float] = None) -> None:
        pass


class NullReporter(Reporter):
    def emit(self, event: UIEvent) -> None:
        return


class PlainConsoleReporter(Reporter):
    """Streams text to a file object and prints one line per event."""

    def __init__(self, *, stream: Optional[TextIO] = None, ui_debug: bool = False):
        self.stream = stream or sys.stdout
        self.ui_debug = ui_debug
        self._at_line_start = True

    def write_text(self, text: str) -> None:
        if not text:
            return
        self.stream.write(text)
        self.stream.flush()
        self._at_line_start = text.endswith("\n")

    def _line(self, line: str) -> None:
        if not self._at_line_start:
            self.stream.write("\n")
        self.stream.write(line + "\n")
        self.stream.flush()
        self._at_line_start = True

    def emit(self, event: UIEvent) -> None:
        if event.debug_only and not self.ui_debug:
            return
        self._line(_format_plain_line(event))

    def close(self) -> None:
        if not self._at_line_start:
            self._line("")

    def show_usage(self, usage: Any, cost: Optional[float] = None) -> None:
        self._line(_format_usage(usage, cost))


class RichConsoleReporter(Reporter):
    """Streams text to a rich Console; tool calls render as rounded panels."""

    def __init__(
        self,
        *,
        console: Optional[Any] = None,
        ui_debug: bool = False,
        show_tool_panels: bool = True,
        max_result_chars: int = 600,
    ):
        from rich.console import Console

        self.console = console or Console(highlight=False)
        self.ui_debug = ui_debug
        self.show_tool_panels = show_tool_panels
        self.max_result_chars = max_result_chars
        self._at_line_start = True

    def write_text(self, text: str) -> None:
        if not text:
            return
        self.console.print(text, end="", markup=False, highlight=False, soft_wrap=True)
        self._at_line_start = text.endswith("\n")

    def _break_line(self) -> None:
        if not self._at_line_start:
            self.console.print()
            self._at_line_start = True

    def emit(self, event: UIEvent) -> None:
        from rich import box
        from rich.panel import Panel
        from rich.text import Text

        payload = event.payload or {}
        if event.name == TOOL_CALL_START and self.show_tool_panels:
            self._break_line()
            body = Text(payload.get("arguments_json", "") or payload.get("params_compact", ""))
            self.console.print(Panel(
                body,
                title=f"[bold cyan]{payload.get('tool', '')}[/]",
                title_align="left",
                box=box.ROUNDED,
                border_style="cyan",
                expand=False,
            ))
        elif event.name == TOOL_CALL_END and self.show_tool_panels:
            ok = payload.get("status") == "ok"
            snippet = payload.get("result_snippet", "")
            if len(snippet) > self.max_result_chars:
                snippet = snippet[: self.max_result_chars] + "..."
            self.console.print(Panel(
                Text(snippet),
                title=f"[bold]{payload.get('tool', '')}[/] {'ok' if ok else 'failed'}",
                title_align="left",
                box=box.ROUNDED,
                border_style="green" if ok else "red",
                expand=False,
            ))
        elif event.name == LLM_RETRY:
            self._break_line()
            self.console.print(Text(
                f"Retrying model call ({_summarize_event(event)})",
                style="yellow",
            ))
        elif self.ui_debug:
            self._break_line()
            self.console.print(Text(_format_plain_line(event), style="dim"))

    def close(self) -> None:
        self._break_line()

    def show_usage(self, usage: Any, cost: Optional[float] = None) -> None:
        from rich.table import Table

        self._break_line()
        table = Table(show_header=True, header_style="bold", box=None)
        table.add_column("input")
        table.add_column("output")
        table.add_column("total")
        table.add_column("est. cost")
        table.add_row(
            str(usage.input_tokens),
            str(usage.output_tokens),
            str(usage.total_tokens),
            f"${cost:.4f}" if cost is not None else "n/a",
        )
        self.console.print(table)


def create_reporter(
    ui_mode: str,
    *,
    ui_debug: bool = False,
    is_tty: Optional[bool] = None,
) -> Reporter:
    if is_tty is None:
        is_tty = sys.stdout.isatty()
    mode = ui_mode
    if mode == "rich" and not is_tty:
        print("stdout is not a TTY; falling back to plain UI", file=sys.stderr)
        mode = "plain"
    if mode == "off":
        return NullReporter()
    if mode == "plain":
        return PlainConsoleReporter(ui_debug=ui_debug)
    if mode == "rich":
        return RichConsoleReporter(ui_debug=ui_debug)
    raise ValueError(f"Unknown ui mode: {ui_mode}")


__all__ = [
    "Reporter",
    "NullReporter",
    "PlainConsoleReporter",
    "RichConsoleReporter",
    "create_reporter",
]
