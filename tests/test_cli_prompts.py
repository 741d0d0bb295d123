from __future__ import annotations

from main import read_prompts


def _reader(lines):
    remaining = list(lines)
    markers = []

    def read_line(marker: str) -> str:
        markers.append(marker)
        if not remaining:
            raise EOFError
        return remaining.pop(0)

    return read_line, markers


def test_backslash_continues_line() -> None:
    read_line, markers = _reader(["first \\", "second", "exit"])

    assert list(read_prompts(read_line)) == ["first \nsecond"]
    assert markers == ["> ", ". ", "> "]


def test_blank_lines_skipped_and_eof_ends() -> None:
    read_line, _ = _reader(["", "hello", "  "])

    assert list(read_prompts(read_line)) == ["hello"]


def test_quit_ends_session() -> None:
    read_line, _ = _reader(["QUIT", "never"])

    assert list(read_prompts(read_line)) == []


def test_pending_continuation_flushed_at_eof() -> None:
    read_line, _ = _reader(["dangling \\"])

    assert list(read_prompts(read_line)) == ["dangling "]
