"""Workspace-scoped file tools: listing, reading, writing, editing and searching."""
from __future__ import annotations

import difflib
import fnmatch
import json
import os
import re
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from halu.tools.base import resolve_workspace_path, workspace_relpath


def _read_gitignore(directory: Path) -> List[str]:
    ignore_file = directory / ".gitignore"
    if not ignore_file.is_file():
        return []
    patterns = []
    for line in ignore_file.read_text(encoding="utf-8", errors="replace").splitlines():
        line = line.strip()
        # Negations are not supported; the entry is skipped.
        if not line or line.startswith("#") or line.startswith("!"):
            continue
        patterns.append(line)
    return patterns


def _gitignore_match(pattern: str, path: Path, base: Path, is_dir: bool) -> bool:
    if pattern.startswith("./"):
        pattern = pattern[2:]
    anchored = pattern.startswith("/")
    pattern = pattern.lstrip("/")
    if pattern.endswith("/"):
        if not is_dir:
            return False
        pattern = pattern.rstrip("/")
    try:
        rel = path.relative_to(base).as_posix()
    except ValueError:
        return False
    if fnmatch.fnmatch(rel, pattern):
        return True
    if "**" in pattern and fnmatch.fnmatch(rel, pattern.replace("**/", "")):
        return True
    if not anchored and "/" not in pattern:
        return fnmatch.fnmatch(path.name, pattern)
    return False


def _is_ignored(path: Path, is_dir: bool, ignore_patterns: Dict[Path, List[str]]) -> bool:
    for base, patterns in ignore_patterns.items():
        if base != path and base not in path.parents:
            continue
        if any(_gitignore_match(p, path, base, is_dir) for p in patterns):
            return True
    return False


def _walk_visible(root: Path, *, max_depth: Optional[int] = None):
    """Yield (path, is_dir) under root, skipping dotfiles and .gitignore matches."""
    ignore_patterns: Dict[Path, List[str]] = {}
    base_depth = len(root.parts)
    for dirpath, dirnames, filenames in os.walk(root):
        current = Path(dirpath)
        patterns = _read_gitignore(current)
        if patterns:
            ignore_patterns[current] = patterns
        depth = len(current.parts) - base_depth
        dirnames.sort()
        filenames.sort()
        kept_dirs = []
        for name in dirnames:
            child = current / name
            if name.startswith(".") or _is_ignored(child, True, ignore_patterns):
                continue
            kept_dirs.append(name)
            yield child, True
        if max_depth is not None and depth + 1 >= max_depth:
            dirnames[:] = []
        else:
            dirnames[:] = kept_dirs
        for name in filenames:
            child = current / name
            if name.startswith(".") or _is_ignored(child, False, ignore_patterns):
                continue
            yield child, False


class ListFilesInput(BaseModel):
    """List files and directories under a workspace path. Dotfiles and .gitignore matches are skipped."""
    path: str = Field(".", description="The directory path to list files from")
    max_entries: int = Field(500, ge=1, description="Maximum number of entries to return")


def list_files(payload: dict) -> str:
    params = ListFilesInput(**payload)
    root = resolve_workspace_path(params.path, must_exist=True)
    if root.is_file():
        walker = iter([(root, False)])
    else:
        walker = _walk_visible(root)

    entries = []
    truncated = False
    for path, is_dir in walker:
        if len(entries) >= params.max_entries:
            truncated = True
            break
        stat = path.stat()
        entries.append({
            "path": workspace_relpath(path),
            "is_dir": is_dir,
            "size": stat.st_size,
            "mod_time": datetime.fromtimestamp(stat.st_mtime).isoformat(timespec="seconds"),
        })
    result: dict = {"entries": entries}
    if truncated:
        result["truncated"] = True
    return json.dumps(result, ensure_ascii=False)


class ReadFileInput(BaseModel):
    """Read the contents of a file."""
    path: str = Field(..., description="The path to the file to read")
    max_chars: int = Field(100_000, ge=1, description="Truncate the returned content after this many characters")


def read_file(payload: dict) -> str:
    params = ReadFileInput(**payload)
    path = resolve_workspace_path(params.path, must_exist=True)
    if path.is_dir():
        raise IsADirectoryError(f"{params.path} is a directory; use list_files")
    content = path.read_text(encoding="utf-8", errors="replace")
    if len(content) > params.max_chars:
        return content[: params.max_chars] + f"\n... [truncated, {len(content)} chars total]"
    return content


def _diff_summary(path: Path, before: str, after: str, max_lines: int = 80) -> str:
    rel = workspace_relpath(path)
    diff = list(difflib.unified_diff(
        before.splitlines(keepends=True),
        after.splitlines(keepends=True),
        fromfile=f"a/{rel}",
        tofile=f"b/{rel}",
    ))
    if not diff:
        return "(no changes)"
    if len(diff) > max_lines:
        diff = diff[:max_lines] + [f"... [{len(diff) - max_lines} more diff lines]\n"]
    return "".join(diff)


class WriteFileInput(BaseModel):
    """Replace a file's contents, creating the file and parent directories if needed."""
    path: str = Field(..., description="Path to the file to write")
    content: str = Field(..., description="New content for the file")


def write_file(payload: dict) -> str:
    params = WriteFileInput(**payload)
    path = resolve_workspace_path(params.path)
    if path.is_dir():
        raise IsADirectoryError(f"{params.path} is a directory")
    before = path.read_text(encoding="utf-8") if path.exists() else ""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(params.content, encoding="utf-8")
    return "Changes applied successfully\n" + _diff_summary(path, before, params.content)


def _count_matches(content: str, search: str) -> int:
    count = 0
    pos = 0
    while True:
        i = content.find(search, pos)
        if i == -1:
            return count
        count += 1
        pos = i + 1


def _leading_spaces(line: str) -> int:
    return len(line) - len(line.lstrip(" "))


def _replace_relative_indent(content: str, search: str, replace: str) -> Optional[str]:
    """Match a multi-line block ignoring indentation, then shift the replacement to the file's indent."""
    lines = content.split("\n")
    search_lines = search.split("\n")
    replace_lines = replace.split("\n")
    if len(search_lines) <= 1:
        return None
    stripped = [line.strip() for line in search_lines]
    for i in range(len(lines) - len(search_lines) + 1):
        if all(lines[i + j].strip() == stripped[j] for j in range(len(search_lines))):
            shift = _leading_spaces(lines[i]) - _leading_spaces(search_lines[0])
            shifted = []
            for line in replace_lines:
                if not line.strip():
                    shifted.append(line.strip())
                elif shift >= 0:
                    shifted.append(" " * shift + line)
                else:
                    shifted.append(line[min(-shift, _leading_spaces(line)):])
            return "\n".join(lines[:i] + shifted + lines[i + len(search_lines):])
    return None


class SearchReplaceInput(BaseModel):
    """Search and replace text in a file. The search text must match exactly one location in the file."""
    path: str = Field(..., description="Path to the file to edit")
    search: str = Field(..., min_length=1, description="Text to search for - must match exactly one location in the file")
    replace: str = Field(..., description="Text to replace with")


def search_replace(payload: dict) -> str:
    params = SearchReplaceInput(**payload)
    path = resolve_workspace_path(params.path, must_exist=True)
    content = path.read_text(encoding="utf-8")

    matches = _count_matches(content, params.search)
    if matches > 1:
        raise ValueError(f"search text matches {matches} locations - must match exactly once")
    if matches == 1:
        new_content = content.replace(params.search, params.replace, 1)
    else:
        new_content = _replace_relative_indent(content, params.search, params.replace)
        if new_content is None:
            raise ValueError("No matches found")

    path.write_text(new_content, encoding="utf-8")
    return "Changes applied successfully\n" + _diff_summary(path, content, new_content)


class SearchTextInput(BaseModel):
    """Search file contents with a regular expression, like ripgrep."""
    pattern: str = Field(..., description="The pattern to search for")
    path: str = Field(".", description="The path to search in (directory or file)")
    case_sensitive: bool = Field(False, description="Whether to use case-sensitive matching")
    literal: bool = Field(False, description="Treat the pattern as a literal string, not a regex")
    context_lines: int = Field(0, ge=0, description="Number of context lines to show before and after each match")
    word_regexp: bool = Field(False, description="Only show matches surrounded by word boundaries")
    files_with_matches: bool = Field(False, description="Only show filenames containing matches")
    max_depth: Optional[int] = Field(None, ge=0, description="Maximum search depth for directories")
    line_number: bool = Field(True, description="Show line numbers")
    max_results: int = Field(200, ge=1, description="Stop after this many matching lines")


def search_text(payload: dict) -> str:
    params = SearchTextInput(**payload)
    root = resolve_workspace_path(params.path, must_exist=True)
    pattern = re.escape(params.pattern) if params.literal else params.pattern
    if params.word_regexp:
        pattern = rf"\b(?:{pattern})\b"
    try:
        regex = re.compile(pattern, 0 if params.case_sensitive else re.IGNORECASE)
    except re.error as exc:
        raise ValueError(f"invalid pattern: {exc}") from exc

    if root.is_file():
        files = [root]
    else:
        files = [p for p, is_dir in _walk_visible(root, max_depth=params.max_depth) if not is_dir]

    out: List[str] = []
    hits = 0
    stopped = False
    for file_path in files:
        try:
            lines = file_path.read_text(encoding="utf-8").splitlines()
        except (UnicodeDecodeError, OSError):
            continue
        rel = workspace_relpath(file_path)
        matched = [i for i, line in enumerate(lines) if regex.search(line)]
        if not matched:
            continue
        if hits >= params.max_results:
            stopped = True
            break
        if params.files_with_matches:
            out.append(rel)
            hits += 1
            continue
        shown: set[int] = set()
        for i in matched:
            if hits >= params.max_results:
                stopped = True
                break
            lo = max(0, i - params.context_lines)
            hi = min(len(lines), i + params.context_lines + 1)
            for j in range(lo, hi):
                if j in shown:
                    continue
                shown.add(j)
                sep = ":" if j == i or j in matched else "-"
                prefix = f"{rel}{sep}{j + 1}{sep}" if params.line_number else f"{rel}{sep}"
                out.append(prefix + lines[j])
            hits += 1
        if stopped:
            break

    if stopped:
        out.append(f"... [stopped after {params.max_results} matches]")
    if not out:
        return "No matches found."
    return "\n".join(out)


__all__ = [
    "ListFilesInput",
    "ReadFileInput",
    "WriteFileInput",
    "SearchReplaceInput",
    "SearchTextInput",
    "list_files",
    "read_file",
    "write_file",
    "search_replace",
    "search_text",
]
