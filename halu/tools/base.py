#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Base utilities shared by tools: the result type and workspace path handling.
"""
from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path


@dataclass(frozen=True)
class ToolResult:
    """Outcome of one tool invocation.

    On failure ``text`` carries a human-readable error. Failures are fed back
    to the model as tool-result turns, never discarded.
    """

    succeeded: bool
    text: str

    @classmethod
    def ok(cls, text: str) -> "ToolResult":
        return cls(True, text)

    @classmethod
    def failed(cls, text: str) -> "ToolResult":
        return cls(False, text)

    def as_turn_content(self, tool_name: str) -> str:
        if self.succeeded:
            return f"{self.text}\n"
        return f"Tool {tool_name} failed: {self.text}\n"


def workspace_root() -> Path:
    """Resolve the workspace root from HALU_WORKSPACE or cwd."""
    env = os.environ.get("HALU_WORKSPACE")
    root = Path(env).expanduser().resolve() if env else Path.cwd().resolve()
    return root


def workspace_relpath(path: Path) -> str:
    """Return workspace-relative path string if inside workspace, else absolute."""
    root = workspace_root()
    try:
        rel = path.resolve().relative_to(root)
    except ValueError:
        return str(path.resolve())
    return str(rel) if str(rel) != "." else "."


def resolve_workspace_path(path: str, *, must_exist: bool = False) -> Path:
    """
    Resolve a path under the workspace. Relative paths are rooted at workspace_root().
    Absolute paths are allowed only if they stay within workspace_root().
    """
    root = workspace_root()
    p = Path(path).expanduser()
    if not p.is_absolute():
        p = root / p
    p = p.resolve()
    if p != root and root not in p.parents:
        raise PermissionError(f"Path escapes workspace root: {p}")
    if must_exist and not p.exists():
        raise FileNotFoundError(f"Path does not exist: {path}")
    return p
