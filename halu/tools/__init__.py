"""Tool registry, result type and the built-in workspace tools."""

from .base import ToolResult, resolve_workspace_path, workspace_root
from .registry import ToolRegistry

__all__ = ["ToolResult", "ToolRegistry", "resolve_workspace_path", "workspace_root"]
