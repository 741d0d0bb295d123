"""
Tool registry that maps tool names to their functions and Pydantic input models.
"""
from __future__ import annotations

import copy
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel

from halu.errors import UnknownToolError
from halu.tools.base import ToolResult


def sanitize_json_schema(schema: Dict[str, Any]) -> Dict[str, Any]:
    """Drop pydantic's ``title`` noise so the schema reads compactly in a prompt."""
    cleaned = copy.deepcopy(schema)

    def _strip(node: Any) -> None:
        if isinstance(node, dict):
            node.pop("title", None)
            for key, value in node.items():
                if key == "properties" and isinstance(value, dict):
                    for prop in value.values():
                        _strip(prop)
                else:
                    _strip(value)
        elif isinstance(node, list):
            for item in node:
                _strip(item)

    _strip(cleaned)
    return cleaned


class ToolRegistry:
    """Maps tool names to functions, input models and descriptions."""

    def __init__(self, register_all_tools: bool = True):
        self.tools: Dict[str, Dict[str, Any]] = {}
        if register_all_tools:
            self._register_all_tools()

    def _register_all_tools(self):
        """Register the built-in workspace tools"""
        from halu.tools.file_manager import (
            list_files,
            read_file,
            write_file,
            search_replace,
            search_text,
            ListFilesInput,
            ReadFileInput,
            WriteFileInput,
            SearchReplaceInput,
            SearchTextInput,
        )

        self.register_tool("list_files", list_files, ListFilesInput)
        self.register_tool("read_file", read_file, ReadFileInput)
        self.register_tool("write_file", write_file, WriteFileInput)
        self.register_tool("search_replace", search_replace, SearchReplaceInput)
        self.register_tool("search_text", search_text, SearchTextInput)

    def register_tool(
        self,
        name: str,
        func: Callable[[dict], Any],
        input_model: type[BaseModel],
        description: Optional[str] = None,
    ):
        """Register a tool with its function and input model."""
        if name in self.tools:
            raise ValueError(f"Tool already registered: {name}")
        self.tools[name] = {
            "function": func,
            "input_model": input_model,
            "description": (description or input_model.__doc__ or f"Input for {name}").strip(),
            "parameters": sanitize_json_schema(input_model.model_json_schema()),
        }

    def has_tool(self, name: str) -> bool:
        return name in self.tools

    def get_tool_info(self, name: str) -> Dict[str, Any]:
        """Get tool information by name; raises UnknownToolError."""
        tool_info = self.tools.get(name)
        if tool_info is None:
            raise UnknownToolError(name)
        return tool_info

    def get(self, name: str) -> Optional[Dict[str, Any]]:
        return self.tools.get(name)

    def get_tool_function(self, name: str) -> Callable[[dict], Any]:
        return self.get_tool_info(name)["function"]

    def call(self, name: str, arguments: Any) -> ToolResult:
        """Validate and run one tool. Unknown names raise UnknownToolError."""
        from halu.runtime.tool_executor import ToolExecutor

        return ToolExecutor(self).execute(name, arguments)

    def list_tools(self) -> list[str]:
        return list(self.tools)

    def as_tool_descriptors(self) -> list[dict]:
        """Name, description and parameter schema for every registered tool."""
        return [
            {
                "name": name,
                "description": info["description"],
                "parameters": info["parameters"],
            }
            for name, info in self.tools.items()
        ]


__all__ = ["ToolRegistry", "sanitize_json_schema"]
