from __future__ import annotations

import json
from typing import Iterable

from halu.agents.stream_scanner import CLOSE_TAG, OPEN_TAG


def _tool_section(descriptor: dict) -> str:
    name = descriptor["name"]
    description = (descriptor.get("description") or "").strip()
    parameters = json.dumps(descriptor.get("parameters") or {"type": "object", "properties": {}}, ensure_ascii=False)
    return (
        f"### {name}\n\n"
        f"{name}: {description} Parameters: {parameters} "
        "Format the arguments as a JSON object.\n\n"
    )


def build_system_prompt(system: str, descriptors: Iterable[dict]) -> str:
    """Append a "## Tools" section describing each tool and the call convention."""
    parts = [system.rstrip(), "\n\n## Tools\n\nYou have access to the following tools:\n\n"]
    parts.extend(_tool_section(d) for d in descriptors)
    parts.append(
        "## Calling tools\n\n"
        "When you need to call a tool, write exactly one block per call:\n"
        f'{OPEN_TAG}{{"name": "<tool name>", "arguments": {{...}}}}{CLOSE_TAG}\n'
        "Stop after your tool calls; their results are sent back to you.\n"
    )
    return "".join(parts)


__all__ = ["build_system_prompt"]
