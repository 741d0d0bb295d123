"""
JSONL trace of completed model turns and dispatched tool calls.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional
import json


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class TraceStore:
    run_dir: Path

    def __post_init__(self) -> None:
        self.run_dir.mkdir(parents=True, exist_ok=True)

    @property
    def turns_path(self) -> Path:
        return self.run_dir / "model_turns.jsonl"

    @property
    def tools_path(self) -> Path:
        return self.run_dir / "tool_calls.jsonl"

    def record_model_turn(
        self,
        *,
        interaction_id: int,
        round_id: Optional[int],
        content: str,
        tool_calls: List[Dict[str, Any]],
        usage_reported: bool,
    ) -> None:
        self._write(self.turns_path, {
            "interaction_id": interaction_id,
            "round_id": round_id,
            "content": content,
            "tool_calls": tool_calls,
            "usage_reported": usage_reported,
        })

    def record_tool_call(
        self,
        *,
        tool_name: str,
        arguments: Any,
        succeeded: bool,
        text: str,
        elapsed_s: float,
    ) -> None:
        self._write(self.tools_path, {
            "tool_name": tool_name,
            "arguments": arguments,
            "succeeded": succeeded,
            "text": text,
            "elapsed_s": round(elapsed_s, 4),
        })

    def model_turns(self) -> List[Dict[str, Any]]:
        return self._load(self.turns_path)

    def tool_calls(self) -> List[Dict[str, Any]]:
        return self._load(self.tools_path)

    @staticmethod
    def _write(path: Path, record: Dict[str, Any]) -> None:
        line = json.dumps({"ts": _now_iso(), **record}, ensure_ascii=False, default=str)
        with path.open("a", encoding="utf-8") as fh:
            fh.write(line + "\n")

    @staticmethod
    def _load(path: Path) -> List[Dict[str, Any]]:
        if not path.exists():
            return []
        with path.open(encoding="utf-8") as fh:
            return [json.loads(line) for line in fh if line.strip()]


__all__ = ["TraceStore"]
