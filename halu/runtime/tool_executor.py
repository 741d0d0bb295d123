#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
ToolExecutor validates tool arguments (Pydantic) and runs the tool, turning
every tool-side failure into a failed ToolResult.
"""
from __future__ import annotations

import json
import logging
import time
from typing import Any, Dict, Optional

from pydantic import ValidationError

from halu.runtime.trace_store import TraceStore
from halu.tools.base import ToolResult
from halu.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


class ToolExecutor:
    def __init__(self, registry: ToolRegistry, *, trace_store: Optional[TraceStore] = None):
        self.registry = registry
        self.trace_store = trace_store

    def validate(self, tool_name: str, raw_params: Any) -> Dict[str, Any]:
        """Check raw_params against the tool's input model; raises UnknownToolError."""
        tool_info = self.registry.get_tool_info(tool_name)
        if not isinstance(raw_params, dict):
            error = "arguments must be a JSON object"
            return {"ok": False, "errors": [{"loc": "", "msg": error, "type": "type_error"}], "error_digest": error}

        input_model = tool_info["input_model"]
        extra_errors = [
            {"loc": key, "msg": "extra fields not permitted", "type": "extra_forbidden"}
            for key in raw_params
            if key not in input_model.model_fields
        ]

        try:
            validated = input_model.model_validate(raw_params)
        except ValidationError as exc:
            errors = self._format_validation_errors(exc) + extra_errors
            return {"ok": False, "errors": errors, "error_digest": self._summarize_errors(errors)}

        if extra_errors:
            return {"ok": False, "errors": extra_errors, "error_digest": self._summarize_errors(extra_errors)}

        return {"ok": True, "validated_params": validated.model_dump(), "errors": [], "error_digest": ""}

    def execute(self, tool_name: str, raw_params: Any) -> ToolResult:
        """Run one tool call. Unknown tools raise; every other failure becomes a failed result."""
        check = self.validate(tool_name, raw_params)
        start = time.perf_counter()
        if not check["ok"]:
            result = ToolResult.failed(f"invalid arguments: {check['error_digest']}")
        else:
            func = self.registry.get_tool_function(tool_name)
            try:
                output = func(check["validated_params"])
            except Exception as exc:
                logger.debug("Tool %s raised", tool_name, exc_info=True)
                result = ToolResult.failed(f"{type(exc).__name__}: {exc}")
            else:
                result = ToolResult.ok(self._render_output(output))
        elapsed = time.perf_counter() - start

        logger.info(
            "Tool %s %s in %.3fs",
            tool_name,
            "succeeded" if result.succeeded else "failed",
            elapsed,
        )
        if self.trace_store is not None:
            self.trace_store.record_tool_call(
                tool_name=tool_name,
                arguments=raw_params,
                succeeded=result.succeeded,
                text=result.text,
                elapsed_s=elapsed,
            )
        return result

    @staticmethod
    def _render_output(output: Any) -> str:
        if isinstance(output, str):
            return output
        return json.dumps(output, ensure_ascii=False, default=str)

    @staticmethod
    def _format_validation_errors(exc: ValidationError) -> list[dict]:
        errors = []
        for err in exc.errors():
            loc = "/".join(str(part) for part in err.get("loc", []))
            errors.append({
                "loc": loc,
                "msg": err.get("msg", ""),
                "type": err.get("type", ""),
            })
        return errors

    @staticmethod
    def _summarize_errors(errors: list[dict], limit: int = 3) -> str:
        if not errors:
            return ""
        parts = []
        for err in errors[:limit]:
            loc = err.get("loc", "") or "<root>"
            parts.append(f"{loc}: {err.get('msg', '')}")
        if len(errors) > limit:
            parts.append(f"... and {len(errors) - limit} more")
        return "; ".join(parts)


__all__ = ["ToolExecutor"]
