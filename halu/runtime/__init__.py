#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Runtime utilities: transcript, cancellation, tool execution and tracing."""

from .transcript import Transcript, Turn
from .cancellation import CancellationToken
from .tool_executor import ToolExecutor
from .trace_store import TraceStore

__all__ = [
    "Transcript",
    "Turn",
    "CancellationToken",
    "ToolExecutor",
    "TraceStore",
]
