#!/usr/bin/env python3
"""
Entry point for halu: one-shot or interactive agent sessions.
"""
from __future__ import annotations

import argparse
import logging
import os
import signal
import sys
from pathlib import Path
from typing import Callable, Iterator, Optional

from halu.agents import AgentLoop, RetryPolicy
from halu.errors import HaluError, InteractionCancelledError
from halu.llm.config import HaluProfile
from halu.llm.factory import build_driver
from halu.llm.pricing import PriceTable
from halu.llm.tokens import TiktokenCounter
from halu.runtime import CancellationToken, TraceStore
from halu.tools import ToolRegistry
from halu.ui import NullReporter, create_reporter

EXIT_WORDS = {"exit", "quit"}


def read_prompts(read_line: Callable[[str], str] = input) -> Iterator[str]:
    """Yield prompts until exit/quit/EOF; a trailing backslash continues the line."""
    while True:
        parts: list[str] = []
        marker = "> "
        while True:
            try:
                line = read_line(marker)
            except EOFError:
                if parts:
                    yield "\n".join(parts)
                return
            if line.endswith("\\"):
                parts.append(line[:-1])
                marker = ". "
                continue
            parts.append(line)
            break
        prompt = "\n".join(parts)
        if prompt.strip().lower() in EXIT_WORDS:
            return
        if prompt.strip():
            yield prompt


def _load_prompt(args: argparse.Namespace) -> Optional[str]:
    if args.prompt_file:
        return Path(args.prompt_file).read_text(encoding="utf-8")
    if args.prompt:
        return args.prompt
    return None


def _run_once(loop: AgentLoop, prompt: str, *, echo_result: bool) -> bool:
    token = CancellationToken()
    previous = signal.signal(signal.SIGINT, lambda signum, frame: token.cancel())
    try:
        result = loop.run(prompt, cancel=token)
    except InteractionCancelledError:
        loop.reporter.close()
        print("(interrupted)", file=sys.stderr)
        return False
    except HaluError as exc:
        loop.reporter.close()
        print(f"Error: {exc}", file=sys.stderr)
        return False
    finally:
        signal.signal(signal.SIGINT, previous)
    loop.reporter.close()
    if echo_result:
        print(result.text)
    return True


def main() -> None:
    parser = argparse.ArgumentParser(description="halu entry point")
    prompt_group = parser.add_mutually_exclusive_group()
    prompt_group.add_argument("--prompt", help="Run a single interaction with this prompt")
    prompt_group.add_argument("--prompt-file", help="Path to a text file containing the prompt")

    # Model
    parser.add_argument("--config", default=None, help="YAML config (or set HALU_CONFIG)")
    parser.add_argument("--model", default=None, help="Override the configured model name")
    parser.add_argument("--base-url", default=None, help="Override the endpoint base URL")

    # Workspace
    parser.add_argument("--workspace", default=None, help="Workspace root (or set HALU_WORKSPACE)")

    # Loop limits
    parser.add_argument("--max-attempts", type=int, default=None, help="Attempts per model call")
    parser.add_argument("--max-rounds", type=int, default=None, help="Model rounds per interaction")

    # Logging and tracing
    parser.add_argument("--log-level", default="INFO")
    parser.add_argument("--log-dir", default=None)
    parser.add_argument("--trace-dir", default=None, help="Write JSONL traces of model turns and tool calls")

    # UI
    parser.add_argument("--ui", choices=["rich", "plain", "off"], default=None)
    parser.add_argument("--ui-debug", action="store_true")

    args = parser.parse_args()

    if args.workspace:
        workspace = Path(args.workspace).expanduser().resolve()
    elif os.environ.get("HALU_WORKSPACE"):
        workspace = Path(os.environ["HALU_WORKSPACE"]).expanduser().resolve()
    else:
        workspace = Path.cwd().resolve()
    if not workspace.is_dir():
        raise SystemExit(f"Workspace does not exist: {workspace}")
    os.environ["HALU_WORKSPACE"] = str(workspace)

    handlers: list[logging.Handler] = []
    ui_mode = args.ui or ("rich" if sys.stdout.isatty() else "plain")
    if ui_mode == "off":
        handlers.append(logging.StreamHandler())
    if args.log_dir:
        log_dir = Path(args.log_dir).expanduser().resolve()
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_dir / "halu.log"))
    if not handlers:
        handlers.append(logging.NullHandler())

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
    )

    try:
        profile = HaluProfile.from_env_or_file(args.config)
    except (FileNotFoundError, ValueError) as exc:
        raise SystemExit(f"Config error: {exc}")
    if args.model:
        profile.llm.model = args.model
    if args.base_url:
        profile.llm.base_url = args.base_url
    if args.max_attempts is not None:
        profile.agent.max_attempts = args.max_attempts
    if args.max_rounds is not None:
        profile.agent.max_rounds = args.max_rounds

    try:
        driver = build_driver(profile)
    except HaluError as exc:
        raise SystemExit(str(exc))

    reporter = create_reporter(ui_mode, ui_debug=args.ui_debug, is_tty=sys.stdout.isatty())
    trace_store = TraceStore(Path(args.trace_dir).expanduser().resolve()) if args.trace_dir else None
    token_counter = TiktokenCounter(profile.llm.model) if profile.agent.estimate_tokens else None

    loop = AgentLoop(
        driver=driver,
        registry=ToolRegistry(),
        system_prompt=profile.agent.system_prompt,
        reporter=reporter,
        retry_policy=RetryPolicy(profile.agent.max_attempts),
        max_rounds=profile.agent.max_rounds,
        token_counter=token_counter,
        tool_result_role=profile.agent.tool_result_role,
        trace_store=trace_store,
        model_name=profile.llm.model,
        price_table=PriceTable().with_overrides(profile.prices),
    )

    echo_result = isinstance(reporter, NullReporter)
    reporter.start()
    ok = True
    try:
        prompt = _load_prompt(args)
        if prompt is not None:
            ok = _run_once(loop, prompt, echo_result=echo_result)
        else:
            for prompt in read_prompts():
                _run_once(loop, prompt, echo_result=echo_result)
    finally:
        reporter.show_usage(loop.session_usage, loop.session_cost())
        reporter.close()
    if not ok:
        raise SystemExit(1)


if __name__ == "__main__":
    main()
