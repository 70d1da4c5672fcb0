"""Observability utilities for the triage workflow.

Provides logging, timing, and tracing for LangGraph nodes. Everything goes to
stderr so GitHub Actions shows it inline with the step output.
"""

import functools
import os
import sys
import time
from contextlib import contextmanager
from typing import Any, Callable, Iterator, TypeVar

from langsmith import traceable

F = TypeVar("F", bound=Callable[..., Any])

_PREFIXES = {
    "info": "ℹ️",
    "success": "✅",
    "error": "❌",
    "warning": "⚠️",
    "start": "🚀",
    "end": "🏁",
    "thinking": "💭",
    "skip": "⏭️",
}


def _log(message: str, level: str = "info", node: str = "node") -> None:
    """Log message to stderr for GitHub Actions visibility."""
    prefix = _PREFIXES.get(level, "")
    print(f"{prefix} [{node}] {message}", file=sys.stderr, flush=True)


def _without_run_config(inputs: dict) -> dict:
    """Drop the LangGraph run config from recorded trace inputs.

    The config carries the run context, which holds credentials.
    """
    return {k: v for k, v in inputs.items() if k != "config"}


def _format_elapsed(elapsed: float) -> str:
    return f"{elapsed:.2f}s" if elapsed >= 1 else f"{elapsed * 1000:.0f}ms"


def traced_node(
    name: str,
    *,
    run_type: str = "chain",
    log_output: bool = True,
) -> Callable[[F], F]:
    """Decorator to add tracing and logging to a LangGraph node.

    Combines LangSmith tracing with timing and logging for observability.
    The wrapped node keeps its signature, so LangGraph still passes the
    run config to nodes that accept one.

    Args:
        name: Name for the trace (e.g., "fast_pass", "execute").
        run_type: LangSmith run type ("chain", "llm", "tool").
        log_output: Whether to log output keys.

    Example:
        @traced_node("intake")
        def intake_node(state: TriageState, config: RunnableConfig) -> dict:
            ...
    """

    def decorator(func: F) -> F:
        traced_func = traceable(
            name=name, run_type=run_type, process_inputs=_without_run_config
        )(func)

        @functools.wraps(func)
        def wrapper(state: dict, *args: Any, **kwargs: Any) -> dict:
            _log("Starting...", "start", name)
            start_time = time.perf_counter()

            try:
                result = traced_func(state, *args, **kwargs)
            except Exception as e:
                elapsed = time.perf_counter() - start_time
                _log(f"Failed after {_format_elapsed(elapsed)}: {e}", "error", name)
                raise

            elapsed_str = _format_elapsed(time.perf_counter() - start_time)
            if log_output and isinstance(result, dict):
                _log(f"Completed in {elapsed_str}, output: {list(result.keys())}", "end", name)
            else:
                _log(f"Completed in {elapsed_str}", "end", name)
            return result

        return wrapper  # type: ignore

    return decorator


def log_node_event(node: str, event: str, level: str = "info", **data: Any) -> None:
    """Log a custom event from within a node.

    Example:
        log_node_event("fast_pass", "no operations", issue=42)
    """
    if data:
        data_str = ", ".join(f"{k}={v}" for k, v in data.items())
        _log(f"{event} ({data_str})", level, node)
    else:
        _log(event, level, node)


@contextmanager
def log_group(title: str) -> Iterator[None]:
    """Fold the enclosed log lines into a collapsible GitHub Actions group."""
    in_actions = os.environ.get("GITHUB_ACTIONS") == "true"
    if in_actions:
        print(f"::group::{title}", file=sys.stderr, flush=True)
    else:
        print(f"\n=== {title} ===", file=sys.stderr, flush=True)
    try:
        yield
    finally:
        if in_actions:
            print("::endgroup::", file=sys.stderr, flush=True)
