"""Run statistics and the end-of-run summary."""

import math
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from autotriage.observability import _log
from autotriage.operations import TriageOperation, format_action_summary


@dataclass(frozen=True)
class ModelRun:
    """Timing and token usage of one model call."""

    duration: float  # seconds
    input_tokens: int = 0
    output_tokens: int = 0


@dataclass(frozen=True)
class RunSummary:
    total: float = 0.0
    avg: float = 0.0
    p95: float = 0.0
    input_tokens: int = 0
    output_tokens: int = 0


def summarize_runs(runs: list[ModelRun]) -> RunSummary:
    if not runs:
        return RunSummary()
    durations = sorted(run.duration for run in runs)
    total = sum(durations)
    p95_index = min(math.floor(len(durations) * 0.95), len(durations) - 1)
    return RunSummary(
        total=total,
        avg=total / len(durations),
        p95=durations[p95_index],
        input_tokens=sum(run.input_tokens for run in runs),
        output_tokens=sum(run.output_tokens for run in runs),
    )


def format_duration(seconds: float) -> str:
    if seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, rest = divmod(int(seconds), 60)
    return f"{minutes}m{rest}s"


def format_tokens(count: int) -> str:
    if count < 1000:
        return str(count)
    if count < 1_000_000:
        return f"{count / 1000:.1f}k"
    return f"{count / 1_000_000:.1f}M"


@dataclass
class RunStatistics:
    """Counters mutated by the run loop."""

    fast_model: str = ""
    pro_model: str = ""
    fast_runs: list[ModelRun] = field(default_factory=list)
    pro_runs: list[ModelRun] = field(default_factory=list)
    actions: dict[int, list[TriageOperation]] = field(default_factory=dict)
    triaged: int = 0
    skipped: int = 0
    failed: int = 0
    github_api_calls: int = 0

    def track_model_run(self, run: ModelRun, fast: bool) -> None:
        (self.fast_runs if fast else self.pro_runs).append(run)

    def track_action(self, issue_number: int, op: TriageOperation) -> None:
        self.actions.setdefault(issue_number, []).append(op)

    def summary_lines(self) -> list[str]:
        lines = []
        for label, model, runs in (
            ("Fast", self.fast_model, self.fast_runs),
            ("Pro", self.pro_model, self.pro_runs),
        ):
            if not runs:
                continue
            s = summarize_runs(runs)
            name = f"{label} ({model})" if model else label
            lines.append(
                f"{name}: {len(runs)} run(s) • Total: {format_duration(s.total)} • "
                f"Avg: {format_duration(s.avg)} • p95: {format_duration(s.p95)} • "
                f"Tokens: {format_tokens(s.input_tokens)} input, "
                f"{format_tokens(s.output_tokens)} output"
            )

        outcomes = []
        if self.triaged:
            outcomes.append(f"{self.triaged} triaged")
        if self.skipped:
            outcomes.append(f"{self.skipped} skipped")
        if self.failed:
            outcomes.append(f"{self.failed} failed")
        if outcomes:
            lines.append(f"Issues: {', '.join(outcomes)}")
        if self.github_api_calls:
            lines.append(f"GitHub API calls: {self.github_api_calls}")
        return lines

    def print_summary(self) -> None:
        _log("Run statistics:", "info", "stats")
        for line in self.summary_lines():
            _log(f"  {line}", "info", "stats")

        action_lines = format_action_summary(self.actions)
        if action_lines:
            _log("Actions performed:", "info", "stats")
            for line in action_lines:
                _log(f"  {line}", "info", "stats")

    def write_step_summary(self, path: Optional[str] = None) -> bool:
        """Append the summary to the GitHub Actions job summary, if available."""
        path = path or os.environ.get("GITHUB_STEP_SUMMARY")
        if not path:
            return False

        body = ["## Triage run", ""]
        body += [f"- {line}" for line in self.summary_lines()]
        action_lines = format_action_summary(self.actions)
        if action_lines:
            body += ["", "### Actions", ""]
            body += [f"- {line}" for line in action_lines]

        try:
            with open(Path(path), "a", encoding="utf-8") as f:
                f.write("\n".join(body) + "\n")
        except OSError as e:
            _log(f"Failed to write step summary: {e}", "warning", "stats")
            return False
        return True
