"""Run orchestration: build the context, pick targets and triage them in order."""

from pathlib import Path
from typing import Optional

from autotriage.config import TriageConfig
from autotriage.discover import build_auto_discover_queue, find_reactivated_issues
from autotriage.graph.context import RunContext
from autotriage.graph.workflow import triage_issue
from autotriage.integrations.github import GitHubClient
from autotriage.integrations.llm import ModelClient, ModelResponseError
from autotriage.observability import _log, log_group
from autotriage.prompt import build_system_prompt, load_policy_prompt, load_readme
from autotriage.stats import RunStatistics
from autotriage.storage import TriageDatabase

# Stop the run after this many model failures in a row
MAX_CONSECUTIVE_FAILURES = 3


def create_context(
    config: TriageConfig,
    github: Optional[GitHubClient] = None,
    model: Optional[ModelClient] = None,
) -> RunContext:
    """Build clients, load the database and the static system prompt."""
    github = github or GitHubClient(config.repo, token=config.github_token)
    model = model or ModelClient(api_key=config.anthropic_api_key)
    db_path = Path(config.storage.db_path) if config.storage.db_path else None

    ctx = RunContext(
        config=config,
        github=github,
        model=model,
        db=TriageDatabase.load(db_path),
        stats=RunStatistics(fast_model=config.models.fast, pro_model=config.models.pro),
        operations_remaining=config.limits.max_operations,
    )
    ctx.repo_labels = github.list_repo_labels()

    readme = load_readme(config.prompt.readme_path) if config.prompt.include_readme else ""
    ctx.system_prompt = build_system_prompt(
        load_policy_prompt(config.prompt.path),
        ctx.repo_labels,
        readme=readme,
        additional_instructions=config.prompt.additional_instructions,
    )
    ctx.save_artifact(0, "prompt-system.md", ctx.system_prompt)
    return ctx


def list_targets(ctx: RunContext, event_issue: Optional[int] = None) -> tuple[list[int], bool]:
    """Decide which issues to triage.

    Explicit issue numbers win over the triggering event, which wins over
    auto-discovery.

    Returns:
        Tuple of (issue numbers in processing order, whether auto-discovered)
    """
    if ctx.config.issue_numbers:
        return list(dict.fromkeys(ctx.config.issue_numbers)), False
    if event_issue:
        return [event_issue], False

    open_issues = ctx.github.list_open_issues()
    targets = build_auto_discover_queue(
        open_issues, ctx.db.records, skip_unchanged=ctx.config.behavior.skip_unchanged
    )

    if ctx.config.behavior.sweep_closed:
        closed = ctx.github.list_closed_issues(ctx.config.limits.closed_sweep_limit)
        queued = set(targets)
        for number in find_reactivated_issues(closed, ctx.db.records):
            if number not in queued:
                targets.append(number)
                queued.add(number)

    return targets, True


def run_triage(ctx: RunContext, targets: list[int]) -> RunStatistics:
    """Triage each target in order until a budget runs out.

    Per-issue model failures are counted and skipped. Any other error
    propagates.

    Returns:
        The run's statistics
    """
    config = ctx.config
    limits = config.limits
    stats = ctx.stats
    check_fast_budget = not config.behavior.skip_fast_pass

    triages = 0
    fast_runs = 0
    consecutive_failures = 0

    _log(f"Changes enabled: {'yes' if config.enabled else 'no (dry run)'}", "info", "runner")
    _log(
        f"Triaging up to {limits.max_triages} of {len(targets)} issue(s) in {config.repo}",
        "info",
        "runner",
    )

    for number in targets:
        if triages >= limits.max_triages:
            _log(f"Reached max triages ({limits.max_triages})", "info", "runner")
            break
        if check_fast_budget and fast_runs >= limits.max_fast_runs:
            _log(f"Reached max fast runs ({limits.max_fast_runs})", "info", "runner")
            break
        if ctx.operations_remaining <= 0:
            _log(f"Reached max operations ({limits.max_operations})", "info", "runner")
            break

        try:
            with log_group(f"#{number}"):
                result = triage_issue(ctx, number)
        except ModelResponseError as e:
            stats.failed += 1
            consecutive_failures += 1
            _log(f"#{number}: model failed: {e}", "error", "runner")
            if consecutive_failures >= MAX_CONSECUTIVE_FAILURES:
                _log(
                    f"Aborting after {consecutive_failures} consecutive model failures",
                    "error",
                    "runner",
                )
                break
            continue

        consecutive_failures = 0
        if result.get("fast_pass_used"):
            fast_runs += 1
        if result.get("pro_pass_used"):
            triages += 1
            stats.triaged += 1
        else:
            stats.skipped += 1

        ctx.db.save(config.enabled)

    stats.github_api_calls = ctx.github.api_calls
    return stats
