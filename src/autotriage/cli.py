"""CLI entry point using Typer."""

from pathlib import Path
from typing import Optional

import typer

from autotriage.config import (
    ConfigError,
    TriageConfig,
    event_issue_number,
    load_config,
    parse_issue_numbers,
    require_credentials,
    setup_langsmith,
)
from autotriage.discover import build_auto_discover_queue
from autotriage.integrations.github import GitHubClient, TrackerError
from autotriage.runner import create_context, list_targets, run_triage
from autotriage.storage import TriageDatabase

app = typer.Typer(
    name="autotriage",
    help="AI-powered GitHub issue triage",
)


def _load(repo: Optional[str], db_path: Optional[str]) -> TriageConfig:
    config = load_config()
    if repo:
        config.repo = repo
    if db_path:
        config.storage.db_path = db_path
    return config


@app.command()
def run(
    repo: Optional[str] = typer.Argument(
        None, help="Repository in owner/repo format (defaults to GITHUB_REPOSITORY)"
    ),
    issues: Optional[str] = typer.Option(
        None, "--issues", "-i", help="Comma separated issue numbers to triage"
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", "-n", help="Log operations without changing GitHub or the database"
    ),
    skip_fast_pass: bool = typer.Option(
        False, "--skip-fast-pass", help="Send every issue straight to the pro model"
    ),
    skip_unchanged: bool = typer.Option(
        False, "--skip-unchanged", help="Skip issues with no activity since their last triage"
    ),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Triage database file"),
    max_triages: Optional[int] = typer.Option(
        None, "--max-triages", help="Maximum pro-model runs"
    ),
) -> None:
    """Triage issues: explicit numbers, the triggering event, or auto-discovered."""
    setup_langsmith()

    config = _load(repo, db_path)
    if issues:
        config.issue_numbers = parse_issue_numbers(issues)
    if dry_run:
        config.behavior.dry_run = True
    if skip_fast_pass:
        config.behavior.skip_fast_pass = True
    if skip_unchanged:
        config.behavior.skip_unchanged = True
    if max_triages is not None:
        config.limits.max_triages = max_triages

    try:
        require_credentials(config)
        ctx = create_context(config)
        targets, auto_discovered = list_targets(ctx, event_issue_number())
        if auto_discovered:
            typer.echo(f"Auto-discovered {len(targets)} issue(s)", err=True)
        stats = run_triage(ctx, targets)
    except ConfigError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    except TrackerError as e:
        typer.echo(f"GitHub error: {e}", err=True)
        raise typer.Exit(1)

    stats.print_summary()
    stats.write_step_summary()

    if config.behavior.strict and stats.failed:
        typer.echo(f"{stats.failed} issue(s) failed", err=True)
        raise typer.Exit(1)


@app.command()
def queue(
    repo: Optional[str] = typer.Argument(
        None, help="Repository in owner/repo format (defaults to GITHUB_REPOSITORY)"
    ),
    db_path: Optional[str] = typer.Option(None, "--db-path", help="Triage database file"),
) -> None:
    """Print the auto-discover order without calling any model."""
    config = _load(repo, db_path)
    if not config.repo or not config.github_token:
        typer.echo("Error: GITHUB_TOKEN and a repository (owner/repo) are required", err=True)
        raise typer.Exit(1)

    db = TriageDatabase.load(Path(config.storage.db_path) if config.storage.db_path else None)
    try:
        open_issues = GitHubClient(config.repo, token=config.github_token).list_open_issues()
    except TrackerError as e:
        typer.echo(f"GitHub error: {e}", err=True)
        raise typer.Exit(1)

    by_number = {issue.number: issue for issue in open_issues}
    order = build_auto_discover_queue(
        open_issues, db.records, skip_unchanged=config.behavior.skip_unchanged
    )
    for number in order:
        record = db.get(number)
        last = record.last_triaged if record and record.last_triaged else "never"
        typer.echo(f"#{number}\t{last}\t{by_number[number].title}")


if __name__ == "__main__":
    app()
