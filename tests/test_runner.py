"""Tests for run orchestration."""

import json
from unittest.mock import MagicMock, patch

import pytest
from conftest import make_issue

from autotriage.integrations.github import TrackerError
from autotriage.integrations.llm import ModelResponseError
from autotriage.runner import MAX_CONSECUTIVE_FAILURES, create_context, list_targets, run_triage
from autotriage.storage import TriageRecord


@pytest.fixture
def ctx(config, github_client):
    return create_context(config, github=github_client, model=MagicMock())


def _triaged(number):
    return {"issue_number": number, "fast_pass_used": True, "pro_pass_used": True}


def _no_action(number):
    return {"issue_number": number, "fast_pass_used": True}


class TestCreateContext:
    """Tests for create_context function."""

    def test_builds_system_prompt_once(self, ctx, config, tmp_path):
        assert ctx.label_names == ["bug", "enhancement"]
        assert "REPO LABELS" in ctx.system_prompt
        assert (tmp_path / "artifacts" / "prompt-system.md").read_text() == ctx.system_prompt
        assert ctx.operations_remaining == config.limits.max_operations
        assert ctx.stats.fast_model == config.models.fast

    def test_loads_existing_database(self, config, github_client, tmp_path):
        (tmp_path / "triage-db.json").write_text(
            json.dumps({"7": {"lastTriaged": "2024-01-01T00:00:00Z", "summary": "old"}})
        )
        ctx = create_context(config, github=github_client, model=MagicMock())
        assert ctx.db.get(7).summary == "old"

    def test_additional_instructions(self, config, github_client):
        config.prompt.additional_instructions = "Never close issues"
        ctx = create_context(config, github=github_client, model=MagicMock())
        assert "Never close issues" in ctx.system_prompt


class TestListTargets:
    """Tests for list_targets function."""

    def test_explicit_issues_win(self, ctx, config, github_client):
        config.issue_numbers = [3, 1, 3]
        assert list_targets(ctx, event_issue=9) == ([3, 1], False)
        github_client.list_open_issues.assert_not_called()

    def test_event_issue(self, ctx, github_client):
        assert list_targets(ctx, event_issue=9) == ([9], False)
        github_client.list_open_issues.assert_not_called()

    def test_auto_discover(self, ctx, github_client):
        ctx.db.records["4"] = TriageRecord(last_triaged="2024-04-04T00:00:00Z")
        github_client.list_open_issues.return_value = [
            make_issue(5, "2024-04-05T00:00:00Z"),
            make_issue(4, "2024-04-04T00:00:00Z"),
            make_issue(3, "2024-04-03T00:00:00Z"),
        ]
        assert list_targets(ctx) == ([5, 3, 4], True)
        github_client.list_closed_issues.assert_not_called()

    def test_closed_sweep(self, ctx, config, github_client):
        config.behavior.sweep_closed = True
        ctx.db.records["8"] = TriageRecord(last_triaged="2024-04-01T00:00:00Z")
        github_client.list_open_issues.return_value = [make_issue(5, "2024-04-05T00:00:00Z")]
        github_client.list_closed_issues.return_value = [
            make_issue(8, "2024-04-09T00:00:00Z", state="closed", closed_at="2024-04-02T00:00:00Z"),
        ]
        assert list_targets(ctx) == ([5, 8], True)
        github_client.list_closed_issues.assert_called_once_with(config.limits.closed_sweep_limit)


class TestRunTriage:
    """Tests for run_triage function."""

    def test_processes_all_and_saves_db(self, ctx, tmp_path):
        with patch("autotriage.runner.triage_issue", side_effect=[_triaged(1), _no_action(2)]):
            stats = run_triage(ctx, [1, 2])

        assert stats.triaged == 1
        assert stats.skipped == 1
        assert (tmp_path / "triage-db.json").exists()

    def test_dry_run_does_not_save_db(self, ctx, config, tmp_path):
        config.behavior.dry_run = True
        with patch("autotriage.runner.triage_issue", side_effect=[_triaged(1)]):
            run_triage(ctx, [1])
        assert not (tmp_path / "triage-db.json").exists()

    def test_max_triages(self, ctx, config):
        config.limits.max_triages = 2
        with patch(
            "autotriage.runner.triage_issue", side_effect=lambda _ctx, n: _triaged(n)
        ) as mock_triage:
            stats = run_triage(ctx, [1, 2, 3, 4])
        assert mock_triage.call_count == 2
        assert stats.triaged == 2

    def test_fast_runs_do_not_count_as_triages(self, ctx, config):
        config.limits.max_triages = 1
        with patch(
            "autotriage.runner.triage_issue",
            side_effect=[_no_action(1), _no_action(2), _triaged(3), _triaged(4)],
        ) as mock_triage:
            run_triage(ctx, [1, 2, 3, 4])
        assert mock_triage.call_count == 3

    def test_max_fast_runs(self, ctx, config):
        config.limits.max_fast_runs = 1
        with patch(
            "autotriage.runner.triage_issue", side_effect=lambda _ctx, n: _no_action(n)
        ) as mock_triage:
            run_triage(ctx, [1, 2, 3])
        assert mock_triage.call_count == 1

    def test_max_fast_runs_ignored_when_fast_pass_skipped(self, ctx, config):
        config.limits.max_fast_runs = 0
        config.behavior.skip_fast_pass = True
        with patch(
            "autotriage.runner.triage_issue",
            side_effect=lambda _ctx, n: {"issue_number": n, "pro_pass_used": True},
        ) as mock_triage:
            run_triage(ctx, [1, 2])
        assert mock_triage.call_count == 2

    def test_operation_budget_checked_between_issues(self, ctx):
        ctx.operations_remaining = 1

        def spend(run_ctx, number):
            run_ctx.operations_remaining -= 3
            return _triaged(number)

        with patch("autotriage.runner.triage_issue", side_effect=spend) as mock_triage:
            run_triage(ctx, [1, 2])
        assert mock_triage.call_count == 1

    def test_stops_after_consecutive_model_failures(self, ctx):
        failures = [ModelResponseError("down")] * MAX_CONSECUTIVE_FAILURES
        with patch(
            "autotriage.runner.triage_issue", side_effect=failures + [_triaged(9)]
        ) as mock_triage:
            stats = run_triage(ctx, [1, 2, 3, 4])
        assert mock_triage.call_count == MAX_CONSECUTIVE_FAILURES
        assert stats.failed == MAX_CONSECUTIVE_FAILURES

    def test_success_resets_failure_count(self, ctx):
        outcomes = [
            ModelResponseError("down"),
            ModelResponseError("down"),
            _triaged(3),
            ModelResponseError("down"),
            ModelResponseError("down"),
            _triaged(6),
        ]
        with patch("autotriage.runner.triage_issue", side_effect=outcomes):
            stats = run_triage(ctx, [1, 2, 3, 4, 5, 6])
        assert stats.failed == 4
        assert stats.triaged == 2

    def test_tracker_errors_propagate(self, ctx):
        with patch(
            "autotriage.runner.triage_issue",
            side_effect=TrackerError("GET /repos/owner/repo/issues/1", "Not Found", status=404),
        ):
            with pytest.raises(TrackerError):
                run_triage(ctx, [1])

    def test_api_calls_recorded(self, ctx, github_client):
        github_client.api_calls = 5
        with patch("autotriage.runner.triage_issue", side_effect=[_no_action(1)]):
            stats = run_triage(ctx, [1])
        assert stats.github_api_calls == 5
