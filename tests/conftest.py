"""Pytest configuration and fixtures."""

import os
from unittest.mock import MagicMock

import pytest

from autotriage.config import TriageConfig
from autotriage.integrations.github import Issue, RepoLabel
from autotriage.storage import TriageDatabase


# Unit tests never talk to LangSmith
os.environ["LANGCHAIN_TRACING_V2"] = "false"
os.environ["LANGSMITH_TRACING"] = "false"


def make_issue(number: int = 1, updated_at: str = "2024-04-01T00:00:00Z", **overrides) -> Issue:
    """Build an issue snapshot with sensible defaults."""
    data = {
        "number": number,
        "title": "Sample",
        "state": "open",
        "author": "octocat",
        "user_type": "User",
        "created_at": updated_at,
        "updated_at": updated_at,
    }
    data.update(overrides)
    return Issue(**data)


@pytest.fixture
def issue_factory():
    return make_issue


@pytest.fixture
def config(tmp_path) -> TriageConfig:
    """Config with credentials and files under a temp directory."""
    cfg = TriageConfig(repo="owner/repo", github_token="gh-token", anthropic_api_key="sk-test")
    cfg.storage.db_path = str(tmp_path / "triage-db.json")
    cfg.storage.artifacts_dir = str(tmp_path / "artifacts")
    cfg.retry.initial_backoff_ms = 1
    return cfg


@pytest.fixture
def github_client():
    """GitHubClient stand-in with a repository of two labels."""
    client = MagicMock()
    client.api_calls = 0
    client.list_repo_labels.return_value = [
        RepoLabel(name="bug"),
        RepoLabel(name="enhancement", description="New feature"),
    ]
    client.list_timeline_events.return_value = ([], [])
    return client


@pytest.fixture
def empty_db(tmp_path) -> TriageDatabase:
    return TriageDatabase(tmp_path / "triage-db.json")
