"""Tests for the GitHub client and payload conversion."""

from unittest.mock import MagicMock, patch

import pytest
from github import Auth, Github
from github.GithubException import GithubException
from github.Requester import Requester

from autotriage.integrations.github import (
    CommentedEvent,
    GitHubClient,
    LabelEvent,
    RenamedEvent,
    StateEvent,
    TrackerError,
    build_issue,
    parse_timeline_event,
)


def _raw_issue(**overrides):
    raw = {
        "number": 42,
        "title": "crash",
        "state": "open",
        "user": {"login": "octocat", "type": "User"},
        "author_association": "NONE",
        "labels": [{"name": "bug"}],
        "assignees": [{"login": "maintainer"}],
        "milestone": {"title": "v1"},
        "reactions": {"total_count": 3},
        "comments": 2,
        "created_at": "2024-01-01T00:00:00Z",
        "updated_at": "2024-01-02T00:00:00Z",
        "body": "It crashes",
    }
    raw.update(overrides)
    return raw


@pytest.fixture
def pygithub():
    gh = MagicMock()
    issue = MagicMock()
    issue.raw_data = _raw_issue()
    gh.get_repo.return_value.get_issue.return_value = issue
    return gh


class TestBuildIssue:
    """Tests for build_issue function."""

    def test_fields(self):
        issue = build_issue(_raw_issue())
        assert issue.number == 42
        assert issue.author == "octocat"
        assert issue.user_type == "User"
        assert issue.labels == ["bug"]
        assert issue.assignees == ["maintainer"]
        assert issue.milestone == "v1"
        assert issue.reactions == 3
        assert issue.type == "issue"

    def test_pull_request(self):
        issue = build_issue(_raw_issue(pull_request={"url": "x"}, draft=True))
        assert issue.type == "pull request"
        assert issue.draft


class TestParseTimelineEvent:
    """Tests for parse_timeline_event function."""

    def test_noise_dropped(self):
        for kind in ("mentioned", "subscribed", "unsubscribed"):
            assert parse_timeline_event({"event": kind}) is None

    def test_comment(self):
        event = parse_timeline_event(
            {
                "event": "commented",
                "user": {"login": "octocat"},
                "author_association": "OWNER",
                "created_at": "2024-01-03T00:00:00Z",
                "body": "Any update?",
            }
        )
        assert isinstance(event, CommentedEvent)
        assert event.actor == "octocat"
        assert event.actor_association == "OWNER"
        assert event.body == "Any update?"

    def test_labeled(self):
        event = parse_timeline_event({"event": "labeled", "label": {"name": "bug"}})
        assert event == LabelEvent(event="labeled", label="bug")

    def test_renamed(self):
        event = parse_timeline_event({"event": "renamed", "rename": {"from": "a", "to": "b"}})
        assert isinstance(event, RenamedEvent)
        assert (event.old_title, event.new_title) == ("a", "b")

    def test_closed(self):
        event = parse_timeline_event({"event": "closed", "state_reason": "completed"})
        assert event == StateEvent(event="closed", state="closed", state_reason="completed")

    def test_unknown_kind_kept(self):
        event = parse_timeline_event({"event": "cross-referenced", "created_at": "2024-01-01T00:00:00Z"})
        assert event.event == "cross-referenced"


class TestGitHubClient:
    """Tests for GitHubClient."""

    def test_requires_token(self):
        with pytest.raises(ValueError):
            GitHubClient("owner/repo")

    def test_get_issue_counts_calls(self, pygithub):
        client = GitHubClient("owner/repo", github=pygithub)
        issue = client.get_issue(42)
        assert issue.title == "crash"
        # repo lookup + issue lookup
        assert client.api_calls == 2

    def test_add_labels_single_call(self, pygithub):
        client = GitHubClient("owner/repo", github=pygithub)
        client.add_labels(42, ["a", "b"])
        pygithub.get_repo.return_value.get_issue.return_value.add_to_labels.assert_called_once_with("a", "b")

    def test_close_and_reopen(self, pygithub):
        client = GitHubClient("owner/repo", github=pygithub)
        gh_issue = pygithub.get_repo.return_value.get_issue.return_value

        client.close_issue(42, "completed")
        gh_issue.edit.assert_called_with(state="closed", state_reason="completed")

        client.update_issue_state(42, "open")
        gh_issue.edit.assert_called_with(state="open")

    def test_timeline_limited_to_most_recent(self, pygithub):
        gh_issue = pygithub.get_repo.return_value.get_issue.return_value
        events = []
        for i in range(5):
            event = MagicMock()
            event.raw_data = {"event": "commented", "body": str(i)}
            events.append(event)
        gh_issue.get_timeline.return_value = events

        raw, parsed = GitHubClient("owner/repo", github=pygithub).list_timeline_events(42, 2)

        assert [r["body"] for r in raw] == ["3", "4"]
        assert [e.body for e in parsed] == ["3", "4"]

    def test_errors_become_tracker_errors(self, pygithub):
        gh_issue = pygithub.get_repo.return_value.get_issue.return_value
        gh_issue.create_comment.side_effect = GithubException(
            403,
            {"message": "Resource not accessible by integration"},
            {"x-github-request-id": "ABCD:1234"},
        )
        client = GitHubClient("owner/repo", github=pygithub)

        with pytest.raises(TrackerError) as exc_info:
            client.create_comment(42, "hi")

        err = exc_info.value
        assert err.status == 403
        assert err.request_id == "ABCD:1234"
        assert str(err) == (
            "POST /repos/owner/repo/issues/42/comments failed status=403 "
            "request-id=ABCD:1234: Resource not accessible by integration"
        )


class TestListIssues:
    """Tests for paginated issue listing."""

    REPO = {"url": "https://api.github.com/repos/owner/repo", "full_name": "owner/repo", "name": "repo"}

    def _fake_api(self, issues):
        def request(verb, url, parameters=None, headers=None, **kwargs):
            if url.endswith("/repos/owner/repo"):
                return {}, self.REPO
            page = (parameters or {}).get("page", 1)
            return {}, issues[(page - 1) * 2 : page * 2]

        return request

    def test_one_request_per_page(self):
        issues = [_raw_issue(number=n) for n in range(1, 6)]
        client = GitHubClient("owner/repo", github=Github(auth=Auth.Token("t"), per_page=2))

        with patch.object(Requester, "requestJsonAndCheck", side_effect=self._fake_api(issues)) as request:
            listed = client.list_open_issues()

        assert [i.number for i in listed] == [1, 2, 3, 4, 5]
        urls = [c.args[1] for c in request.call_args_list]
        assert not any("/issues/" in url for url in urls)
        # repo lookup + three pages
        assert request.call_count == 4
        assert client.api_calls == 4

    def test_closed_limit_stops_paging(self):
        issues = [_raw_issue(number=n, state="closed") for n in range(1, 6)]
        client = GitHubClient("owner/repo", github=Github(auth=Auth.Token("t"), per_page=2))

        with patch.object(Requester, "requestJsonAndCheck", side_effect=self._fake_api(issues)) as request:
            listed = client.list_closed_issues(limit=3)

        assert [i.number for i in listed] == [1, 2, 3]
        assert request.call_count == 3
