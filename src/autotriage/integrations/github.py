"""GitHub API integration."""

from typing import Any, Callable, Literal, Optional, TypeVar

from github import Auth, Github
from github.GithubException import GithubException
from github.Issue import Issue as GithubIssue
from github.Repository import Repository
from pydantic import BaseModel, ConfigDict

T = TypeVar("T")

# Timeline events that carry no triage signal
IGNORED_TIMELINE_EVENTS = frozenset({"mentioned", "subscribed", "unsubscribed"})


class TrackerError(Exception):
    """A GitHub API call failed."""

    def __init__(
        self,
        action: str,
        message: str,
        status: Optional[int] = None,
        request_id: Optional[str] = None,
    ):
        self.action = action
        self.message = message
        self.status = status
        self.request_id = request_id
        super().__init__(str(self))

    @classmethod
    def from_exception(cls, action: str, exc: GithubException) -> "TrackerError":
        data = exc.data if isinstance(exc.data, dict) else {}
        message = data.get("message") or str(exc.data or exc)
        headers = exc.headers or {}
        request_id = headers.get("x-github-request-id") or headers.get(
            "X-GitHub-Request-Id"
        )
        return cls(action, message, status=exc.status, request_id=request_id)

    def __str__(self) -> str:
        parts = [f"{self.action} failed"]
        if self.status is not None:
            parts.append(f"status={self.status}")
        if self.request_id:
            parts.append(f"request-id={self.request_id}")
        return f"{' '.join(parts)}: {self.message}"


class RepoLabel(BaseModel):
    """A label defined on the repository."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: Optional[str] = None


class Issue(BaseModel):
    """Snapshot of an issue or pull request."""

    model_config = ConfigDict(frozen=True)

    number: int
    title: str
    state: Literal["open", "closed"] = "open"
    state_reason: Optional[str] = None
    type: Literal["issue", "pull request"] = "issue"
    author: str = "unknown"
    user_type: str = "unknown"
    author_association: Optional[str] = None
    draft: bool = False
    locked: bool = False
    milestone: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    closed_at: Optional[str] = None
    comments: int = 0
    reactions: int = 0
    labels: list[str] = []
    assignees: list[str] = []
    body: Optional[str] = None


# === Timeline events ===


class TimelineEvent(BaseModel):
    """Base timeline event; also used for kinds without extra fields."""

    model_config = ConfigDict(frozen=True)

    event: str
    id: Optional[int] = None
    actor: Optional[str] = None
    actor_association: Optional[str] = None
    created_at: Optional[str] = None


class CommentedEvent(TimelineEvent):
    event: Literal["commented"] = "commented"
    body: str = ""


class LabelEvent(TimelineEvent):
    event: Literal["labeled", "unlabeled"]
    label: Optional[str] = None


class RenamedEvent(TimelineEvent):
    event: Literal["renamed"] = "renamed"
    old_title: Optional[str] = None
    new_title: Optional[str] = None


class AssignmentEvent(TimelineEvent):
    event: Literal["assigned", "unassigned"]
    assignee: Optional[str] = None
    assigner: Optional[str] = None


class MilestoneEvent(TimelineEvent):
    event: Literal["milestoned", "demilestoned"]
    milestone: Optional[str] = None


class ReviewRequestEvent(TimelineEvent):
    event: Literal["review_requested", "review_request_removed", "review_dismissed"]
    requested_reviewer: Optional[str] = None


class StateEvent(TimelineEvent):
    event: Literal["closed", "reopened"]
    state: Literal["open", "closed"]
    state_reason: Optional[str] = None


class MergedEvent(TimelineEvent):
    event: Literal["merged"] = "merged"


class ReviewedEvent(TimelineEvent):
    event: Literal["reviewed"] = "reviewed"
    state: Optional[str] = None
    body: Optional[str] = None
    submitted_at: Optional[str] = None


class CommittedEvent(TimelineEvent):
    event: Literal["committed"] = "committed"
    sha: Optional[str] = None
    author: Optional[str] = None
    message: Optional[str] = None


def _login(user: Any) -> Optional[str]:
    return user.get("login") if isinstance(user, dict) else None


def parse_timeline_event(raw: dict) -> Optional[TimelineEvent]:
    """Convert a raw timeline payload into a typed event.

    Returns None for events that carry no triage signal.
    """
    kind = raw.get("event") or ""
    if kind in IGNORED_TIMELINE_EVENTS:
        return None

    actor = raw.get("actor") or raw.get("user")
    base = {
        "id": raw.get("id"),
        "actor": _login(actor),
        "actor_association": raw.get("author_association"),
        "created_at": raw.get("created_at") or raw.get("submitted_at"),
    }

    match kind:
        case "commented":
            return CommentedEvent(**base, body=raw.get("body") or "")
        case "labeled" | "unlabeled":
            label = raw.get("label") or {}
            return LabelEvent(**base, event=kind, label=label.get("name"))
        case "renamed":
            rename = raw.get("rename") or {}
            return RenamedEvent(
                **base, old_title=rename.get("from"), new_title=rename.get("to")
            )
        case "assigned" | "unassigned":
            return AssignmentEvent(
                **base,
                event=kind,
                assignee=_login(raw.get("assignee")),
                assigner=_login(raw.get("assigner")),
            )
        case "milestoned" | "demilestoned":
            milestone = raw.get("milestone") or {}
            return MilestoneEvent(**base, event=kind, milestone=milestone.get("title"))
        case "review_requested" | "review_request_removed" | "review_dismissed":
            team = raw.get("requested_team") or {}
            return ReviewRequestEvent(
                **base,
                event=kind,
                requested_reviewer=_login(raw.get("requested_reviewer"))
                or team.get("name"),
            )
        case "closed":
            return StateEvent(
                **base, event=kind, state="closed", state_reason=raw.get("state_reason")
            )
        case "reopened":
            return StateEvent(**base, event=kind, state="open")
        case "merged":
            return MergedEvent(**base)
        case "reviewed":
            return ReviewedEvent(
                **base,
                state=raw.get("state"),
                body=raw.get("body"),
                submitted_at=raw.get("submitted_at"),
            )
        case "committed":
            author = raw.get("author") or {}
            return CommittedEvent(
                **base,
                sha=raw.get("sha"),
                author=author.get("name") or author.get("login"),
                message=raw.get("message"),
            )
        case _:
            return TimelineEvent(**base, event=kind or "unknown")


def build_issue(raw: dict) -> Issue:
    """Convert a raw REST issue payload into an Issue snapshot."""
    user = raw.get("user") or {}
    milestone = raw.get("milestone") or {}
    reactions = raw.get("reactions") or {}

    labels = []
    for label in raw.get("labels") or []:
        name = label if isinstance(label, str) else label.get("name")
        if name:
            labels.append(name)

    assignees = [a.get("login", "") for a in raw.get("assignees") or []]
    if not assignees and raw.get("assignee"):
        assignees = [raw["assignee"].get("login", "")]

    return Issue(
        number=raw["number"],
        title=raw.get("title") or "",
        state=raw.get("state") or "open",
        state_reason=raw.get("state_reason"),
        type="pull request" if raw.get("pull_request") else "issue",
        author=user.get("login") or "unknown",
        user_type=user.get("type") or "unknown",
        author_association=raw.get("author_association"),
        draft=bool(raw.get("draft")),
        locked=bool(raw.get("locked")),
        milestone=milestone.get("title"),
        created_at=raw.get("created_at"),
        updated_at=raw.get("updated_at"),
        closed_at=raw.get("closed_at"),
        comments=raw.get("comments") or 0,
        reactions=reactions.get("total_count") or 0,
        labels=labels,
        assignees=assignees,
        body=raw.get("body"),
    )


class GitHubClient:
    """Issue tracker client for a single repository."""

    def __init__(self, repo: str, token: Optional[str] = None, github: Optional[Github] = None):
        """Initialize the client.

        Args:
            repo: Repository in owner/repo format
            token: GitHub token, used when no client is supplied
            github: Preconfigured PyGithub client
        """
        if github is None:
            if not token:
                raise ValueError("GITHUB_TOKEN environment variable is required")
            github = Github(auth=Auth.Token(token))
        self.repo = repo
        self.api_calls = 0
        self._github = github
        self._repository: Optional[Repository] = None
        self._issues: dict[int, GithubIssue] = {}

    def _call(self, action: str, fn: Callable[[], T]) -> T:
        """Run a GitHub request, counting it and enriching failures."""
        self.api_calls += 1
        try:
            return fn()
        except GithubException as e:
            raise TrackerError.from_exception(action, e) from e

    @property
    def repository(self) -> Repository:
        if self._repository is None:
            self._repository = self._call(
                f"GET /repos/{self.repo}", lambda: self._github.get_repo(self.repo)
            )
        return self._repository

    def _issue(self, number: int) -> GithubIssue:
        if number not in self._issues:
            self._issues[number] = self._call(
                f"GET /repos/{self.repo}/issues/{number}",
                lambda: self.repository.get_issue(number),
            )
        return self._issues[number]

    def get_issue(self, number: int) -> Issue:
        """Fetch a fresh issue snapshot."""
        self._issues.pop(number, None)
        return build_issue(self._issue(number).raw_data)

    def _list_issues(self, state: str, limit: Optional[int] = None) -> list[Issue]:
        paginated = self.repository.get_issues(state=state, sort="updated", direction="desc")
        per_page = self._github.per_page
        issues: list[Issue] = []
        page = 0
        while limit is None or len(issues) < limit:
            # raw_data would lazily refetch every listed issue
            items = self._call(
                f"GET /repos/{self.repo}/issues?state={state}&page={page + 1}",
                lambda: paginated.get_page(page),
            )
            issues.extend(build_issue(item._rawData) for item in items)
            if len(items) < per_page:
                break
            page += 1
        return issues if limit is None else issues[:limit]

    def list_open_issues(self) -> list[Issue]:
        """List open issues and pull requests, most recently updated first."""
        return self._list_issues("open")

    def list_closed_issues(self, limit: int = 100) -> list[Issue]:
        """List recently updated closed issues and pull requests."""
        return self._list_issues("closed", limit=limit)

    def list_repo_labels(self) -> list[RepoLabel]:
        def fetch() -> list[RepoLabel]:
            labels = []
            for label in self.repository.get_labels():
                if not label.name:
                    continue
                description = (label.description or "").strip() or None
                labels.append(RepoLabel(name=label.name, description=description))
            return labels

        return self._call(f"GET /repos/{self.repo}/labels", fetch)

    def list_timeline_events(
        self, number: int, limit: int
    ) -> tuple[list[dict], list[TimelineEvent]]:
        """Fetch the most recent timeline events of an issue.

        Returns:
            Tuple of (raw payloads, parsed events without noise kinds)
        """
        issue = self._issue(number)
        raw = self._call(
            f"GET /repos/{self.repo}/issues/{number}/timeline",
            lambda: [event.raw_data for event in issue.get_timeline()],
        )
        if limit > 0:
            raw = raw[-limit:]
        events = [e for e in (parse_timeline_event(r) for r in raw) if e is not None]
        return raw, events

    def add_labels(self, number: int, labels: list[str]) -> None:
        if not labels:
            return
        issue = self._issue(number)
        self._call(
            f"POST /repos/{self.repo}/issues/{number}/labels",
            lambda: issue.add_to_labels(*labels),
        )

    def remove_label(self, number: int, name: str) -> None:
        issue = self._issue(number)
        self._call(
            f"DELETE /repos/{self.repo}/issues/{number}/labels/{name}",
            lambda: issue.remove_from_labels(name),
        )

    def create_comment(self, number: int, body: str) -> None:
        issue = self._issue(number)
        self._call(
            f"POST /repos/{self.repo}/issues/{number}/comments",
            lambda: issue.create_comment(body),
        )

    def update_title(self, number: int, title: str) -> None:
        issue = self._issue(number)
        self._call(
            f"PATCH /repos/{self.repo}/issues/{number}",
            lambda: issue.edit(title=title),
        )

    def update_issue_state(
        self,
        number: int,
        state: Literal["open", "closed"],
        reason: Optional[Literal["completed", "not_planned"]] = None,
    ) -> None:
        """Reopen an issue, or close it with a reason."""
        issue = self._issue(number)
        if state == "closed":
            changes = {"state": "closed", "state_reason": reason or "not_planned"}
        else:
            changes = {"state": "open"}
        self._call(
            f"PATCH /repos/{self.repo}/issues/{number}", lambda: issue.edit(**changes)
        )

    def close_issue(self, number: int, reason: str = "not_planned") -> None:
        """Close an issue with a reason."""
        self.update_issue_state(number, "closed", reason)
