"""Triage operations and their execution against GitHub."""

from dataclasses import asdict, dataclass
from typing import ClassVar, Literal, Mapping, Sequence, Union

from autotriage.integrations.github import GitHubClient, Issue
from autotriage.nodes.schemas import DesiredState
from autotriage.observability import _log

OperationKind = Literal["labels", "comment", "title", "state"]

COMMENT_PREVIEW_CHARS = 120


@dataclass(frozen=True)
class UpdateLabels:
    """Apply the delta between the current and proposed label sets."""

    kind: ClassVar[OperationKind] = "labels"

    to_add: tuple[str, ...]
    to_remove: tuple[str, ...]
    merged: tuple[str, ...]

    def describe(self) -> str:
        parts = [f"+{label}" for label in self.to_add]
        parts += [f"-{label}" for label in self.to_remove]
        return f"labels: {', '.join(parts)}"


@dataclass(frozen=True)
class CreateComment:
    """Post a comment, including the hidden reasoning block."""

    kind: ClassVar[OperationKind] = "comment"

    body: str

    def describe(self) -> str:
        return "comment"


@dataclass(frozen=True)
class UpdateTitle:
    kind: ClassVar[OperationKind] = "title"

    new_title: str

    def describe(self) -> str:
        return "title change"


@dataclass(frozen=True)
class UpdateState:
    """Reopen, or close as completed / not planned."""

    kind: ClassVar[OperationKind] = "state"

    state: DesiredState

    def describe(self) -> str:
        return f"state: {self.state}"


TriageOperation = Union[UpdateTitle, UpdateLabels, CreateComment, UpdateState]


def operation_to_dict(op: TriageOperation) -> dict:
    data = asdict(op)
    for key, value in data.items():
        if isinstance(value, tuple):
            data[key] = list(value)
    return {"kind": op.kind, **data}


def _preview(text: str) -> str:
    flat = " ".join(text.split())
    if len(flat) > COMMENT_PREVIEW_CHARS:
        return flat[:COMMENT_PREVIEW_CHARS] + "…"
    return flat


def perform_operation(
    op: TriageOperation, client: GitHubClient, issue: Issue, enabled: bool
) -> None:
    """Apply one operation; only logs when changes are disabled (dry run)."""
    number = issue.number
    prefix = "" if enabled else "[DRY RUN] "

    match op:
        case UpdateTitle(new_title=new_title):
            _log(f'{prefix}Updating title from "{issue.title}" to "{new_title}"', "info", "execute")
            if enabled:
                client.update_title(number, new_title)
        case UpdateLabels(to_add=to_add, to_remove=to_remove, merged=merged):
            _log(f"{prefix}Labels: {', '.join(merged) or 'none'}", "info", "execute")
            if enabled:
                if to_add:
                    client.add_labels(number, list(to_add))
                for name in to_remove:
                    client.remove_label(number, name)
        case CreateComment(body=body):
            _log(f"{prefix}Posting comment on #{number}: {_preview(body)}", "info", "execute")
            if enabled:
                client.create_comment(number, body)
        case UpdateState(state="open"):
            _log(f"{prefix}Reopening #{number}", "info", "execute")
            if enabled:
                client.update_issue_state(number, "open")
        case UpdateState(state=state):
            _log(f"{prefix}Closing #{number} as {state}", "info", "execute")
            if enabled:
                client.update_issue_state(number, "closed", state)
        case _:
            raise TypeError(f"Unknown triage operation: {op!r}")


def format_action_summary(actions: Mapping[int, Sequence[TriageOperation]]) -> list[str]:
    """One line per issue describing the operations applied to it.

    Example:
        ``#42: title change, labels: +enhancement``
    """
    lines = []
    for number in sorted(actions):
        descriptions = [op.describe() for op in actions[number]]
        if descriptions:
            lines.append(f"#{number}: {', '.join(descriptions)}")
    return lines
