"""Translate an analysis into a concrete, ordered list of operations."""

from typing import Optional, Sequence

from autotriage.integrations.github import Issue
from autotriage.labels import diff_labels, filter_labels
from autotriage.nodes.schemas import AnalysisResult
from autotriage.operations import (
    CreateComment,
    TriageOperation,
    UpdateLabels,
    UpdateState,
    UpdateTitle,
)

NO_REASONING = "No reasoning provided"


def _hidden_block(text: str) -> str:
    # "-->" and "--!>" both terminate an HTML comment
    return f"<!-- {text.replace('--!>', '-- !>').replace('-->', '-- >')} -->"


def build_comment_body(comment: str, thoughts: str) -> str:
    return f"{comment}\n\n{_hidden_block(thoughts.strip() or NO_REASONING)}"


def _state_is_current(issue: Issue, desired: str) -> bool:
    if desired == "open":
        return issue.state == "open"
    return issue.state == "closed" and issue.state_reason == desired


def plan_operations(
    issue: Issue,
    analysis: AnalysisResult,
    current_labels: Sequence[str],
    repo_labels: Optional[Sequence[str]] = None,
    thoughts: str = "",
) -> list[TriageOperation]:
    """Plan the operations needed to bring an issue in line with an analysis.

    Order is title, labels, comment, state. An empty list means no action is
    needed.

    Args:
        issue: Current issue snapshot
        analysis: Model output
        current_labels: Labels currently on the issue
        repo_labels: Label names defined on the repository, or None if unknown
        thoughts: Model thoughts, embedded in comments for traceability

    Returns:
        Operations to perform, possibly empty
    """
    ops: list[TriageOperation] = []

    new_title = analysis.new_title
    if new_title and new_title.strip() and new_title != issue.title:
        ops.append(UpdateTitle(new_title=new_title))

    if analysis.labels is not None:
        proposed = filter_labels(analysis.labels, repo_labels)
        diff = diff_labels(current_labels, proposed)
        if not diff.is_empty:
            ops.append(
                UpdateLabels(
                    to_add=tuple(diff.to_add),
                    to_remove=tuple(diff.to_remove),
                    merged=tuple(diff.merged),
                )
            )

    if analysis.comment and analysis.comment.strip():
        body = build_comment_body(analysis.comment, thoughts or analysis.reasoning)
        ops.append(CreateComment(body=body))

    if analysis.state and not _state_is_current(issue, analysis.state):
        ops.append(UpdateState(state=analysis.state))

    return ops
