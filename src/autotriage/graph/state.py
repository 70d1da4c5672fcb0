"""TriageState schema for LangGraph workflow."""

from typing import Literal, Optional, TypedDict

from autotriage.integrations.github import Issue, TimelineEvent
from autotriage.nodes.schemas import AnalysisResult
from autotriage.operations import TriageOperation
from autotriage.storage import TriageRecord


class TriageState(TypedDict, total=False):
    """State schema for the per-issue triage workflow."""

    # === Input ===
    issue_number: int

    # === Intake ===
    issue: Issue
    timeline: list[TimelineEvent]
    record: Optional[TriageRecord]
    changed: bool  # activity since the last triage
    skip: bool
    skip_fast_pass: bool
    user_prompt: str

    # === Fast pass ===
    fast_pass_used: bool
    fast_failed: bool
    fast_analysis: AnalysisResult
    fast_thoughts: str
    fast_operations: list[TriageOperation]

    # === Pro pass ===
    pro_pass_used: bool
    analysis: AnalysisResult
    thoughts: str
    operations: list[TriageOperation]

    # === Outcome ===
    applied_operations: list[TriageOperation]
    outcome: Literal["no_action", "triaged"]
