"""Action nodes for GitHub operations and triage memory."""

import json

from langchain_core.runnables import RunnableConfig

from autotriage.graph.context import get_context
from autotriage.graph.state import TriageState
from autotriage.observability import log_node_event, traced_node
from autotriage.operations import operation_to_dict, perform_operation


@traced_node("execute")
def execute_node(state: TriageState, config: RunnableConfig) -> dict:
    """Apply the pro model's plan to the issue."""
    ctx = get_context(config)
    issue = state["issue"]
    ops = state.get("operations") or []

    if not ops:
        log_node_event("execute", "Nothing to do", "skip", issue=issue.number)
        return {"applied_operations": []}

    ctx.save_artifact(
        issue.number,
        "operations.json",
        json.dumps([operation_to_dict(op) for op in ops], indent=2),
    )

    applied = []
    for op in ops:
        perform_operation(op, ctx.github, issue, ctx.config.enabled)
        ctx.stats.track_action(issue.number, op)
        applied.append(op)

    ctx.operations_remaining -= len(applied)
    return {"applied_operations": applied}


@traced_node("record")
def record_node(state: TriageState, config: RunnableConfig) -> dict:
    """Remember the latest analysis so later runs can detect new activity."""
    ctx = get_context(config)
    issue = state["issue"]

    if state.get("pro_pass_used"):
        analysis = state["analysis"]
        thoughts = state.get("thoughts", "")
        outcome = "triaged"
    else:
        analysis = state["fast_analysis"]
        thoughts = state.get("fast_thoughts", "")
        outcome = "no_action"

    ctx.db.update(
        issue.number,
        summary=analysis.summary or issue.title,
        reasoning=thoughts or analysis.reasoning,
        reactions=issue.reactions,
    )
    return {"outcome": outcome}
