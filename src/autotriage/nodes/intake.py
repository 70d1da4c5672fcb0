"""Intake node - fetches the issue, its timeline and triage memory."""

import json

from langchain_core.runnables import RunnableConfig

from autotriage.discover import has_updated
from autotriage.graph.context import get_context
from autotriage.graph.state import TriageState
from autotriage.observability import log_node_event, traced_node
from autotriage.prompt import build_user_prompt


@traced_node("intake", log_output=False)
def intake_node(state: TriageState, config: RunnableConfig) -> dict:
    """Fetch issue details and build the issue-specific prompt."""
    ctx = get_context(config)
    number = state["issue_number"]

    issue = ctx.github.get_issue(number)
    raw_timeline, timeline = ctx.github.list_timeline_events(
        number, ctx.config.limits.max_timeline_events
    )
    record = ctx.db.get(number)
    changed = has_updated(issue, timeline, record)
    ctx.save_artifact(number, "timeline.json", json.dumps(raw_timeline, indent=2, default=str))

    log_node_event(
        "intake",
        f"#{number} {issue.title}",
        state=issue.state,
        labels=",".join(issue.labels) or "none",
        changed=changed,
    )

    if ctx.config.behavior.skip_unchanged and not changed:
        log_node_event("intake", "No activity since last triage; skipping", "skip")
        return {"issue": issue, "record": record, "changed": False, "skip": True}

    user_prompt = build_user_prompt(issue, timeline, record)
    ctx.save_artifact(number, "prompt-user.md", user_prompt)

    return {
        "issue": issue,
        "timeline": timeline,
        "record": record,
        "changed": changed,
        "skip": False,
        "skip_fast_pass": ctx.config.behavior.skip_fast_pass,
        "user_prompt": user_prompt,
    }
