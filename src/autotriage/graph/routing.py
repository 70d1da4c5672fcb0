"""Conditional routing functions for LangGraph workflow."""

from autotriage.graph.state import TriageState


def route_after_intake(state: TriageState) -> str:
    """Route after intake: skip, fast pass, or straight to the pro model."""
    if state.get("skip"):
        return "skip"
    if state.get("skip_fast_pass"):
        return "pro_pass"
    return "fast_pass"


def route_after_fast_pass(state: TriageState) -> str:
    """Escalate to the pro model when the fast pass found work or failed."""
    if state.get("fast_failed") or state.get("fast_operations"):
        return "pro_pass"
    return "record"
