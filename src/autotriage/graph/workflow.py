"""LangGraph workflow definition."""

from langgraph.graph import END, StateGraph

from autotriage.graph.context import RunContext
from autotriage.graph.routing import route_after_fast_pass, route_after_intake
from autotriage.graph.state import TriageState
from autotriage.nodes.actions import execute_node, record_node
from autotriage.nodes.analyze import fast_pass_node, pro_pass_node
from autotriage.nodes.intake import intake_node


def _build_triage_graph() -> StateGraph:
    """Build the two-pass graph.

    intake → fast_pass → (record | pro_pass → execute → record)
    """
    workflow = StateGraph(TriageState)

    workflow.add_node("intake", intake_node)
    workflow.add_node("fast_pass", fast_pass_node)
    workflow.add_node("pro_pass", pro_pass_node)
    workflow.add_node("execute", execute_node)
    workflow.add_node("record", record_node)

    workflow.set_entry_point("intake")

    workflow.add_conditional_edges(
        "intake",
        route_after_intake,
        {
            "skip": END,
            "fast_pass": "fast_pass",
            "pro_pass": "pro_pass",
        },
    )

    # Only the pro plan is ever executed
    workflow.add_conditional_edges(
        "fast_pass",
        route_after_fast_pass,
        {
            "pro_pass": "pro_pass",
            "record": "record",
        },
    )

    workflow.add_edge("pro_pass", "execute")
    workflow.add_edge("execute", "record")
    workflow.add_edge("record", END)

    return workflow


def create_triage_workflow():
    """Create the compiled triage workflow."""
    return _build_triage_graph().compile()


triage_graph = create_triage_workflow()


def triage_issue(ctx: RunContext, issue_number: int) -> TriageState:
    """Run the triage workflow for one issue.

    Raises:
        ModelResponseError: The pro model failed after all retries.
        TrackerError: A GitHub call failed.
    """
    return triage_graph.invoke({"issue_number": issue_number}, config=ctx.graph_config())
