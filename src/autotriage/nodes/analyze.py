"""Fast and pro analysis passes."""

import time

from langchain_core.runnables import RunnableConfig

from autotriage.graph.context import RunContext, get_context
from autotriage.graph.state import TriageState
from autotriage.integrations.github import Issue
from autotriage.integrations.llm import ModelResponseError, build_payload
from autotriage.nodes.schemas import AnalysisResult
from autotriage.observability import _log, log_node_event, traced_node
from autotriage.operations import TriageOperation
from autotriage.planner import plan_operations
from autotriage.prompt import build_escalation_section
from autotriage.stats import ModelRun


def generate_analysis(
    ctx: RunContext,
    issue: Issue,
    model: str,
    temperature: float,
    user_prompt: str,
    fast: bool,
) -> tuple[AnalysisResult, str, list[TriageOperation]]:
    """Ask one model for an analysis and plan operations from it.

    Returns:
        Tuple of (analysis, thoughts, planned operations)

    Raises:
        ModelResponseError: Every attempt failed.
    """
    node = "fast_pass" if fast else "pro_pass"
    models = ctx.config.models
    payload = build_payload(
        ctx.system_prompt,
        user_prompt,
        ctx.analysis_schema,
        model,
        temperature=temperature,
        thinking_budget=models.thinking_budget,
        cache_system_prompt=models.cache_system_prompt,
    )

    log_node_event(node, f"Thinking with {model}", "thinking", issue=issue.number)
    start = time.perf_counter()
    response = ctx.model.generate_json(
        payload,
        ctx.config.retry.max_retries,
        ctx.config.retry.initial_backoff_ms,
        response_model=AnalysisResult,
    )
    ctx.stats.track_model_run(
        ModelRun(
            duration=time.perf_counter() - start,
            input_tokens=response.input_tokens,
            output_tokens=response.output_tokens,
        ),
        fast=fast,
    )

    analysis: AnalysisResult = response.data
    thoughts = response.thoughts
    if thoughts:
        _log(thoughts, "thinking", node)

    ctx.save_artifact(
        issue.number,
        f"{model}-analysis.json",
        analysis.model_dump_json(indent=2, by_alias=True, exclude_none=True),
    )
    if thoughts:
        ctx.save_artifact(issue.number, f"{model}-thoughts.txt", thoughts)

    ops = plan_operations(issue, analysis, issue.labels, ctx.label_names, thoughts)
    return analysis, thoughts, ops


@traced_node("fast_pass", log_output=False)
def fast_pass_node(state: TriageState, config: RunnableConfig) -> dict:
    """Quick, cheap analysis that decides whether the pro model is needed."""
    ctx = get_context(config)
    issue = state["issue"]
    models = ctx.config.models

    try:
        analysis, thoughts, ops = generate_analysis(
            ctx, issue, models.fast, models.fast_temperature, state["user_prompt"], fast=True
        )
    except ModelResponseError as e:
        log_node_event("fast_pass", f"Fast model failed, escalating: {e}", "warning")
        return {"fast_pass_used": True, "fast_failed": True}

    if ops:
        log_node_event(
            "fast_pass",
            "Fast model proposed changes, escalating",
            operations=", ".join(op.describe() for op in ops),
        )
    else:
        log_node_event("fast_pass", "Fast model proposed no changes", "skip")

    return {
        "fast_pass_used": True,
        "fast_failed": False,
        "fast_analysis": analysis,
        "fast_thoughts": thoughts,
        "fast_operations": ops,
    }


@traced_node("pro_pass", log_output=False)
def pro_pass_node(state: TriageState, config: RunnableConfig) -> dict:
    """Authoritative analysis whose plan is executed."""
    ctx = get_context(config)
    issue = state["issue"]
    models = ctx.config.models

    user_prompt = state["user_prompt"]
    fast_analysis = state.get("fast_analysis")
    if fast_analysis is not None and ctx.config.behavior.seed_pro_with_fast:
        user_prompt += build_escalation_section(
            fast_analysis.summary,
            state.get("fast_thoughts") or fast_analysis.reasoning,
        )

    analysis, thoughts, ops = generate_analysis(
        ctx, issue, models.pro, models.pro_temperature, user_prompt, fast=False
    )
    log_node_event("pro_pass", f"Planned {len(ops)} operation(s)", issue=issue.number)

    return {
        "pro_pass_used": True,
        "analysis": analysis,
        "thoughts": thoughts,
        "operations": ops,
    }
