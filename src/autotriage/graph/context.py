"""Run-scoped context threaded through the triage graph."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from langchain_core.runnables import RunnableConfig

from autotriage.config import TriageConfig
from autotriage.integrations.github import GitHubClient, RepoLabel
from autotriage.integrations.llm import ModelClient
from autotriage.nodes.schemas import build_analysis_schema
from autotriage.stats import RunStatistics
from autotriage.storage import TriageDatabase, save_artifact


@dataclass
class RunContext:
    """Clients, persisted state and counters for one run.

    Passed to graph nodes as ``config["configurable"]["context"]``.
    """

    config: TriageConfig
    github: GitHubClient
    model: ModelClient
    db: TriageDatabase
    stats: RunStatistics = field(default_factory=RunStatistics)
    repo_labels: list[RepoLabel] = field(default_factory=list)
    system_prompt: str = ""
    operations_remaining: int = 0

    @property
    def label_names(self) -> list[str]:
        return [label.name for label in self.repo_labels]

    @property
    def analysis_schema(self) -> dict:
        return build_analysis_schema(self.label_names)

    @property
    def artifacts_dir(self) -> Optional[Path]:
        directory = self.config.storage.artifacts_dir
        return Path(directory) if directory else None

    def save_artifact(self, issue_number: int, name: str, contents: str) -> None:
        save_artifact(self.artifacts_dir, issue_number, name, contents)

    def graph_config(self) -> RunnableConfig:
        return {"configurable": {"context": self}}


def get_context(config: RunnableConfig) -> RunContext:
    """Extract the run context from a node's config."""
    context = (config or {}).get("configurable", {}).get("context")
    if not isinstance(context, RunContext):
        raise RuntimeError("Triage graph invoked without a RunContext")
    return context
