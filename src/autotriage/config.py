"""Configuration and LangSmith setup."""

import json
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml


# Default values
DEFAULT_FAST_MODEL = "claude-haiku-4-5"
DEFAULT_PRO_MODEL = "claude-sonnet-4"
DEFAULT_FAST_TEMPERATURE = 0.0
DEFAULT_PRO_TEMPERATURE = 0.0

# Run budgets (cost control)
DEFAULT_MAX_TRIAGES = 20  # pro-model runs
DEFAULT_MAX_FAST_RUNS = 100
DEFAULT_MAX_OPERATIONS = 50
DEFAULT_MAX_TIMELINE_EVENTS = 50
DEFAULT_CLOSED_SWEEP_LIMIT = 100

DEFAULT_MAX_RETRIES = 2
DEFAULT_INITIAL_BACKOFF_MS = 5000

DEFAULT_PROMPT_PATH = ".github/autotriage.prompt"
DEFAULT_README_PATH = "README.md"
DEFAULT_DB_PATH = "triage-db.json"
DEFAULT_ARTIFACTS_DIR = "artifacts"

# Config file path
CONFIG_PATH = ".github/autotriage.yml"


class ConfigError(ValueError):
    """Required configuration is missing or invalid."""


@dataclass
class ModelsConfig:
    """Model configuration."""

    fast: str = DEFAULT_FAST_MODEL
    pro: str = DEFAULT_PRO_MODEL
    fast_temperature: float = DEFAULT_FAST_TEMPERATURE
    pro_temperature: float = DEFAULT_PRO_TEMPERATURE
    thinking_budget: int = 0
    cache_system_prompt: bool = True


@dataclass
class LimitsConfig:
    """Per-run budgets."""

    max_triages: int = DEFAULT_MAX_TRIAGES
    max_fast_runs: int = DEFAULT_MAX_FAST_RUNS
    max_operations: int = DEFAULT_MAX_OPERATIONS
    max_timeline_events: int = DEFAULT_MAX_TIMELINE_EVENTS
    closed_sweep_limit: int = DEFAULT_CLOSED_SWEEP_LIMIT


@dataclass
class RetryConfig:
    """Model-call retry policy."""

    max_retries: int = DEFAULT_MAX_RETRIES
    initial_backoff_ms: int = DEFAULT_INITIAL_BACKOFF_MS


@dataclass
class PromptConfig:
    """Prompt sources."""

    path: str = DEFAULT_PROMPT_PATH
    readme_path: str = DEFAULT_README_PATH
    include_readme: bool = True
    additional_instructions: str = ""


@dataclass
class StorageConfig:
    """Database and artifact locations."""

    db_path: Optional[str] = DEFAULT_DB_PATH
    artifacts_dir: Optional[str] = DEFAULT_ARTIFACTS_DIR


@dataclass
class BehaviorConfig:
    """Triage behavior switches."""

    dry_run: bool = False
    skip_fast_pass: bool = False
    skip_unchanged: bool = False
    sweep_closed: bool = False
    seed_pro_with_fast: bool = True
    strict: bool = False


@dataclass
class TriageConfig:
    """Main configuration class."""

    version: str = "1.0"
    repo: str = ""
    github_token: str = field(default="", repr=False)
    anthropic_api_key: str = field(default="", repr=False)
    issue_numbers: list[int] = field(default_factory=list)
    models: ModelsConfig = field(default_factory=ModelsConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    prompt: PromptConfig = field(default_factory=PromptConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    behavior: BehaviorConfig = field(default_factory=BehaviorConfig)

    @property
    def enabled(self) -> bool:
        """Whether changes are written to GitHub and the database."""
        return not self.behavior.dry_run

    @property
    def owner(self) -> str:
        return self.repo.split("/")[0] if "/" in self.repo else ""


def parse_bool(value: Any, default: bool = False) -> bool:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def parse_issue_numbers(value: Optional[str]) -> list[int]:
    """Parse a comma/whitespace separated list of issue numbers."""
    if not value:
        return []
    numbers = []
    for part in re.split(r"[\s,]+", value.strip()):
        part = part.lstrip("#")
        if part.isdigit():
            numbers.append(int(part))
    return numbers


def _apply_section(target: Any, data: Optional[dict]) -> None:
    """Copy known keys from a YAML mapping onto a config dataclass."""
    if not isinstance(data, dict):
        return
    for key, value in data.items():
        if hasattr(target, key) and value is not None:
            current = getattr(target, key)
            if isinstance(current, bool):
                value = parse_bool(value, current)
            elif isinstance(current, int) and not isinstance(current, bool):
                value = int(value)
            elif isinstance(current, float):
                value = float(value)
            setattr(target, key, value)


def _env(name: str) -> Optional[str]:
    value = os.environ.get(name)
    return value if value else None


def load_config(repo_path: Optional[Path] = None) -> TriageConfig:
    """Load autotriage configuration.

    Priority (highest to lowest):
    1. Environment variables (AUTOTRIAGE_MODEL_FAST, etc.)
    2. Repo config file (.github/autotriage.yml)
    3. Package defaults

    Credentials and the repository always come from the environment
    (GITHUB_TOKEN, ANTHROPIC_API_KEY, GITHUB_REPOSITORY).

    Args:
        repo_path: Path to repository root. Defaults to current directory.

    Returns:
        TriageConfig instance
    """
    config = TriageConfig()

    if repo_path is None:
        repo_path = Path.cwd()

    config_file = repo_path / CONFIG_PATH
    if config_file.exists():
        with open(config_file) as f:
            data = yaml.safe_load(f) or {}

        if "version" in data:
            config.version = str(data["version"])
        if "issues" in data:
            issues = data["issues"]
            if isinstance(issues, list):
                config.issue_numbers = [int(n) for n in issues]
            else:
                config.issue_numbers = parse_issue_numbers(str(issues))

        _apply_section(config.models, data.get("models"))
        _apply_section(config.limits, data.get("limits"))
        _apply_section(config.retry, data.get("retry"))
        _apply_section(config.prompt, data.get("prompt"))
        _apply_section(config.storage, data.get("storage"))
        _apply_section(config.behavior, data.get("behavior"))

    # Credentials and repository context
    config.github_token = os.environ.get("GITHUB_TOKEN", "")
    config.anthropic_api_key = os.environ.get("ANTHROPIC_API_KEY", "")
    config.repo = os.environ.get("GITHUB_REPOSITORY", "")

    # Override with environment variables
    if env_fast := _env("AUTOTRIAGE_MODEL_FAST"):
        config.models.fast = env_fast
    if env_pro := _env("AUTOTRIAGE_MODEL_PRO"):
        config.models.pro = env_pro
    if env_thinking := _env("AUTOTRIAGE_THINKING_BUDGET"):
        config.models.thinking_budget = int(env_thinking)
    if env_issues := _env("AUTOTRIAGE_ISSUES"):
        config.issue_numbers = parse_issue_numbers(env_issues)
    if env_max_triages := _env("AUTOTRIAGE_MAX_TRIAGES"):
        config.limits.max_triages = int(env_max_triages)
    if env_max_fast := _env("AUTOTRIAGE_MAX_FAST_RUNS"):
        config.limits.max_fast_runs = int(env_max_fast)
    if env_max_ops := _env("AUTOTRIAGE_MAX_OPERATIONS"):
        config.limits.max_operations = int(env_max_ops)
    if env_db := _env("AUTOTRIAGE_DB_PATH"):
        config.storage.db_path = env_db
    if env_prompt := _env("AUTOTRIAGE_PROMPT_PATH"):
        config.prompt.path = env_prompt
    if env_instructions := _env("AUTOTRIAGE_ADDITIONAL_INSTRUCTIONS"):
        config.prompt.additional_instructions = env_instructions

    behavior = config.behavior
    behavior.dry_run = parse_bool(_env("AUTOTRIAGE_DRY_RUN"), behavior.dry_run)
    behavior.skip_fast_pass = parse_bool(_env("AUTOTRIAGE_SKIP_FAST_PASS"), behavior.skip_fast_pass)
    behavior.skip_unchanged = parse_bool(_env("AUTOTRIAGE_SKIP_UNCHANGED"), behavior.skip_unchanged)
    behavior.strict = parse_bool(_env("AUTOTRIAGE_STRICT"), behavior.strict)

    return config


def require_credentials(config: TriageConfig) -> None:
    """Fail fast when the run cannot talk to GitHub or the model."""
    if not config.github_token:
        raise ConfigError("GITHUB_TOKEN is missing. Provide it via secrets.GITHUB_TOKEN.")
    if not config.anthropic_api_key:
        raise ConfigError("ANTHROPIC_API_KEY is missing. Add it as a repository secret.")
    if not re.fullmatch(r"[\w.-]+/[\w.-]+", config.repo or ""):
        raise ConfigError(
            f"Repository must be in owner/repo format (got {config.repo!r}). "
            "Set GITHUB_REPOSITORY or pass it on the command line."
        )


def event_issue_number() -> Optional[int]:
    """Issue or pull request number from the triggering GitHub event, if any."""
    event_path = os.environ.get("GITHUB_EVENT_PATH")
    if not event_path:
        return None
    try:
        payload = json.loads(Path(event_path).read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return None

    for key in ("issue", "pull_request"):
        number = (payload.get(key) or {}).get("number")
        if number:
            return int(number)
    return None


def setup_langsmith() -> bool:
    """Configure LangSmith tracing if API key is available.

    Returns:
        True if LangSmith is enabled, False otherwise.
    """
    if not os.environ.get("LANGCHAIN_API_KEY"):
        os.environ["LANGCHAIN_TRACING_V2"] = "false"
        return False

    os.environ.setdefault("LANGCHAIN_TRACING_V2", "true")
    os.environ.setdefault("LANGCHAIN_PROJECT", "autotriage")
    return True
