"""Persisted triage records and debugging artifacts."""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from autotriage.observability import _log

# Artifacts written once per run rather than per issue
SHARED_ARTIFACTS = frozenset({"prompt-system.md"})


class TriageRecord(BaseModel):
    """Memo of the last completed analysis of an issue."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    last_triaged: Optional[str] = Field(default=None, alias="lastTriaged")
    summary: str = ""
    # Older databases stored this under "thoughts" or "reason"
    reasoning: str = Field(
        default="", validation_alias=AliasChoices("reasoning", "thoughts", "reason")
    )
    reactions: Optional[int] = None


class TriageDatabase:
    """JSON file of triage records keyed by issue number."""

    def __init__(
        self,
        path: Optional[Path] = None,
        records: Optional[dict[str, TriageRecord]] = None,
    ):
        self.path = Path(path) if path else None
        self.records: dict[str, TriageRecord] = records if records is not None else {}

    def __len__(self) -> int:
        return len(self.records)

    def __contains__(self, number: object) -> bool:
        return str(number) in self.records

    @classmethod
    def load(cls, path: Optional[Path]) -> "TriageDatabase":
        """Load the database; a missing or unreadable file yields an empty one."""
        db = cls(path)
        if db.path is None or not db.path.exists():
            return db

        try:
            contents = db.path.read_text(encoding="utf-8")
            data = json.loads(contents) if contents.strip() else {}
        except (OSError, ValueError) as e:
            _log(f"Failed to load {db.path}: {e}. Starting with empty database.", "warning", "storage")
            return db

        if not isinstance(data, dict):
            _log(f"Ignoring {db.path}: expected a JSON object", "warning", "storage")
            return db

        for key, value in data.items():
            try:
                db.records[str(key)] = TriageRecord.model_validate(value)
            except ValidationError:
                _log(f"Skipping malformed entry #{key} in {db.path}", "warning", "storage")

        _log(f"Loaded {db.path} with {len(db)} entries", "info", "storage")
        return db

    def get(self, number: int) -> Optional[TriageRecord]:
        return self.records.get(str(number))

    def update(
        self,
        number: int,
        summary: str,
        reasoning: str,
        reactions: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> TriageRecord:
        """Record a completed analysis of an issue."""
        previous = self.get(number)
        if reactions is None and previous is not None:
            reactions = previous.reactions

        timestamp = (now or datetime.now(timezone.utc)).isoformat().replace("+00:00", "Z")
        record = TriageRecord(
            last_triaged=timestamp,
            summary=summary or "no summary",
            reasoning=reasoning or "no reasoning",
            reactions=reactions,
        )
        self.records[str(number)] = record
        return record

    def to_dict(self) -> dict:
        return {
            key: record.model_dump(by_alias=True, exclude_none=True)
            for key, record in self.records.items()
        }

    def save(self, enabled: bool) -> bool:
        """Write the database to disk when changes are enabled.

        Returns:
            True if the file was written.
        """
        if self.path is None or not enabled:
            return False
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(self.to_dict(), indent=2), encoding="utf-8")
        except OSError as e:
            _log(f"Failed to save {self.path}: {e}", "warning", "storage")
            return False
        return True


def save_artifact(
    directory: Optional[Path], issue_number: int, name: str, contents: str = ""
) -> Optional[Path]:
    """Best-effort write of a debugging artifact.

    Failures are logged and swallowed.
    """
    if directory is None:
        return None

    filename = name if name in SHARED_ARTIFACTS else f"{issue_number}-{name}"
    path = Path(directory) / filename
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(contents, encoding="utf-8")
    except OSError as e:
        _log(f"Failed to save artifact {name} for #{issue_number}: {e}", "warning", "storage")
        return None
    return path
