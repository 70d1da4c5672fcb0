"""Pydantic schemas for LLM structured output."""

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

DesiredState = Literal["open", "completed", "not_planned"]
DESIRED_STATES = ("open", "completed", "not_planned")


class AnalysisResult(BaseModel):
    """Analysis output schema shared by the fast and pro passes."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    summary: str = ""
    reasoning: str = ""
    labels: Optional[list[str]] = None
    comment: Optional[str] = None
    state: Optional[DesiredState] = None
    new_title: Optional[str] = Field(default=None, alias="newTitle")

    @field_validator("state", mode="before")
    @classmethod
    def _drop_unknown_state(cls, value: Any) -> Any:
        # Anything other than a recognized state means "no state change"
        if value not in DESIRED_STATES:
            return None
        return value

    @field_validator("summary", "reasoning", mode="before")
    @classmethod
    def _null_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value


def build_analysis_schema(label_names: Optional[list[str]] = None) -> dict:
    """JSON schema the model must follow.

    Labels are constrained to the repository's label names when known.
    """
    label_items: dict = {"type": "string"}
    if label_names:
        label_items["enum"] = list(label_names)

    return {
        "type": "object",
        "properties": {
            "summary": {"type": "string"},
            "reasoning": {"type": "string"},
            "labels": {"type": "array", "items": label_items},
            "comment": {"type": "string"},
            "state": {"type": "string", "enum": list(DESIRED_STATES)},
            "newTitle": {"type": "string"},
        },
        "required": ["summary", "labels"],
    }
