"""LLM integration: JSON generation with bounded retries."""

import json
import re
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from langchain_anthropic import ChatAnthropic
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langsmith import traceable
from pydantic import BaseModel

from autotriage.observability import _log

# Room for the JSON answer on top of any thinking budget
DEFAULT_MAX_OUTPUT_TOKENS = 8192

_FENCED_JSON = re.compile(r"```(?:json)?\s*\n?(\{.*\})\s*\n?```", re.DOTALL)
_BLANK_RUNS = re.compile(r"(\r?\n\s*){2,}")


class ModelResponseError(Exception):
    """The model did not produce a usable JSON response."""


@dataclass(frozen=True)
class ModelPayload:
    """Everything needed for one model request."""

    model: str
    system_prompt: str
    user_prompt: str
    schema: dict
    temperature: Optional[float] = None
    thinking_budget: int = 0
    cache_system_prompt: bool = False

    @property
    def max_tokens(self) -> int:
        return DEFAULT_MAX_OUTPUT_TOKENS + max(self.thinking_budget, 0)

    def messages(self) -> list[BaseMessage]:
        system_text = (
            f"{self.system_prompt}\n\n"
            "=== SECTION: RESPONSE JSON SCHEMA ===\n"
            "Respond with a single JSON object that validates against this schema. "
            "No prose, no code fences.\n"
            f"{json.dumps(self.schema, indent=2)}"
        )
        if self.cache_system_prompt:
            system = SystemMessage(
                content=[
                    {
                        "type": "text",
                        "text": system_text,
                        "cache_control": {"type": "ephemeral"},
                    }
                ]
            )
        else:
            system = SystemMessage(content=system_text)
        return [system, HumanMessage(content=self.user_prompt)]


@dataclass(frozen=True)
class ModelResponse:
    data: Any
    thoughts: str = ""
    input_tokens: int = 0
    output_tokens: int = 0


def build_payload(
    system_prompt: str,
    user_prompt: str,
    schema: dict,
    model: str,
    temperature: Optional[float] = None,
    thinking_budget: int = 0,
    cache_system_prompt: bool = False,
) -> ModelPayload:
    """Build a model request.

    Extended thinking requires the provider's default temperature, so the
    temperature is dropped when a thinking budget is set.
    """
    if thinking_budget > 0:
        temperature = None
    return ModelPayload(
        model=model,
        system_prompt=system_prompt,
        user_prompt=user_prompt,
        schema=schema,
        temperature=temperature,
        thinking_budget=max(thinking_budget, 0),
        cache_system_prompt=cache_system_prompt,
    )


def _extract_json(text: str) -> Any:
    """Parse the JSON object out of a model's text output."""
    match = _FENCED_JSON.search(text)
    candidate = match.group(1) if match else text.strip()
    try:
        return json.loads(candidate)
    except json.JSONDecodeError as e:
        raise ModelResponseError("Unable to parse JSON from model response") from e


def _split_content(message: AIMessage) -> tuple[str, str]:
    """Separate answer text from thinking blocks."""
    if isinstance(message.content, str):
        return message.content, ""

    text_parts: list[str] = []
    thoughts: list[str] = []
    for block in message.content:
        if isinstance(block, str):
            text_parts.append(block)
        elif block.get("type") == "thinking":
            thoughts.append(block.get("thinking") or "")
        elif block.get("type") == "text":
            text_parts.append(block.get("text") or "")

    collapsed = _BLANK_RUNS.sub("\n", "\n".join(thoughts)).strip()
    return "".join(text_parts), collapsed


def parse_model_message(
    message: AIMessage, response_model: Optional[type[BaseModel]] = None
) -> ModelResponse:
    """Turn a chat response into parsed (and optionally validated) JSON."""
    text, thoughts = _split_content(message)
    if not text.strip():
        raise ModelResponseError("Model responded with empty text")

    data = _extract_json(text)
    if response_model is not None:
        data = response_model.model_validate(data)

    usage = message.usage_metadata or {}
    return ModelResponse(
        data=data,
        thoughts=thoughts,
        input_tokens=usage.get("input_tokens", 0),
        output_tokens=usage.get("output_tokens", 0),
    )


class ModelClient:
    """Anthropic chat client returning structured JSON."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.api_key = api_key
        self._sleep = sleep

    def _chat_model(self, payload: ModelPayload) -> ChatAnthropic:
        kwargs: dict[str, Any] = {
            "model": payload.model,
            "max_tokens": payload.max_tokens,
            # Retries are handled by generate_json
            "max_retries": 0,
        }
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if payload.thinking_budget > 0:
            kwargs["thinking"] = {"type": "enabled", "budget_tokens": payload.thinking_budget}
        elif payload.temperature is not None:
            kwargs["temperature"] = payload.temperature
        return ChatAnthropic(**kwargs)

    @traceable(
        name="model_call",
        run_type="llm",
        process_inputs=lambda inputs: {"payload": inputs.get("payload")},
    )
    def _attempt(
        self, payload: ModelPayload, response_model: Optional[type[BaseModel]]
    ) -> ModelResponse:
        message = self._chat_model(payload).invoke(payload.messages())
        return parse_model_message(message, response_model)

    def generate_json(
        self,
        payload: ModelPayload,
        max_retries: int,
        initial_backoff_ms: int,
        response_model: Optional[type[BaseModel]] = None,
    ) -> ModelResponse:
        """Call the model until it returns valid JSON.

        Makes up to ``max_retries + 1`` attempts with exponential backoff
        between them (``initial_backoff_ms * 2**(attempt - 1)``, at least 1ms).

        Args:
            payload: Request to send
            max_retries: Retries after the first attempt
            initial_backoff_ms: Delay before the first retry
            response_model: Optional pydantic model the JSON must validate against

        Returns:
            Parsed response with thoughts and token counts

        Raises:
            ModelResponseError: Every attempt failed; carries the last failure's message.
        """
        total_attempts = max(max_retries, 0) + 1
        last_error: Optional[Exception] = None

        for attempt in range(1, total_attempts + 1):
            try:
                return self._attempt(payload, response_model)
            except Exception as e:
                last_error = e
                _log(
                    f"{payload.model} attempt {attempt}/{total_attempts} failed: {e}",
                    "warning",
                    "model",
                )

            if attempt < total_attempts:
                backoff_ms = max(1, initial_backoff_ms * 2 ** (attempt - 1))
                self._sleep(backoff_ms / 1000)

        raise ModelResponseError(str(last_error)) from last_error
