"""Canonical response shape every provider payload is normalized into.

NormalizedLlmResponse is a frozen pydantic model. It stores data, it
does not transform it: all extraction happens in prompt_tracker.normalizers
before a value reaches this module. Only three fields are required
(text, usage, model); everything else has an empty default.
"""

from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictStr,
    ValidationError,
    field_validator,
)

from prompt_tracker.errors import ResponseValidationError


class ToolCall(BaseModel):
    """A model-requested function invocation in canonical form."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str
    type: str = "function"
    function_name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class TokenUsage(BaseModel):
    """Token counts for a single model call."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def __add__(self, other: TokenUsage) -> TokenUsage:
        return TokenUsage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )


class NormalizedLlmResponse(BaseModel):
    """A provider response reduced to one canonical shape.

    Construction fails fast with ResponseValidationError when text or
    model is not a string, or usage is not a mapping. A missing (None)
    text becomes "" and a missing usage becomes all-zero counts.

    Provider continuation identifiers live in api_metadata; the
    thread_id, run_id and response_id properties are shortcuts into it.

    Fields cannot be reassigned and the sequence fields are tuples.
    api_metadata and the dicts held in the sequences are deep copies of
    the constructor input, so they never alias the raw payload; they are
    not frozen themselves.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    text: StrictStr
    usage: TokenUsage
    model: StrictStr
    tool_calls: tuple[ToolCall, ...] = ()
    file_search_results: tuple[dict[str, Any], ...] = ()
    web_search_results: tuple[dict[str, Any], ...] = ()
    code_interpreter_results: tuple[dict[str, Any], ...] = ()
    api_metadata: dict[str, Any] = Field(default_factory=dict)
    raw_response: Any = Field(default=None, repr=False)

    def __init__(self, **data: Any) -> None:
        try:
            super().__init__(**data)
        except ValidationError as exc:
            fields = sorted({str(err["loc"][0]) for err in exc.errors() if err["loc"]})
            raise ResponseValidationError(
                f"Invalid NormalizedLlmResponse field(s): {', '.join(fields)}",
                errors=exc.errors(),
            ) from exc

    @field_validator("text", mode="before")
    @classmethod
    def _default_text(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("usage", mode="before")
    @classmethod
    def _default_usage(cls, value: Any) -> Any:
        if value is None:
            return TokenUsage()
        if isinstance(value, TokenUsage):
            return value
        if not isinstance(value, Mapping):
            raise ValueError("usage must be a mapping of token counts")
        return dict(value)

    @field_validator(
        "tool_calls",
        "file_search_results",
        "web_search_results",
        "code_interpreter_results",
        mode="before",
    )
    @classmethod
    def _default_sequence(cls, value: Any) -> Any:
        return () if value is None else copy.deepcopy(value)

    @field_validator("api_metadata", mode="before")
    @classmethod
    def _default_metadata(cls, value: Any) -> Any:
        return {} if value is None else copy.deepcopy(value)

    @property
    def thread_id(self) -> str | None:
        return self.api_metadata.get("thread_id")

    @property
    def run_id(self) -> str | None:
        return self.api_metadata.get("run_id")

    @property
    def response_id(self) -> str | None:
        return self.api_metadata.get("response_id")

    @property
    def annotations(self) -> list[Any]:
        return self.api_metadata.get("annotations") or []

    @property
    def run_steps(self) -> Any:
        return self.api_metadata.get("run_steps") or []

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)

    def to_dict(self, include_raw: bool = False) -> dict[str, Any]:
        """Serialize to a plain dict, omitting raw_response unless asked."""
        exclude = None if include_raw else {"raw_response"}
        return self.model_dump(mode="json", exclude=exclude)
