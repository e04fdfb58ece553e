"""BaseNormalizer ABC and shared extraction helpers.

A normalizer is a stateless object whose normalize() turns one provider's
raw payload into a NormalizedLlmResponse. Each concrete normalizer owns
all extraction logic for its format; nothing downstream re-parses the
raw payload for standard fields.

Error boundary: missing or malformed nested/optional data degrades to
empty defaults. A payload that is not a mapping, lacks its top-level
content container, or names no model raises NormalizationError.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, ClassVar

from prompt_tracker.api_types import ApiType
from prompt_tracker.errors import NormalizationError
from prompt_tracker.models.response import NormalizedLlmResponse, TokenUsage


def parse_json_arguments(args: Any) -> dict[str, Any]:
    """Parse tool-call arguments into a dict.

    Dicts pass through, JSON strings are decoded, and anything else
    (None, invalid JSON, JSON that is not an object) yields {}.
    """
    if args is None:
        return {}
    if isinstance(args, Mapping):
        return dict(args)
    if isinstance(args, str):
        try:
            parsed = json.loads(args)
        except ValueError:
            return {}
        return parsed if isinstance(parsed, dict) else {}
    return {}


def as_list(value: Any) -> list[Any]:
    """Return value if it is a list, else an empty list."""
    return value if isinstance(value, list) else []


def as_dict(value: Any) -> dict[str, Any]:
    """Return value if it is a mapping, else an empty dict."""
    return dict(value) if isinstance(value, Mapping) else {}


def token_count(value: Any) -> int:
    """Coerce a reported token count to int, treating junk as 0."""
    return value if isinstance(value, int) and not isinstance(value, bool) else 0


def build_usage(prompt: Any, completion: Any, total: Any = None) -> TokenUsage:
    """Build TokenUsage, deriving total = prompt + completion when not reported."""
    prompt_tokens = token_count(prompt)
    completion_tokens = token_count(completion)
    total_tokens = token_count(total) or prompt_tokens + completion_tokens
    return TokenUsage(
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        total_tokens=total_tokens,
    )


def compact(values: dict[str, Any]) -> dict[str, Any]:
    """Drop keys whose value is None."""
    return {key: value for key, value in values.items() if value is not None}


class BaseNormalizer(ABC):
    """Abstract base class for provider response normalizers.

    Subclasses set api_type and implement build(), which receives the
    payload already coerced to a plain dict.
    """

    api_type: ClassVar[ApiType]

    @property
    def name(self) -> str:
        return type(self).__name__

    def normalize(self, raw_response: Any) -> NormalizedLlmResponse:
        """Normalize a raw provider payload.

        Accepts a mapping or an SDK object exposing model_dump().

        Raises:
            NormalizationError: If the payload has no recognizable structure.
        """
        payload = self._to_payload(raw_response)
        return self.build(payload, raw_response)

    @abstractmethod
    def build(
        self, payload: dict[str, Any], raw_response: Any
    ) -> NormalizedLlmResponse:
        """Extract canonical fields from the coerced payload."""
        ...

    def _to_payload(self, raw_response: Any) -> dict[str, Any]:
        if hasattr(raw_response, "model_dump") and not isinstance(raw_response, Mapping):
            raw_response = raw_response.model_dump()
        if not isinstance(raw_response, Mapping):
            raise NormalizationError(
                self.name,
                f"expected a mapping payload, got {type(raw_response).__name__}",
            )
        return dict(raw_response)

    def require_model(self, *candidates: Any) -> str:
        """Return the first non-empty string candidate as the model name."""
        for candidate in candidates:
            if isinstance(candidate, str) and candidate:
                return candidate
        raise NormalizationError(self.name, "payload does not name a model")

    def reject(self, reason: str) -> NormalizationError:
        return NormalizationError(self.name, reason)
