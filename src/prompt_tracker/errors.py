"""Exception taxonomy for prompt_tracker.

Every exception raised by the library derives from PromptTrackerError,
so host applications can catch library failures with a single clause.
Hitting the function call iteration limit is not an exception: it is
reported on FunctionCallResult.
"""

from __future__ import annotations

from typing import Any


class PromptTrackerError(Exception):
    """Base class for all prompt_tracker errors."""


class ResponseValidationError(PromptTrackerError, ValueError):
    """A NormalizedLlmResponse was constructed with a malformed required field.

    Attributes:
        errors: The list of error dicts reported by pydantic.
    """

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None) -> None:
        self.errors = errors or []
        super().__init__(message)


class NormalizationError(PromptTrackerError):
    """A raw provider payload has no recognizable top-level structure.

    Attributes:
        normalizer: Name of the normalizer that rejected the payload.
    """

    def __init__(self, normalizer: str, reason: str) -> None:
        self.normalizer = normalizer
        self.reason = reason
        super().__init__(f"{normalizer}: {reason}")


class DispatchError(PromptTrackerError, ValueError):
    """model_config is missing a key required to select a handler."""


class StateTransitionError(PromptTrackerError):
    """A Trace or Span was completed or errored while not running.

    Attributes:
        entity: "trace" or "span".
        entity_id: Identifier of the record.
        current_status: Status the record was found in.
        attempted: The status the caller tried to move to.
    """

    def __init__(
        self,
        entity: str,
        entity_id: str | None,
        current_status: str,
        attempted: str,
    ) -> None:
        self.entity = entity
        self.entity_id = entity_id
        self.current_status = current_status
        self.attempted = attempted
        super().__init__(
            f"Cannot mark {entity} '{entity_id}' as {attempted}: "
            f"status is already '{current_status}'"
        )


class TransportError(PromptTrackerError):
    """An LLM provider or tool call failed at the transport level.

    Attributes:
        provider: Provider key (e.g. "openai").
        api: API key (e.g. "responses").
        status_code: HTTP status reported by the SDK, if any.
        request_summary: Redacted description of the request that failed.
    """

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        api: str | None = None,
        status_code: int | None = None,
        request_summary: dict[str, Any] | None = None,
    ) -> None:
        self.provider = provider
        self.api = api
        self.status_code = status_code
        self.request_summary = request_summary or {}
        super().__init__(message)


class RecordNotFoundError(PromptTrackerError, KeyError):
    """A store lookup found no record with the given id."""

    def __init__(self, kind: str, record_id: str) -> None:
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"No {kind} with id '{record_id}'")

    def __str__(self) -> str:
        return self.args[0]


class TraceMismatchError(PromptTrackerError, ValueError):
    """A span or generation references records from two different traces."""


class ToolDefinitionError(PromptTrackerError, ValueError):
    """A tool entry in model_config cannot be turned into a function definition."""
