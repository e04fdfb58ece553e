"""Trace, Span and Generation records.

A Trace is one top-level workflow execution. It owns Spans (steps, which
nest through parent_span_id) and is referenced by Generations (single
LLM calls). Traces and Spans share a two-way state machine:

    running -> completed   (terminal)
    running -> error       (terminal)

Transitions are compare-and-swap: they only succeed while the record is
still running, and raise StateTransitionError otherwise.
"""

from __future__ import annotations

import threading
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar

from pydantic import BaseModel, Field, field_validator, model_validator

from prompt_tracker.errors import StateTransitionError
from prompt_tracker.models.response import NormalizedLlmResponse


class Status(str, Enum):
    """Lifecycle status shared by traces and spans."""

    running = "running"
    completed = "completed"
    error = "error"


class SpanType(str, Enum):
    """Kind of work a span represents."""

    function = "function"
    tool = "tool"
    retrieval = "retrieval"
    database = "database"
    http = "http"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Return value as an aware UTC datetime; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


def compute_duration_ms(started_at: datetime, ended_at: datetime) -> int:
    """Milliseconds between two instants, rounded to the nearest integer."""
    return round((ended_at - started_at).total_seconds() * 1000)


class _LifecycleRecord(BaseModel):
    """Fields and transitions shared by Trace and Span."""

    model_config = {"extra": "forbid"}

    entity_kind: ClassVar[str] = "record"
    # One lock for all records: transitions are short and never block on I/O.
    _transition_lock: ClassVar[threading.Lock] = threading.Lock()

    id: str = Field(default_factory=new_id)
    name: str = Field(min_length=1)
    input: str | None = None
    output: str | None = None
    status: Status = Status.running
    started_at: datetime = Field(default_factory=utcnow)
    ended_at: datetime | None = None
    duration_ms: int | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("started_at", "ended_at")
    @classmethod
    def _normalize_timezone(cls, value: datetime | None) -> datetime | None:
        return as_utc(value) if value is not None else None

    @model_validator(mode="after")
    def _derive_duration(self) -> _LifecycleRecord:
        if self.ended_at is not None and self.duration_ms is None:
            self.duration_ms = compute_duration_ms(self.started_at, self.ended_at)
        return self

    @property
    def is_running(self) -> bool:
        return self.status is Status.running

    def complete(
        self, output: str | None = None, *, now: datetime | None = None
    ) -> dict[str, Any]:
        """Mark this record completed.

        Args:
            output: Final output; left unchanged when None.
            now: Completion instant (defaults to the current UTC time).

        Returns:
            The changed fields, suitable for a field-level store update.

        Raises:
            StateTransitionError: If the record is not running.
        """
        changes: dict[str, Any] = {}
        if output is not None:
            changes["output"] = output
        return self._finish(Status.completed, now, changes)

    def mark_error(
        self, error_message: str, *, now: datetime | None = None
    ) -> dict[str, Any]:
        """Mark this record errored, merging {"error": message} into metadata.

        Raises:
            StateTransitionError: If the record is not running.
        """
        return self._finish(Status.error, now, {}, error_message=error_message)

    def _finish(
        self,
        status: Status,
        now: datetime | None,
        changes: dict[str, Any],
        error_message: str | None = None,
    ) -> dict[str, Any]:
        with self._transition_lock:
            if self.status is not Status.running:
                raise StateTransitionError(
                    self.entity_kind, self.id, self.status.value, status.value
                )
            ended_at = as_utc(now) if now is not None else utcnow()
            changes["status"] = status
            changes["ended_at"] = ended_at
            changes["duration_ms"] = compute_duration_ms(self.started_at, ended_at)
            if error_message is not None:
                changes["metadata"] = {**self.metadata, "error": error_message}
            for field_name, value in changes.items():
                setattr(self, field_name, value)
        return dict(changes)


class Trace(_LifecycleRecord):
    """One top-level workflow execution."""

    entity_kind: ClassVar[str] = "trace"

    session_id: str | None = None
    user_id: str | None = None


class Span(_LifecycleRecord):
    """One step within a trace; nests through parent_span_id."""

    entity_kind: ClassVar[str] = "span"

    trace_id: str
    parent_span_id: str | None = None
    span_type: SpanType | None = None

    @property
    def is_root(self) -> bool:
        return self.parent_span_id is None

    def create_child_span(
        self, name: str, span_type: SpanType | str | None = None, **attrs: Any
    ) -> Span:
        """Build a running child span of this span.

        The child always inherits this span's trace_id; any trace_id or
        parent_span_id passed in attrs is ignored.
        """
        attrs.pop("trace_id", None)
        attrs.pop("parent_span_id", None)
        attrs.pop("status", None)
        return Span(
            trace_id=self.trace_id,
            parent_span_id=self.id,
            name=name,
            span_type=span_type,
            **attrs,
        )


class Generation(BaseModel):
    """A single recorded LLM call, optionally attached to a trace and span.

    trace_id and span_id are independent nullable references. Deleting
    the trace or span they point to nullifies them; it never deletes the
    generation.
    """

    model_config = {"extra": "forbid"}

    id: str = Field(default_factory=new_id)
    trace_id: str | None = None
    span_id: str | None = None
    provider: str | None = None
    api: str | None = None
    model: str
    user_message: str | None = None
    response_text: str = ""
    tokens_prompt: int = 0
    tokens_completion: int = 0
    tokens_total: int = 0
    cost_usd: float | None = None
    response_time_ms: int | None = None
    tool_calls: list[dict[str, Any]] = Field(default_factory=list)
    api_metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("created_at")
    @classmethod
    def _normalize_timezone(cls, value: datetime) -> datetime:
        return as_utc(value)

    @classmethod
    def from_response(
        cls,
        response: NormalizedLlmResponse,
        **attrs: Any,
    ) -> Generation:
        """Build a generation record from a normalized response."""
        return cls(
            model=response.model,
            response_text=response.text,
            tokens_prompt=response.usage.prompt_tokens,
            tokens_completion=response.usage.completion_tokens,
            tokens_total=response.usage.total_tokens,
            tool_calls=[tc.model_dump() for tc in response.tool_calls],
            api_metadata=dict(response.api_metadata),
            **attrs,
        )
