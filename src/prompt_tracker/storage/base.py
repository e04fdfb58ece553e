"""TraceStore: the persistence interface for traces, spans and generations.

Concrete stores implement four primitives (_load, _save, _remove, _all).
Everything else lives here: reference checks, compare-and-swap updates,
cascading deletes and the trace queries. Every public method holds the
store lock, so a store can be shared between threads. The lock is never
held across an LLM or tool call.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, Literal

from pydantic import BaseModel

from prompt_tracker.errors import RecordNotFoundError, StateTransitionError, TraceMismatchError
from prompt_tracker.models.tracing import Generation, Span, Status, Trace, utcnow

Kind = Literal["trace", "span", "generation"]

RECORD_TYPES: dict[str, type[BaseModel]] = {
    "trace": Trace,
    "span": Span,
    "generation": Generation,
}

_ORDER_FIELDS: dict[str, str] = {
    "trace": "started_at",
    "span": "started_at",
    "generation": "created_at",
}


def kind_of(record: BaseModel) -> Kind:
    for kind, record_type in RECORD_TYPES.items():
        if isinstance(record, record_type):
            return kind  # type: ignore[return-value]
    raise TypeError(f"Unsupported record type: {type(record).__name__}")


class TraceStore(ABC):
    """Abstract record store with create/update/find/list/delete.

    Records are copied on the way in and on the way out: mutating a
    returned object never changes what is stored.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()

    # -- primitives ---------------------------------------------------------

    @abstractmethod
    def _load(self, kind: str, record_id: str) -> BaseModel | None:
        """Return the stored record, or None."""
        ...

    @abstractmethod
    def _save(self, kind: str, record: BaseModel) -> None:
        """Insert or overwrite a record."""
        ...

    @abstractmethod
    def _remove(self, kind: str, record_id: str) -> bool:
        """Delete a record; return whether it existed."""
        ...

    @abstractmethod
    def _all(self, kind: str) -> list[BaseModel]:
        """Return every record of a kind, in any order."""
        ...

    # -- CRUD ---------------------------------------------------------------

    def create(self, record: Trace | Span | Generation) -> Trace | Span | Generation:
        """Persist a new record and return a copy of it.

        Raises:
            ValueError: If a record with the same id already exists.
            RecordNotFoundError: If a referenced trace, span or parent is missing.
            TraceMismatchError: If references point into different traces.
        """
        kind = kind_of(record)
        with self._lock:
            if self._load(kind, record.id) is not None:
                raise ValueError(f"{kind} '{record.id}' already exists")
            record = record.model_copy(deep=True)
            if isinstance(record, Span):
                self._check_span_references(record)
            elif isinstance(record, Generation):
                record = self._check_generation_references(record)
            self._save(kind, record)
            return record.model_copy(deep=True)

    def find(self, kind: Kind, record_id: str) -> Any:
        """Return a copy of the record.

        Raises:
            RecordNotFoundError: If no such record exists.
        """
        with self._lock:
            return self._require(kind, record_id).model_copy(deep=True)

    def get(self, kind: Kind, record_id: str) -> Any:
        """Like find(), but return None when the record is missing."""
        with self._lock:
            record = self._load(kind, record_id)
            return record.model_copy(deep=True) if record is not None else None

    def update(
        self,
        kind: Kind,
        record_id: str,
        fields: Mapping[str, Any],
        expected_status: Status | str | None = None,
    ) -> Any:
        """Apply a field-level update and return the updated record.

        Traces and spans can only be updated while running. Setting a
        terminal status stamps ended_at (now, unless given) and derives
        duration_ms; neither can be set on its own. A span cannot move to
        another trace, and changed parent or span references are checked
        the same way create() checks them.

        Args:
            kind: Record kind.
            record_id: Record id.
            fields: Fields to overwrite. The id cannot be changed.
            expected_status: When given, the update only applies if the
                stored record still has this status (compare-and-swap).

        Raises:
            RecordNotFoundError: If no such record exists.
            StateTransitionError: If the record is finished or its stored
                status differs from expected_status.
            TraceMismatchError: If changed references point into another trace.
            ValueError: If the id, or the end time of a running record,
                would change, or a span would be nested under itself.
        """
        if "id" in fields and fields["id"] != record_id:
            raise ValueError("A record's id cannot be changed")
        with self._lock:
            current = self._require(kind, record_id)
            data = current.model_dump()
            data.update(fields)
            if isinstance(current, (Trace, Span)):
                self._check_transition(kind, current, fields, expected_status, data)
            elif expected_status is not None:
                raise ValueError(f"A {kind} has no status to compare")
            updated = type(current).model_validate(data)
            if isinstance(updated, Span):
                self._check_span_move(current, updated)
            elif isinstance(updated, Generation) and (
                "trace_id" in fields or "span_id" in fields
            ):
                updated = self._check_generation_references(updated)
            self._save(kind, updated)
            return updated.model_copy(deep=True)

    def list(
        self,
        kind: Kind,
        order_by: str | None = None,
        descending: bool = False,
        **filters: Any,
    ) -> list[Any]:
        """Return copies of the records matching every filter.

        Filters compare attributes by equality (None matches null). Results
        are ordered by started_at (traces, spans) or created_at
        (generations) unless order_by names another field.
        """
        order_field = order_by or _ORDER_FIELDS[kind]
        with self._lock:
            records = [
                r
                for r in self._all(kind)
                if all(getattr(r, name) == value for name, value in filters.items())
            ]
            records.sort(key=lambda r: getattr(r, order_field), reverse=descending)
            return [r.model_copy(deep=True) for r in records]

    def delete(self, kind: Kind, record_id: str) -> bool:
        """Delete a record, applying the cascade policy.

        Deleting a trace deletes its spans and detaches its generations.
        Deleting a span deletes its descendant spans and detaches their
        generations from the span (they stay attached to the trace).

        Returns:
            True if the record existed.
        """
        with self._lock:
            if kind == "trace":
                for span in self._all("span"):
                    if span.trace_id == record_id:
                        self._remove("span", span.id)
                self._detach_generations(
                    lambda g: g.trace_id == record_id, {"trace_id": None, "span_id": None}
                )
            elif kind == "span":
                doomed = self._descendant_ids(record_id)
                for span_id in doomed - {record_id}:
                    self._remove("span", span_id)
                self._detach_generations(lambda g: g.span_id in doomed, {"span_id": None})
            return self._remove(kind, record_id)

    # -- queries ------------------------------------------------------------

    def spans_for_trace(self, trace_id: str) -> list[Span]:
        return self.list("span", trace_id=trace_id)

    def root_spans(self, trace_id: str) -> list[Span]:
        return self.list("span", trace_id=trace_id, parent_span_id=None)

    def child_spans(self, span_id: str) -> list[Span]:
        return self.list("span", parent_span_id=span_id)

    def generations_for_trace(self, trace_id: str) -> list[Generation]:
        return self.list("generation", trace_id=trace_id)

    def generations_for_span(self, span_id: str) -> list[Generation]:
        return self.list("generation", span_id=span_id)

    def orphan_generations(self, trace_id: str) -> list[Generation]:
        """Generations attached to the trace but to none of its spans."""
        return self.list("generation", trace_id=trace_id, span_id=None)

    def traces_in_session(self, session_id: str) -> list[Trace]:
        return self.list("trace", session_id=session_id)

    def traces_for_user(self, user_id: str) -> list[Trace]:
        return self.list("trace", user_id=user_id)

    def traces_with_status(self, status: Status | str) -> list[Trace]:
        return self.list("trace", status=Status(status))

    def recent_traces(self, limit: int | None = None) -> list[Trace]:
        """Traces newest first, optionally capped at limit."""
        traces = self.list("trace", descending=True)
        return traces if limit is None else traces[:limit]

    def total_tokens(self, trace_id: str) -> int:
        return sum(g.tokens_total for g in self.generations_for_trace(trace_id))

    def total_cost(self, trace_id: str) -> float:
        return sum(g.cost_usd or 0.0 for g in self.generations_for_trace(trace_id))

    # -- helpers ------------------------------------------------------------

    def _require(self, kind: str, record_id: str) -> Any:
        record = self._load(kind, record_id)
        if record is None:
            raise RecordNotFoundError(kind, record_id)
        return record

    def _check_transition(
        self,
        kind: str,
        current: Trace | Span,
        fields: Mapping[str, Any],
        expected_status: Status | str | None,
        data: dict[str, Any],
    ) -> None:
        target = Status(fields.get("status", current.status))
        if current.status is not Status.running or (
            expected_status is not None and current.status is not Status(expected_status)
        ):
            raise StateTransitionError(kind, current.id, current.status.value, target.value)
        if target is Status.running:
            if "ended_at" in fields or "duration_ms" in fields:
                raise ValueError(
                    "ended_at and duration_ms are set by completing or erroring the record"
                )
            return
        if data["ended_at"] is None:
            data["ended_at"] = utcnow()
        data["duration_ms"] = None

    def _check_span_move(self, current: Span, updated: Span) -> None:
        if updated.trace_id != current.trace_id:
            raise TraceMismatchError(
                f"Span '{current.id}' cannot move from trace '{current.trace_id}' "
                f"to trace '{updated.trace_id}'"
            )
        if updated.parent_span_id == current.parent_span_id:
            return
        if updated.parent_span_id in self._descendant_ids(current.id):
            raise ValueError(
                f"Span '{current.id}' cannot be nested under itself or its descendant "
                f"'{updated.parent_span_id}'"
            )
        self._check_span_references(updated)

    def _check_span_references(self, span: Span) -> None:
        self._require("trace", span.trace_id)
        if span.parent_span_id is not None:
            parent = self._require("span", span.parent_span_id)
            if parent.trace_id != span.trace_id:
                raise TraceMismatchError(
                    f"Span '{span.id}' belongs to trace '{span.trace_id}' but its "
                    f"parent '{parent.id}' belongs to trace '{parent.trace_id}'"
                )

    def _check_generation_references(self, generation: Generation) -> Generation:
        if generation.trace_id is not None:
            self._require("trace", generation.trace_id)
        if generation.span_id is None:
            return generation
        span = self._require("span", generation.span_id)
        if generation.trace_id is None:
            return generation.model_copy(update={"trace_id": span.trace_id})
        if span.trace_id != generation.trace_id:
            raise TraceMismatchError(
                f"Generation '{generation.id}' references trace '{generation.trace_id}' "
                f"but span '{span.id}' belongs to trace '{span.trace_id}'"
            )
        return generation

    def _descendant_ids(self, span_id: str) -> set[str]:
        spans = self._all("span")
        found = {span_id}
        frontier = [span_id]
        while frontier:
            parent = frontier.pop()
            for span in spans:
                if span.parent_span_id == parent and span.id not in found:
                    found.add(span.id)
                    frontier.append(span.id)
        return found

    def _detach_generations(self, predicate, changes: dict[str, Any]) -> None:
        for generation in self._all("generation"):
            if predicate(generation):
                self._save("generation", generation.model_copy(update=changes))
