"""Tracer: records traces, spans and generations in a TraceStore.

Typical use:

    tracer = Tracer(MemoryTraceStore())
    with tracer.trace("rag_qa", session_id="chat_123", input=question) as trace:
        with tracer.span(trace, "search", span_type="retrieval") as span:
            span.output = "3 documents"
        response = registry.normalize(api_type, raw)
        tracer.record_generation(response, trace=trace, user_message=question)
        trace.output = response.text

A trace or span is completed with whatever its output attribute holds
when the block exits, or marked errored (and the exception re-raised)
if the block raises.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any

from prompt_tracker.errors import StateTransitionError, TraceMismatchError
from prompt_tracker.execution.cost import estimate_cost
from prompt_tracker.models.response import NormalizedLlmResponse, TokenUsage
from prompt_tracker.models.tracing import Generation, Span, SpanType, Status, Trace
from prompt_tracker.storage.base import TraceStore, kind_of

logger = logging.getLogger(__name__)

CostFunction = Callable[[str, TokenUsage], float | None]


class Tracer:
    """Creates and finishes tracing records in a store.

    Args:
        store: Where records are persisted.
        cost_function: Maps (model, usage) to a USD cost or None.
            Defaults to the static pricing table.
    """

    def __init__(
        self,
        store: TraceStore,
        cost_function: CostFunction | None = None,
    ) -> None:
        self.store = store
        self._cost_function = cost_function or estimate_cost

    # -- explicit lifecycle ---------------------------------------------------

    def start_trace(
        self,
        name: str,
        session_id: str | None = None,
        user_id: str | None = None,
        input: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Trace:
        """Create and persist a running trace."""
        trace = Trace(
            name=name,
            session_id=session_id,
            user_id=user_id,
            input=input,
            metadata=dict(metadata or {}),
        )
        return self.store.create(trace)

    def start_span(
        self,
        trace: Trace,
        name: str,
        span_type: SpanType | str | None = None,
        input: str | None = None,
        metadata: dict[str, Any] | None = None,
        parent: Span | None = None,
    ) -> Span:
        """Create and persist a running span, nested under parent when given.

        Raises:
            TraceMismatchError: If parent belongs to a different trace.
        """
        attrs = {"input": input, "metadata": dict(metadata or {})}
        if parent is None:
            span = Span(trace_id=trace.id, name=name, span_type=span_type, **attrs)
        else:
            if parent.trace_id != trace.id:
                raise TraceMismatchError(
                    f"Parent span '{parent.id}' belongs to trace '{parent.trace_id}', "
                    f"not '{trace.id}'"
                )
            span = parent.create_child_span(name, span_type=span_type, **attrs)
        return self.store.create(span)

    def complete(self, record: Trace | Span, output: str | None = None) -> Trace | Span:
        """Complete a running trace or span and persist the change.

        The store update is a compare-and-swap on status, so only one of
        two racing callers can win. record itself only changes once the
        store has accepted the transition.

        Raises:
            StateTransitionError: If the record is no longer running.
        """
        changes = record.model_copy(deep=True).complete(output)
        return self._persist(record, changes)

    def mark_error(self, record: Trace | Span, error_message: str) -> Trace | Span:
        """Mark a running trace or span errored and persist the change.

        Raises:
            StateTransitionError: If the record is no longer running.
        """
        changes = record.model_copy(deep=True).mark_error(error_message)
        return self._persist(record, changes)

    def _persist(self, record: Trace | Span, changes: dict[str, Any]) -> Trace | Span:
        stored = self.store.update(
            kind_of(record), record.id, changes, expected_status=Status.running
        )
        for field_name in changes:
            setattr(record, field_name, getattr(stored, field_name))
        return stored

    # -- context managers -----------------------------------------------------

    @contextmanager
    def trace(
        self,
        name: str,
        session_id: str | None = None,
        user_id: str | None = None,
        input: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Iterator[Trace]:
        """Run a block inside a trace. Set trace.output to record a result."""
        trace = self.start_trace(
            name, session_id=session_id, user_id=user_id, input=input, metadata=metadata
        )
        with self._lifecycle(trace):
            yield trace

    @contextmanager
    def span(
        self,
        trace: Trace,
        name: str,
        span_type: SpanType | str | None = None,
        input: str | None = None,
        metadata: dict[str, Any] | None = None,
        parent: Span | None = None,
    ) -> Iterator[Span]:
        """Run a block inside a span of trace. Set span.output to record a result."""
        span = self.start_span(
            trace, name, span_type=span_type, input=input, metadata=metadata, parent=parent
        )
        with self._lifecycle(span):
            yield span

    @contextmanager
    def child_span(
        self,
        parent: Span,
        name: str,
        span_type: SpanType | str | None = None,
        input: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Iterator[Span]:
        """Run a block inside a child span of parent, in parent's trace."""
        child = self.store.create(
            parent.create_child_span(
                name, span_type=span_type, input=input, metadata=dict(metadata or {})
            )
        )
        with self._lifecycle(child):
            yield child

    @contextmanager
    def _lifecycle(self, record: Trace | Span) -> Iterator[None]:
        try:
            yield
        except Exception as exc:
            try:
                self.mark_error(record, str(exc) or type(exc).__name__)
            except StateTransitionError:
                logger.warning(
                    "%s '%s' was already finished when the block raised",
                    record.entity_kind,
                    record.id,
                )
            raise
        if record.status is Status.running:
            self.complete(record, record.output)

    # -- generations ----------------------------------------------------------

    def record_generation(
        self,
        response: NormalizedLlmResponse,
        trace: Trace | None = None,
        span: Span | None = None,
        provider: str | None = None,
        api: str | None = None,
        user_message: str | None = None,
        response_time_ms: int | None = None,
    ) -> Generation:
        """Persist a generation built from a normalized response.

        The generation may be attached to neither, a trace only, or a
        trace and one of its spans. Passing only a span attaches it to
        the span's trace as well.

        Raises:
            TraceMismatchError: If span belongs to a different trace.
        """
        if trace is not None and span is not None and span.trace_id != trace.id:
            raise TraceMismatchError(
                f"Span '{span.id}' belongs to trace '{span.trace_id}', not '{trace.id}'"
            )

        trace_id = trace.id if trace is not None else (span.trace_id if span else None)
        generation = Generation.from_response(
            response,
            trace_id=trace_id,
            span_id=span.id if span is not None else None,
            provider=provider,
            api=api,
            user_message=user_message,
            response_time_ms=response_time_ms,
            cost_usd=self._cost_function(response.model, response.usage),
        )
        logger.debug(
            "Recorded generation %s (model=%s, tokens=%d, trace=%s)",
            generation.id,
            generation.model,
            generation.tokens_total,
            trace_id,
        )
        return self.store.create(generation)
