"""Execution utilities - conversation state, function calls, cost, retry and redaction.

Handlers and the dispatch factory live in prompt_tracker.execution.handlers
and prompt_tracker.execution.factory; they depend on the adapters, which
in turn import from this package, so they are not re-exported here.
"""

from prompt_tracker.execution.aggregation import TokenAggregator, ToolResultExtractor
from prompt_tracker.execution.conversation_state import ConversationStateBuilder, advance
from prompt_tracker.execution.cost import estimate_cost
from prompt_tracker.execution.function_calls import (
    MAX_ITERATIONS,
    FunctionCallHandler,
    FunctionCallResult,
    FunctionExecutor,
    FunctionInputBuilder,
)
from prompt_tracker.execution.redaction import redact_content, summarize_request, truncate_content
from prompt_tracker.execution.retry import retry_with_backoff

__all__ = [
    "MAX_ITERATIONS",
    "ConversationStateBuilder",
    "FunctionCallHandler",
    "FunctionCallResult",
    "FunctionExecutor",
    "FunctionInputBuilder",
    "TokenAggregator",
    "ToolResultExtractor",
    "advance",
    "estimate_cost",
    "redact_content",
    "retry_with_backoff",
    "summarize_request",
    "truncate_content",
]
