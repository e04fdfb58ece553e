"""prompt_tracker data models - re-exports all public model classes."""

from prompt_tracker.models.config import TrackerConfig, load_tracker_config
from prompt_tracker.models.conversation import ConversationMessage, ConversationState
from prompt_tracker.models.response import NormalizedLlmResponse, TokenUsage, ToolCall
from prompt_tracker.models.tracing import Generation, Span, SpanType, Status, Trace

__all__ = [
    "ConversationMessage",
    "ConversationState",
    "Generation",
    "NormalizedLlmResponse",
    "Span",
    "SpanType",
    "Status",
    "TokenUsage",
    "ToolCall",
    "Trace",
    "TrackerConfig",
    "load_tracker_config",
]
