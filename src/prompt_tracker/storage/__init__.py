"""Record stores for traces, spans and generations."""

from prompt_tracker.storage.base import TraceStore
from prompt_tracker.storage.json_store import JsonTraceStore
from prompt_tracker.storage.memory_store import MemoryTraceStore

__all__ = ["JsonTraceStore", "MemoryTraceStore", "TraceStore"]
