"""Provider adapters - the transport layer for real LLM calls.

Re-exports the BaseAdapter ABC, the request/message dataclasses, and
the adapter registry function. Concrete adapters import their SDKs
lazily and are resolved through get_adapter().
"""

from prompt_tracker.adapters.base import AdapterRequest, BaseAdapter, Message
from prompt_tracker.adapters.registry import get_adapter

__all__ = [
    "AdapterRequest",
    "BaseAdapter",
    "Message",
    "get_adapter",
]
