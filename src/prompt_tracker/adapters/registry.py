"""Adapter registry resolving API types to adapter classes.

Builtin adapters are registered by dotted path and imported lazily, so
the provider SDK is only needed once a real call is made. Custom
adapters can be given as a dotted path ("my.module.MyAdapter").
"""

from __future__ import annotations

import importlib

from prompt_tracker.adapters.base import BaseAdapter
from prompt_tracker.api_types import ApiType
from prompt_tracker.models.config import RedactionConfig, TransportConfig

BUILTIN_ADAPTERS: dict[ApiType, str] = {
    ApiType.OPENAI_CHAT_COMPLETIONS: "prompt_tracker.adapters.openai_adapter.OpenAIChatAdapter",
    ApiType.OPENAI_RESPONSES: "prompt_tracker.adapters.openai_adapter.OpenAIResponsesAdapter",
    ApiType.OPENAI_ASSISTANTS: "prompt_tracker.adapters.openai_adapter.OpenAIAssistantsAdapter",
    ApiType.ANTHROPIC_MESSAGES: "prompt_tracker.adapters.anthropic_adapter.AnthropicMessagesAdapter",
}

# Maps builtin API types to their pip install extras for helpful error messages.
_INSTALL_HINTS: dict[str, str] = {
    "openai": "pip install prompt-tracker[openai]",
    "anthropic": "pip install prompt-tracker[anthropic]",
}


def get_adapter(
    name: ApiType | str,
    transport: TransportConfig | None = None,
    redaction: RedactionConfig | None = None,
) -> BaseAdapter:
    """Resolve an adapter by ApiType or dotted path and return an instance.

    Args:
        name: A builtin ApiType (or its value) or a fully-qualified
              dotted path to a BaseAdapter subclass.
        transport: Retry/timeout settings passed to the adapter.
        redaction: Request-summary settings passed to the adapter.

    Raises:
        ValueError: If name is neither a builtin with an adapter nor a dotted path.
        ImportError: If the module cannot be imported.
        TypeError: If the resolved class is not a subclass of BaseAdapter.
    """
    api_type: ApiType | None
    try:
        api_type = ApiType(name)
    except ValueError:
        api_type = None

    if api_type is not None:
        if api_type not in BUILTIN_ADAPTERS:
            available = ", ".join(sorted(t.value for t in BUILTIN_ADAPTERS))
            raise ValueError(
                f"No builtin adapter for '{api_type.value}'. "
                f"Available builtin adapters: {available}."
            )
        dotted_path = BUILTIN_ADAPTERS[api_type]
    elif "." in str(name):
        dotted_path = str(name)
    else:
        available = ", ".join(sorted(t.value for t in BUILTIN_ADAPTERS))
        raise ValueError(
            f"Unknown adapter '{name}'. "
            f"Available builtin adapters: {available}. "
            f"For custom adapters, provide the full dotted path "
            f"(e.g., 'my.module.MyAdapter')."
        )

    module_path, _, class_name = dotted_path.rpartition(".")
    if not module_path or not class_name:
        raise ValueError(
            f"Invalid adapter path '{dotted_path}'. "
            f"Expected format: 'module.path.ClassName'."
        )

    try:
        module = importlib.import_module(module_path)
    except ImportError as exc:
        provider = api_type.to_config()["provider"] if api_type is not None else None
        if provider in _INSTALL_HINTS:
            raise ImportError(
                f"Adapter '{api_type.value}' requires the {provider} package. "
                f"Install it: {_INSTALL_HINTS[provider]}"
            ) from exc
        raise

    try:
        cls = getattr(module, class_name)
    except AttributeError:
        raise ImportError(
            f"Module '{module_path}' has no attribute '{class_name}'."
        ) from None

    if not isinstance(cls, type) or not issubclass(cls, BaseAdapter):
        raise TypeError(
            f"'{dotted_path}' is not a subclass of BaseAdapter. "
            f"Custom adapters must inherit from prompt_tracker.adapters.base.BaseAdapter."
        )

    return cls(transport=transport, redaction=redaction)
