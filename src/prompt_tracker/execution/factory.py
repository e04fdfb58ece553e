"""Handler dispatch: pick the conversation handler for a model config.

The set of (provider, api) pairs with a specialized handler is the
HANDLER_REGISTRY table below. Every other pair, including unknown
providers, gets the chat-completion handler.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from prompt_tracker.api_types import ApiType
from prompt_tracker.errors import DispatchError
from prompt_tracker.execution.handlers import (
    AssistantsApiHandler,
    ChatCompletionHandler,
    ConversationTestHandler,
    ResponseApiHandler,
)

HANDLER_REGISTRY: dict[ApiType, type[ConversationTestHandler]] = {
    ApiType.OPENAI_RESPONSES: ResponseApiHandler,
    ApiType.OPENAI_ASSISTANTS: AssistantsApiHandler,
}

DEFAULT_HANDLER: type[ConversationTestHandler] = ChatCompletionHandler

_REQUIRED_KEYS = ("provider", "api")


def handler_class_for(model_config: Mapping[str, Any]) -> type[ConversationTestHandler]:
    """Return the handler class for a config, falling back to DEFAULT_HANDLER."""
    api_type = ApiType.from_config(model_config.get("provider"), model_config.get("api"))
    if api_type is None:
        return DEFAULT_HANDLER
    return HANDLER_REGISTRY.get(api_type, DEFAULT_HANDLER)


def build_handler(
    model_config: Mapping[str, Any],
    use_real_llm: bool = False,
    testable: Any = None,
    **dependencies: Any,
) -> ConversationTestHandler:
    """Build the conversation handler for model_config.

    Args:
        model_config: Must contain non-empty provider and api entries.
        use_real_llm: Whether the handler calls the provider or returns mocks.
        testable: Optional context object passed through to the handler.
        **dependencies: adapter, registry, config or functions overrides,
            forwarded to the handler constructor.

    Returns:
        A ConversationTestHandler instance.

    Raises:
        DispatchError: If provider or api is missing or blank.
    """
    if not isinstance(model_config, Mapping):
        raise DispatchError(
            f"model_config must be a mapping, got {type(model_config).__name__}"
        )
    for key in _REQUIRED_KEYS:
        value = model_config.get(key)
        if value is None or not str(value).strip():
            raise DispatchError(f"model_config must include '{key}'")

    handler_cls = handler_class_for(model_config)
    return handler_cls(
        model_config,
        use_real_llm=use_real_llm,
        testable=testable,
        **dependencies,
    )
