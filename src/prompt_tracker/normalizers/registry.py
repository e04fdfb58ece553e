"""Normalizer registry mapping ApiType to a normalizer instance.

The registry is an explicit object: build one at startup with
default_registry() and pass it to whatever needs it. There is no
module-level instance to mutate.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from prompt_tracker.api_types import ApiType
from prompt_tracker.models.response import NormalizedLlmResponse
from prompt_tracker.normalizers.anthropic_messages import AnthropicMessagesNormalizer
from prompt_tracker.normalizers.base import BaseNormalizer
from prompt_tracker.normalizers.google_gemini import GeminiNormalizer
from prompt_tracker.normalizers.openai_assistants import AssistantsNormalizer
from prompt_tracker.normalizers.openai_chat import ChatCompletionsNormalizer
from prompt_tracker.normalizers.openai_responses import ResponsesNormalizer

BUILTIN_NORMALIZERS: tuple[type[BaseNormalizer], ...] = (
    ChatCompletionsNormalizer,
    ResponsesNormalizer,
    AssistantsNormalizer,
    AnthropicMessagesNormalizer,
    GeminiNormalizer,
)


class NormalizerRegistry:
    """Resolves normalizers by ApiType or by (provider, api) config pair.

    Unknown config pairs resolve to the fallback type (chat completions
    by default), matching the handler dispatch fallback.
    """

    def __init__(
        self,
        normalizers: Mapping[ApiType, BaseNormalizer] | None = None,
        fallback: ApiType = ApiType.OPENAI_CHAT_COMPLETIONS,
    ) -> None:
        self._normalizers: dict[ApiType, BaseNormalizer] = dict(normalizers or {})
        self._fallback = fallback

    def register(self, normalizer: BaseNormalizer, api_type: ApiType | None = None) -> None:
        """Register a normalizer under api_type (default: its own api_type)."""
        if not isinstance(normalizer, BaseNormalizer):
            raise TypeError(
                f"{type(normalizer).__name__} is not a BaseNormalizer instance"
            )
        self._normalizers[api_type or normalizer.api_type] = normalizer

    def unregister(self, api_type: ApiType) -> None:
        self._normalizers.pop(api_type, None)

    def get(self, api_type: ApiType) -> BaseNormalizer:
        """Return the normalizer for api_type.

        Raises:
            KeyError: If nothing is registered for api_type.
        """
        try:
            return self._normalizers[api_type]
        except KeyError:
            registered = ", ".join(sorted(t.value for t in self._normalizers)) or "none"
            raise KeyError(
                f"No normalizer registered for '{api_type.value}'. Registered: {registered}"
            ) from None

    def for_config(self, provider: str | None, api: str | None) -> BaseNormalizer:
        """Return the normalizer for a config pair, falling back for unknown pairs."""
        api_type = ApiType.from_config(provider, api)
        if api_type is None or api_type not in self._normalizers:
            api_type = self._fallback
        return self.get(api_type)

    def normalize(self, api_type: ApiType, raw_response: Any) -> NormalizedLlmResponse:
        return self.get(api_type).normalize(raw_response)

    def __contains__(self, api_type: object) -> bool:
        return api_type in self._normalizers

    @property
    def api_types(self) -> list[ApiType]:
        return list(self._normalizers)


def default_registry() -> NormalizerRegistry:
    """Build a fresh registry holding every builtin normalizer."""
    registry = NormalizerRegistry()
    for normalizer_cls in BUILTIN_NORMALIZERS:
        registry.register(normalizer_cls())
    return registry
