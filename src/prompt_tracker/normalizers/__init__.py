"""Provider response normalizers.

Each normalizer converts one (provider, api) payload shape into a
NormalizedLlmResponse.
"""

from prompt_tracker.normalizers.anthropic_messages import AnthropicMessagesNormalizer
from prompt_tracker.normalizers.base import BaseNormalizer, parse_json_arguments
from prompt_tracker.normalizers.google_gemini import GeminiNormalizer
from prompt_tracker.normalizers.openai_assistants import AssistantsNormalizer
from prompt_tracker.normalizers.openai_chat import ChatCompletionsNormalizer
from prompt_tracker.normalizers.openai_responses import ResponsesNormalizer
from prompt_tracker.normalizers.registry import NormalizerRegistry, default_registry

__all__ = [
    "AnthropicMessagesNormalizer",
    "AssistantsNormalizer",
    "BaseNormalizer",
    "ChatCompletionsNormalizer",
    "GeminiNormalizer",
    "NormalizerRegistry",
    "ResponsesNormalizer",
    "default_registry",
    "parse_json_arguments",
]
