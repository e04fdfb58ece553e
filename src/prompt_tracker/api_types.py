"""Closed enumeration of supported (provider, api) pairs.

Configuration refers to an API by two loose strings (provider and api).
Everything downstream dispatches on ApiType instead, so the mapping
lives here and nowhere else. Unknown pairs map to None.
"""

from __future__ import annotations

from enum import Enum


class ApiType(str, Enum):
    """A provider API with a distinct response shape."""

    OPENAI_CHAT_COMPLETIONS = "openai_chat_completions"
    OPENAI_RESPONSES = "openai_responses"
    OPENAI_ASSISTANTS = "openai_assistants"
    ANTHROPIC_MESSAGES = "anthropic_messages"
    GOOGLE_GEMINI = "google_gemini"

    @classmethod
    def from_config(cls, provider: str | None, api: str | None) -> ApiType | None:
        """Resolve a (provider, api) pair from configuration, or None if unknown."""
        if not provider or not api:
            return None
        return CONFIG_TO_API_TYPE.get((str(provider).lower(), str(api).lower()))

    def to_config(self) -> dict[str, str]:
        """Return the canonical {provider, api} pair for this type."""
        provider, api = API_TYPE_TO_CONFIG[self]
        return {"provider": provider, "api": api}

    @property
    def display_name(self) -> str:
        return DISPLAY_NAMES[self]


CONFIG_TO_API_TYPE: dict[tuple[str, str], ApiType] = {
    ("openai", "chat_completions"): ApiType.OPENAI_CHAT_COMPLETIONS,
    ("openai", "responses"): ApiType.OPENAI_RESPONSES,
    ("openai", "assistants"): ApiType.OPENAI_ASSISTANTS,
    ("anthropic", "messages"): ApiType.ANTHROPIC_MESSAGES,
    ("google", "gemini"): ApiType.GOOGLE_GEMINI,
    ("google", "generate_content"): ApiType.GOOGLE_GEMINI,
}

# First pair registered for a type is its canonical config form.
API_TYPE_TO_CONFIG: dict[ApiType, tuple[str, str]] = {}
for _pair, _api_type in CONFIG_TO_API_TYPE.items():
    API_TYPE_TO_CONFIG.setdefault(_api_type, _pair)

DISPLAY_NAMES: dict[ApiType, str] = {
    ApiType.OPENAI_CHAT_COMPLETIONS: "OpenAI Chat Completions",
    ApiType.OPENAI_RESPONSES: "OpenAI Responses",
    ApiType.OPENAI_ASSISTANTS: "OpenAI Assistants",
    ApiType.ANTHROPIC_MESSAGES: "Anthropic Messages",
    ApiType.GOOGLE_GEMINI: "Google Gemini",
}
