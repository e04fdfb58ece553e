"""Token usage and tool result aggregation across a conversation."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from prompt_tracker.models.response import NormalizedLlmResponse, TokenUsage


class TokenAggregator:
    """Sums token usage across responses or recorded assistant messages."""

    def aggregate_from_responses(
        self, responses: Iterable[NormalizedLlmResponse]
    ) -> TokenUsage:
        """Sum the usage of every response, e.g. all calls made in one turn."""
        total = TokenUsage()
        for response in responses:
            total = total + response.usage
        return total

    def aggregate_from_messages(
        self, messages: Iterable[Mapping[str, Any]]
    ) -> TokenUsage | None:
        """Sum usage over assistant messages that carry a "usage" entry.

        Returns:
            The summed usage, or None if no assistant message has usage.
        """
        usages = [
            m["usage"]
            for m in messages
            if m.get("role") == "assistant" and m.get("usage") is not None
        ]
        if not usages:
            return None

        total = TokenUsage()
        for usage in usages:
            if not isinstance(usage, TokenUsage):
                usage = TokenUsage.model_validate(dict(usage))
            total = total + usage
        return total


class ToolResultExtractor:
    """Flattens built-in tool results across a list of responses."""

    def __init__(self, responses: Sequence[NormalizedLlmResponse]) -> None:
        self._responses = responses

    @property
    def web_search_results(self) -> list[dict[str, Any]]:
        return [r for resp in self._responses for r in resp.web_search_results]

    @property
    def code_interpreter_results(self) -> list[dict[str, Any]]:
        return [r for resp in self._responses for r in resp.code_interpreter_results]

    @property
    def file_search_results(self) -> list[dict[str, Any]]:
        return [r for resp in self._responses for r in resp.file_search_results]

    def all_results(self) -> dict[str, list[dict[str, Any]]]:
        return {
            "web_search_results": self.web_search_results,
            "code_interpreter_results": self.code_interpreter_results,
            "file_search_results": self.file_search_results,
        }
