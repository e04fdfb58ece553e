"""Normalizer for OpenAI Chat Completions responses.

Expected payload (ChatCompletion.model_dump() or the REST JSON body):

    {
      "id": "chatcmpl-123",
      "model": "gpt-4o-2024-08-06",
      "choices": [{
        "message": {"role": "assistant", "content": "Hi", "tool_calls": [...]},
        "finish_reason": "stop"
      }],
      "usage": {"prompt_tokens": 9, "completion_tokens": 3, "total_tokens": 12}
    }
"""

from __future__ import annotations

from typing import Any

from prompt_tracker.api_types import ApiType
from prompt_tracker.models.response import NormalizedLlmResponse, ToolCall
from prompt_tracker.normalizers.base import (
    BaseNormalizer,
    as_dict,
    as_list,
    build_usage,
    compact,
    parse_json_arguments,
)


class ChatCompletionsNormalizer(BaseNormalizer):
    """Normalizes the first choice of a chat completion."""

    api_type = ApiType.OPENAI_CHAT_COMPLETIONS

    def build(
        self, payload: dict[str, Any], raw_response: Any
    ) -> NormalizedLlmResponse:
        choices = as_list(payload.get("choices"))
        if not choices:
            raise self.reject("payload has no choices")
        choice = as_dict(choices[0])
        message = as_dict(choice.get("message"))
        usage = as_dict(payload.get("usage"))

        return NormalizedLlmResponse(
            text=self._extract_text(message.get("content")),
            usage=build_usage(
                usage.get("prompt_tokens"),
                usage.get("completion_tokens"),
                usage.get("total_tokens"),
            ),
            model=self.require_model(payload.get("model")),
            tool_calls=self._extract_tool_calls(message),
            api_metadata=compact(
                {
                    "message_id": payload.get("id"),
                    "stop_reason": choice.get("finish_reason"),
                }
            ),
            raw_response=raw_response,
        )

    def _extract_text(self, content: Any) -> str:
        if isinstance(content, str):
            return content
        # Content may arrive as a list of typed parts.
        parts = [
            part.get("text")
            for part in as_list(content)
            if isinstance(part, dict) and isinstance(part.get("text"), str)
        ]
        return "\n".join(parts)

    def _extract_tool_calls(self, message: dict[str, Any]) -> list[ToolCall]:
        tool_calls: list[ToolCall] = []
        for raw in as_list(message.get("tool_calls")):
            call = as_dict(raw)
            function = as_dict(call.get("function"))
            tool_calls.append(
                ToolCall(
                    id=str(call.get("id") or ""),
                    type="function",
                    function_name=str(function.get("name") or ""),
                    arguments=parse_json_arguments(function.get("arguments")),
                )
            )
        return tool_calls
