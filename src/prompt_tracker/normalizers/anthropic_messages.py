"""Normalizer for Anthropic Messages API responses.

Anthropic returns content as a list of typed blocks:

    {
      "id": "msg_01XFDUDYJgAACzvnptvVoYEL",
      "model": "claude-sonnet-4-5",
      "content": [
        {"type": "text", "text": "Hello!"},
        {"type": "tool_use", "id": "toolu_01", "name": "get_weather", "input": {...}}
      ],
      "stop_reason": "end_turn",
      "usage": {"input_tokens": 12, "output_tokens": 8}
    }
"""

from __future__ import annotations

from typing import Any

from prompt_tracker.api_types import ApiType
from prompt_tracker.models.response import NormalizedLlmResponse, ToolCall
from prompt_tracker.normalizers.base import (
    BaseNormalizer,
    as_dict,
    build_usage,
    compact,
    parse_json_arguments,
)


class AnthropicMessagesNormalizer(BaseNormalizer):
    """Normalizes text and tool_use blocks of an Anthropic message."""

    api_type = ApiType.ANTHROPIC_MESSAGES

    def build(
        self, payload: dict[str, Any], raw_response: Any
    ) -> NormalizedLlmResponse:
        content = payload.get("content")
        if not isinstance(content, list):
            raise self.reject("payload has no content block list")
        blocks = [as_dict(block) for block in content]
        usage = as_dict(payload.get("usage"))

        text_parts = [
            block["text"]
            for block in blocks
            if block.get("type") == "text" and isinstance(block.get("text"), str)
        ]
        tool_calls = [
            ToolCall(
                id=str(block.get("id") or ""),
                type="function",
                function_name=str(block.get("name") or ""),
                # input is already a dict, parse only guards odd payloads
                arguments=parse_json_arguments(block.get("input")),
            )
            for block in blocks
            if block.get("type") == "tool_use"
        ]

        return NormalizedLlmResponse(
            text="\n".join(text_parts),
            usage=build_usage(usage.get("input_tokens"), usage.get("output_tokens")),
            model=self.require_model(payload.get("model")),
            tool_calls=tool_calls,
            api_metadata=compact(
                {
                    "message_id": payload.get("id"),
                    "stop_reason": payload.get("stop_reason"),
                }
            ),
            raw_response=raw_response,
        )
