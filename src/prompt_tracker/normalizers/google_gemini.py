"""Normalizer for Google Gemini generateContent responses (REST JSON)."""

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


class GeminiNormalizer(BaseNormalizer):
    """Normalizes the first candidate of a Gemini response."""

    api_type = ApiType.GOOGLE_GEMINI

    def build(
        self, payload: dict[str, Any], raw_response: Any
    ) -> NormalizedLlmResponse:
        candidates = as_list(payload.get("candidates"))
        if not candidates:
            raise self.reject("payload has no candidates")
        candidate = as_dict(candidates[0])
        parts = [as_dict(part) for part in as_list(as_dict(candidate.get("content")).get("parts"))]
        usage = as_dict(payload.get("usageMetadata"))

        text_parts = [part["text"] for part in parts if isinstance(part.get("text"), str)]
        tool_calls: list[ToolCall] = []
        for index, part in enumerate(parts):
            call = part.get("functionCall")
            if not isinstance(call, dict):
                continue
            name = str(call.get("name") or "")
            tool_calls.append(
                ToolCall(
                    # Gemini only sometimes assigns ids to function calls
                    id=str(call.get("id") or f"{name}_{index}"),
                    type="function",
                    function_name=name,
                    arguments=parse_json_arguments(call.get("args")),
                )
            )

        return NormalizedLlmResponse(
            text="\n".join(text_parts),
            usage=build_usage(
                usage.get("promptTokenCount"),
                usage.get("candidatesTokenCount"),
                usage.get("totalTokenCount"),
            ),
            model=self.require_model(payload.get("modelVersion"), payload.get("model")),
            tool_calls=tool_calls,
            api_metadata=compact(
                {
                    "message_id": payload.get("responseId"),
                    "stop_reason": candidate.get("finishReason"),
                }
            ),
            raw_response=raw_response,
        )
