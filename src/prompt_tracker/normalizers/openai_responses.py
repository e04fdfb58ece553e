"""Normalizer for the OpenAI Responses API.

The Responses API returns an ordered "output" list of typed items:
"message" items carry output_text parts (with url_citation annotations),
"function_call" items are user-defined tool calls, and built-in tools
report through "web_search_call", "file_search_call" and
"code_interpreter_call" items. Only function_call items become
tool_calls; built-in tool items fill their own result lists.
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


def _items_of_type(output: list[dict[str, Any]], item_type: str) -> list[dict[str, Any]]:
    return [item for item in output if item.get("type") == item_type]


def _message_parts(output: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """All content parts of all message items, in order."""
    return [
        as_dict(part)
        for item in _items_of_type(output, "message")
        for part in as_list(item.get("content"))
    ]


def detect_code_language(code: str | None) -> str | None:
    """Guess the language of a code interpreter snippet."""
    if not code:
        return None
    if "import " in code or "def " in code or "print(" in code:
        return "python"
    if "const " in code or "let " in code or "function " in code:
        return "javascript"
    if "require " in code:
        return "ruby"
    return None


class ResponsesNormalizer(BaseNormalizer):
    """Normalizes a Responses API response object."""

    api_type = ApiType.OPENAI_RESPONSES

    def build(
        self, payload: dict[str, Any], raw_response: Any
    ) -> NormalizedLlmResponse:
        raw_output = payload.get("output")
        if not isinstance(raw_output, list) and not isinstance(
            payload.get("output_text"), str
        ):
            raise self.reject("payload has no output list")
        output = [as_dict(item) for item in as_list(raw_output)]
        usage = as_dict(payload.get("usage"))

        return NormalizedLlmResponse(
            text=self._extract_text(output, payload),
            usage=build_usage(usage.get("input_tokens"), usage.get("output_tokens")),
            model=self.require_model(payload.get("model")),
            tool_calls=self._extract_tool_calls(output),
            file_search_results=self._extract_file_search_results(output),
            web_search_results=self._extract_web_search_results(output),
            code_interpreter_results=self._extract_code_interpreter_results(output),
            api_metadata=compact(
                {
                    "response_id": payload.get("id"),
                    "status": payload.get("status"),
                }
            ),
            raw_response=raw_response,
        )

    def _extract_text(self, output: list[dict[str, Any]], payload: dict[str, Any]) -> str:
        text_parts = [
            part["text"]
            for part in _message_parts(output)
            if part.get("type") == "output_text" and isinstance(part.get("text"), str)
        ]
        if text_parts:
            return "\n".join(text_parts)
        fallback = payload.get("output_text")
        return fallback if isinstance(fallback, str) else ""

    def _extract_tool_calls(self, output: list[dict[str, Any]]) -> list[ToolCall]:
        return [
            ToolCall(
                id=str(item.get("call_id") or item.get("id") or ""),
                type="function",
                function_name=str(item.get("name") or ""),
                arguments=parse_json_arguments(item.get("arguments")),
            )
            for item in _items_of_type(output, "function_call")
        ]

    def _extract_file_search_results(
        self, output: list[dict[str, Any]]
    ) -> list[dict[str, Any]]:
        results = []
        for item in _items_of_type(output, "file_search_call"):
            hits = [as_dict(hit) for hit in as_list(item.get("results"))]
            queries = as_list(item.get("queries"))
            results.append(
                {
                    "id": item.get("id"),
                    "status": item.get("status"),
                    "query": item.get("query") or (queries[0] if queries else None),
                    "files": [hit.get("filename") for hit in hits],
                    "scores": [hit.get("score") for hit in hits],
                }
            )
        return results

    def _extract_web_search_results(
        self, output: list[dict[str, Any]]
    ) -> list[dict[str, Any]]:
        citations = self._extract_url_citations(output)
        results = []
        for item in _items_of_type(output, "web_search_call"):
            action = as_dict(item.get("action"))
            queries = as_list(action.get("queries"))
            results.append(
                {
                    "id": item.get("id"),
                    "status": item.get("status"),
                    "query": action.get("query")
                    or (queries[0] if queries else None)
                    or item.get("query"),
                    "sources": [
                        {
                            "title": source.get("title"),
                            "url": source.get("url"),
                            "snippet": source.get("snippet"),
                        }
                        for source in (as_dict(s) for s in as_list(action.get("sources")))
                    ],
                    "citations": list(citations),
                }
            )
        return results

    def _extract_url_citations(self, output: list[dict[str, Any]]) -> list[dict[str, Any]]:
        return [
            {
                "title": annotation.get("title"),
                "url": annotation.get("url"),
                "start_index": annotation.get("start_index"),
                "end_index": annotation.get("end_index"),
            }
            for part in _message_parts(output)
            for annotation in (as_dict(a) for a in as_list(part.get("annotations")))
            if annotation.get("type") == "url_citation"
        ]

    def _extract_code_interpreter_results(
        self, output: list[dict[str, Any]]
    ) -> list[dict[str, Any]]:
        results = []
        for item in _items_of_type(output, "code_interpreter_call"):
            interpreter = as_dict(item.get("code_interpreter"))
            code = interpreter.get("code") or item.get("code")
            results.append(
                {
                    "id": item.get("id"),
                    "status": item.get("status"),
                    "code": code,
                    "language": interpreter.get("language") or detect_code_language(code),
                    "output": self._extract_code_output(
                        interpreter.get("output", item.get("outputs"))
                    ),
                    "files_created": as_list(interpreter.get("files_created")),
                    "error": interpreter.get("error"),
                }
            )
        return results

    def _extract_code_output(self, value: Any) -> str:
        if isinstance(value, str):
            return value
        if isinstance(value, list):
            lines = []
            for entry in (as_dict(v) for v in value):
                line = entry.get("text") or entry.get("logs")
                if line:
                    lines.append(str(line))
            return "\n".join(lines)
        return "" if value is None else str(value)
