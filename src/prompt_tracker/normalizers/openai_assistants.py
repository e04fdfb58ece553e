"""Normalizer for the OpenAI Assistants API (threads and runs).

An Assistants turn is not a single response object, so the adapter
assembles one payload from the run and its artifacts:

    {
      "content": "Hello!",            # last assistant message text, or None
      "annotations": [...],           # annotations on that message
      "usage": {...},                 # run usage
      "assistant_id": "asst_abc",
      "model": "gpt-4o",              # run model, optional
      "thread_id": "thread_abc",
      "run_id": "run_xyz",
      "run_steps": {"data": [...]},   # or a bare list of step records
      "required_action": {...}        # present while the run awaits tool outputs
    }

A run that produced no assistant message and requests no tool outputs
is treated as a structural failure rather than an empty answer.
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


class AssistantsNormalizer(BaseNormalizer):
    """Normalizes an assembled Assistants API run payload."""

    api_type = ApiType.OPENAI_ASSISTANTS

    def build(
        self, payload: dict[str, Any], raw_response: Any
    ) -> NormalizedLlmResponse:
        steps = self._run_steps(payload.get("run_steps"))
        tool_calls = self._extract_tool_calls(steps, as_dict(payload.get("required_action")))
        content = payload.get("content")
        if content is None and not tool_calls:
            raise self.reject("run produced no assistant message and no tool calls")
        usage = as_dict(payload.get("usage"))

        return NormalizedLlmResponse(
            text=content if isinstance(content, str) else "",
            usage=build_usage(
                usage.get("prompt_tokens"),
                usage.get("completion_tokens"),
                usage.get("total_tokens"),
            ),
            model=self.require_model(payload.get("model"), payload.get("assistant_id")),
            tool_calls=tool_calls,
            file_search_results=self._extract_file_search_results(steps),
            code_interpreter_results=self._extract_code_interpreter_results(steps),
            api_metadata=compact(
                {
                    "thread_id": payload.get("thread_id"),
                    "run_id": payload.get("run_id"),
                    "assistant_id": payload.get("assistant_id"),
                    "annotations": as_list(payload.get("annotations")),
                    "run_steps": steps,
                }
            ),
            raw_response=raw_response,
        )

    def _run_steps(self, value: Any) -> list[dict[str, Any]]:
        if isinstance(value, dict):
            value = value.get("data")
        return [as_dict(step) for step in as_list(value)]

    def _step_tool_calls(self, steps: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Tool call records of every tool_calls-type run step, in order."""
        return [
            as_dict(call)
            for step in steps
            if step.get("type") == "tool_calls"
            for call in as_list(as_dict(step.get("step_details")).get("tool_calls"))
        ]

    def _extract_tool_calls(
        self, steps: list[dict[str, Any]], required_action: dict[str, Any]
    ) -> list[ToolCall]:
        pending = as_list(as_dict(required_action.get("submit_tool_outputs")).get("tool_calls"))
        tool_calls: list[ToolCall] = []
        seen: set[str] = set()
        for call in [*self._step_tool_calls(steps), *(as_dict(p) for p in pending)]:
            if call.get("type") != "function":
                continue
            call_id = str(call.get("id") or "")
            # A pending call also shows up in the in-progress run step.
            if call_id and call_id in seen:
                continue
            seen.add(call_id)
            function = as_dict(call.get("function"))
            tool_calls.append(
                ToolCall(
                    id=call_id,
                    type="function",
                    function_name=str(function.get("name") or ""),
                    arguments=parse_json_arguments(function.get("arguments")),
                )
            )
        return tool_calls

    def _extract_file_search_results(
        self, steps: list[dict[str, Any]]
    ) -> list[dict[str, Any]]:
        return [
            {
                "file_id": result.get("file_id"),
                "file_name": result.get("file_name"),
                "score": result.get("score"),
                "content": result.get("content"),
            }
            for call in self._step_tool_calls(steps)
            if call.get("type") == "file_search"
            for result in (
                as_dict(r) for r in as_list(as_dict(call.get("file_search")).get("results"))
            )
        ]

    def _extract_code_interpreter_results(
        self, steps: list[dict[str, Any]]
    ) -> list[dict[str, Any]]:
        results = []
        for call in self._step_tool_calls(steps):
            if call.get("type") != "code_interpreter":
                continue
            interpreter = as_dict(call.get("code_interpreter"))
            outputs = [as_dict(o) for o in as_list(interpreter.get("outputs"))]
            results.append(
                {
                    "id": call.get("id"),
                    "code": interpreter.get("input"),
                    "output": "\n".join(
                        str(o["logs"]) for o in outputs if o.get("logs")
                    ),
                    "files_created": [
                        as_dict(o.get("image")).get("file_id")
                        for o in outputs
                        if o.get("type") == "image"
                    ],
                }
            )
        return results
