"""OpenAI adapters: Chat Completions, Responses and Assistants.

All three share one lazily initialized AsyncOpenAI client per adapter
instance, which reads OPENAI_API_KEY from the environment.
"""

from __future__ import annotations

import json
from typing import Any

from prompt_tracker.adapters.base import (
    AdapterRequest,
    BaseAdapter,
    Message,
    function_definition,
    function_definitions,
)
from prompt_tracker.api_types import ApiType

# Maximum vector stores the file_search tool accepts per request.
MAX_VECTOR_STORES = 2


class _OpenAIAdapter(BaseAdapter):
    """Shared client handling for the OpenAI adapters."""

    provider = "openai"

    def _get_client(self) -> Any:
        """Lazily initialize and return the AsyncOpenAI client."""
        if self._client is None:
            from openai import AsyncOpenAI

            kwargs: dict[str, Any] = {"max_retries": 0}
            if self._transport.request_timeout is not None:
                kwargs["timeout"] = self._transport.request_timeout
            self._client = AsyncOpenAI(**kwargs)
        return self._client


class OpenAIChatAdapter(_OpenAIAdapter):
    """Adapter for the OpenAI Chat Completions API."""

    api = "chat_completions"
    api_type = ApiType.OPENAI_CHAT_COMPLETIONS

    def _convert_messages(
        self, messages: list[Message], system: str | None = None
    ) -> list[dict[str, Any]]:
        """Convert unified Messages to OpenAI chat format."""
        result: list[dict[str, Any]] = []
        if system:
            result.append({"role": "system", "content": system})
        for msg in messages:
            if msg.role in ("system", "user"):
                result.append({"role": msg.role, "content": msg.content})
            elif msg.role == "assistant":
                entry: dict[str, Any] = {"role": "assistant", "content": msg.content}
                if msg.tool_calls:
                    entry["tool_calls"] = [
                        {
                            "id": tc.id,
                            "type": "function",
                            "function": {
                                "name": tc.function_name,
                                "arguments": json.dumps(tc.arguments),
                            },
                        }
                        for tc in msg.tool_calls
                    ]
                result.append(entry)
            elif msg.role == "tool_result":
                result.append(
                    {
                        "role": "tool",
                        "tool_call_id": msg.tool_call_id,
                        "content": msg.content,
                    }
                )
        return result

    def _convert_tools(
        self, tools: list[Any], tool_config: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """Convert function definitions to OpenAI function tools."""
        return [
            {"type": "function", "function": definition}
            for definition in function_definitions(tools, tool_config)
        ]

    async def send(self, request: AdapterRequest) -> dict[str, Any]:
        client = self._get_client()

        kwargs: dict[str, Any] = {
            "model": request.model,
            "messages": self._convert_messages(request.messages, request.system),
        }
        if request.tools:
            kwargs["tools"] = self._convert_tools(request.tools, request.tool_config)
        if request.temperature is not None:
            kwargs["temperature"] = request.temperature
        if request.max_tokens is not None:
            kwargs["max_tokens"] = request.max_tokens
        kwargs.update(request.extras)

        response = await self._call(
            lambda: client.chat.completions.create(**kwargs), kwargs
        )
        return self.dump(response)


class OpenAIResponsesAdapter(_OpenAIAdapter):
    """Adapter for the stateful OpenAI Responses API."""

    api = "responses"
    api_type = ApiType.OPENAI_RESPONSES

    def _format_tools(
        self, tools: list[Any], tool_config: dict[str, Any]
    ) -> list[dict[str, Any]]:
        """Expand tool names into Responses API tool definitions.

        Names: web_search, file_search (vector stores from tool_config),
        code_interpreter, and functions (definitions from
        tool_config["functions"]). Chat Completions style function dicts are
        flattened; other dicts pass through unchanged.
        """
        formatted: list[dict[str, Any]] = []
        for tool in tools:
            if isinstance(tool, dict) and isinstance(tool.get("function"), dict):
                formatted.append({"type": "function", **function_definition(tool)})
            elif isinstance(tool, dict):
                formatted.append(tool)
            elif tool in ("web_search", "web_search_preview"):
                formatted.append({"type": "web_search_preview"})
            elif tool == "file_search":
                store_ids = list(
                    tool_config.get("file_search", {}).get("vector_store_ids", [])
                )[:MAX_VECTOR_STORES]
                entry: dict[str, Any] = {"type": "file_search"}
                if store_ids:
                    entry["vector_store_ids"] = store_ids
                formatted.append(entry)
            elif tool == "code_interpreter":
                formatted.append(
                    {"type": "code_interpreter", "container": {"type": "auto"}}
                )
            elif tool == "functions":
                for func in tool_config.get("functions") or []:
                    formatted.append({"type": "function", **function_definition(func)})
            else:
                formatted.append({"type": str(tool)})
        return formatted

    async def send(self, request: AdapterRequest) -> dict[str, Any]:
        client = self._get_client()

        kwargs: dict[str, Any] = {"model": request.model}
        if request.input_items is not None:
            kwargs["input"] = request.input_items
        else:
            kwargs["input"] = request.last_user_content or ""
        if request.system:
            kwargs["instructions"] = request.system
        if request.previous_response_id:
            kwargs["previous_response_id"] = request.previous_response_id
        if request.tools:
            kwargs["tools"] = self._format_tools(request.tools, request.tool_config)
        if request.temperature is not None:
            kwargs["temperature"] = request.temperature
        if request.max_tokens is not None:
            kwargs["max_output_tokens"] = request.max_tokens
        kwargs.update(request.extras)

        response = await self._call(lambda: client.responses.create(**kwargs), kwargs)
        return self.dump(response)


class OpenAIAssistantsAdapter(_OpenAIAdapter):
    """Adapter for the OpenAI Assistants API (threads and runs).

    Each send() either posts the last user message to the thread and
    runs the assistant, or, when tool_outputs are given, submits them to
    the paused run. It then assembles the payload documented in
    prompt_tracker.normalizers.openai_assistants.
    """

    api = "assistants"
    api_type = ApiType.OPENAI_ASSISTANTS

    async def send(self, request: AdapterRequest) -> dict[str, Any]:
        if not request.assistant_id:
            raise ValueError("Assistants requests require an assistant_id")
        client = self._get_client()
        threads = client.beta.threads

        thread_id = request.thread_id
        if request.tool_outputs is not None and request.run_id and thread_id:
            kwargs: dict[str, Any] = {
                "thread_id": thread_id,
                "run_id": request.run_id,
                "tool_outputs": request.tool_outputs,
            }
            run = await self._call(
                lambda: threads.runs.submit_tool_outputs_and_poll(**kwargs), kwargs
            )
        else:
            if thread_id is None:
                thread = await self._call(lambda: threads.create(), {})
                thread_id = thread.id
            message_kwargs = {
                "thread_id": thread_id,
                "role": "user",
                "content": request.last_user_content or "",
            }
            await self._call(
                lambda: threads.messages.create(**message_kwargs), message_kwargs
            )
            run_kwargs: dict[str, Any] = {
                "thread_id": thread_id,
                "assistant_id": request.assistant_id,
            }
            if request.system:
                run_kwargs["instructions"] = request.system
            if request.temperature is not None:
                run_kwargs["temperature"] = request.temperature
            run_kwargs.update(request.extras)
            run = await self._call(
                lambda: threads.runs.create_and_poll(**run_kwargs), run_kwargs
            )

        return await self._assemble(thread_id, run, request.assistant_id)

    async def _assemble(self, thread_id: str, run: Any, assistant_id: str) -> dict[str, Any]:
        threads = self._get_client().beta.threads
        run_data = self.dump(run)

        steps_kwargs = {"thread_id": thread_id, "run_id": run_data["id"]}
        steps = await self._call(lambda: threads.runs.steps.list(**steps_kwargs), steps_kwargs)

        content: str | None = None
        annotations: list[Any] = []
        if run_data.get("status") == "completed":
            list_kwargs = {
                "thread_id": thread_id,
                "run_id": run_data["id"],
                "order": "desc",
                "limit": 1,
            }
            messages = await self._call(
                lambda: threads.messages.list(**list_kwargs), list_kwargs
            )
            for message in self.dump(messages).get("data", []):
                if message.get("role") != "assistant":
                    continue
                texts = [
                    part["text"]
                    for part in message.get("content", [])
                    if part.get("type") == "text"
                ]
                content = "\n".join(t.get("value", "") for t in texts)
                annotations = [a for t in texts for a in t.get("annotations", [])]
                break

        return {
            "content": content,
            "annotations": annotations,
            "usage": run_data.get("usage") or {},
            "assistant_id": assistant_id,
            "model": run_data.get("model"),
            "thread_id": thread_id,
            "run_id": run_data["id"],
            "status": run_data.get("status"),
            "required_action": run_data.get("required_action"),
            "run_steps": self.dump(steps),
        }
