"""Anthropic adapter for the Messages API.

Converts unified Message/tool definitions to Anthropic messages format
and returns the raw message payload.
"""

from __future__ import annotations

from typing import Any

from prompt_tracker.adapters.base import (
    AdapterRequest,
    BaseAdapter,
    Message,
    function_definitions,
)
from prompt_tracker.api_types import ApiType

DEFAULT_MAX_TOKENS = 4096


class AnthropicMessagesAdapter(BaseAdapter):
    """Adapter for the Anthropic Messages API.

    Uses a lazily initialized AsyncAnthropic client that reads
    ANTHROPIC_API_KEY from the environment.
    """

    provider = "anthropic"
    api = "messages"
    api_type = ApiType.ANTHROPIC_MESSAGES

    def _get_client(self) -> Any:
        """Lazily initialize and return the AsyncAnthropic client."""
        if self._client is None:
            from anthropic import AsyncAnthropic

            kwargs: dict[str, Any] = {"max_retries": 0}
            if self._transport.request_timeout is not None:
                kwargs["timeout"] = self._transport.request_timeout
            self._client = AsyncAnthropic(**kwargs)
        return self._client

    def _extract_system(
        self, messages: list[Message], system: str | None
    ) -> tuple[str | None, list[Message]]:
        """Split system messages out of the history.

        Anthropic uses a separate 'system' parameter instead of a system
        message in the messages array. An explicit request.system wins.
        """
        system_prompt = system
        remaining: list[Message] = []
        for msg in messages:
            if msg.role == "system":
                system_prompt = system_prompt or msg.content
            else:
                remaining.append(msg)
        return system_prompt, remaining

    def _convert_message(self, msg: Message) -> dict[str, Any]:
        """Convert a single unified (non-system) Message to Anthropic format."""
        if msg.role == "assistant":
            content: list[dict[str, Any]] = []
            if msg.content:
                content.append({"type": "text", "text": msg.content})
            for tc in msg.tool_calls or []:
                content.append(
                    {
                        "type": "tool_use",
                        "id": tc.id,
                        "name": tc.function_name,
                        "input": tc.arguments,
                    }
                )
            return {"role": "assistant", "content": content}
        if msg.role == "tool_result":
            # Tool results are sent as user messages with tool_result content blocks
            return {
                "role": "user",
                "content": [
                    {
                        "type": "tool_result",
                        "tool_use_id": msg.tool_call_id,
                        "content": msg.content,
                    }
                ],
            }
        return {"role": "user", "content": msg.content}

    def _convert_messages(self, messages: list[Message]) -> list[dict[str, Any]]:
        """Convert unified Messages, merging consecutive tool results.

        Anthropic requires all tool_result blocks answering one assistant
        turn to arrive in a single user message.
        """
        result: list[dict[str, Any]] = []
        for msg in messages:
            converted = self._convert_message(msg)
            if (
                msg.role == "tool_result"
                and result
                and result[-1]["role"] == "user"
                and isinstance(result[-1]["content"], list)
                and all(b.get("type") == "tool_result" for b in result[-1]["content"])
            ):
                result[-1]["content"].extend(converted["content"])
            else:
                result.append(converted)
        return result

    def _convert_tools(
        self, tools: list[Any], tool_config: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """Convert function definitions (Anthropic uses 'input_schema')."""
        return [
            {
                "name": definition["name"],
                "description": definition["description"],
                "input_schema": definition["parameters"],
            }
            for definition in function_definitions(tools, tool_config)
        ]

    async def send(self, request: AdapterRequest) -> dict[str, Any]:
        client = self._get_client()

        system_prompt, remaining = self._extract_system(request.messages, request.system)

        kwargs: dict[str, Any] = {
            "model": request.model,
            "messages": self._convert_messages(remaining),
            "max_tokens": request.max_tokens
            if request.max_tokens is not None
            else DEFAULT_MAX_TOKENS,
        }
        if system_prompt is not None:
            kwargs["system"] = system_prompt
        if request.tools:
            kwargs["tools"] = self._convert_tools(request.tools, request.tool_config)
        if request.temperature is not None:
            kwargs["temperature"] = request.temperature
        kwargs.update(request.extras)

        response = await self._call(lambda: client.messages.create(**kwargs), kwargs)
        return self.dump(response)
