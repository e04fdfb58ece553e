"""Tests for prompt_tracker.adapters.openai_adapter.

Uses unittest.mock to stand in for the OpenAI SDK client, so tests run
without API keys or network access.
"""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from prompt_tracker.adapters.base import AdapterRequest, Message
from prompt_tracker.adapters.openai_adapter import (
    MAX_VECTOR_STORES,
    OpenAIAssistantsAdapter,
    OpenAIChatAdapter,
    OpenAIResponsesAdapter,
)
from prompt_tracker.errors import ToolDefinitionError, TransportError
from prompt_tracker.models.config import TransportConfig
from prompt_tracker.models.response import ToolCall


def _sdk_object(data: dict) -> MagicMock:
    obj = MagicMock()
    obj.model_dump.return_value = data
    return obj


class TestOpenAIChatConvertMessages:
    """Test message format conversion to OpenAI chat format."""

    def test_system_prompt_first(self):
        adapter = OpenAIChatAdapter()
        result = adapter._convert_messages(
            [Message(role="user", content="Hello")], system="You are helpful."
        )
        assert result == [
            {"role": "system", "content": "You are helpful."},
            {"role": "user", "content": "Hello"},
        ]

    def test_assistant_with_tool_calls(self):
        adapter = OpenAIChatAdapter()
        messages = [
            Message(
                role="assistant",
                tool_calls=[
                    ToolCall(id="call_123", function_name="file_read", arguments={"path": "/tmp/a"})
                ],
            )
        ]
        msg = adapter._convert_messages(messages)[0]
        assert msg["content"] is None
        tc = msg["tool_calls"][0]
        assert tc["id"] == "call_123"
        assert tc["type"] == "function"
        assert tc["function"]["name"] == "file_read"
        assert json.loads(tc["function"]["arguments"]) == {"path": "/tmp/a"}

    def test_tool_result(self):
        adapter = OpenAIChatAdapter()
        result = adapter._convert_messages(
            [Message(role="tool_result", content="42", tool_call_id="call_1", tool_name="f")]
        )
        assert result == [{"role": "tool", "tool_call_id": "call_1", "content": "42"}]

    def test_convert_tools(self):
        adapter = OpenAIChatAdapter()
        tools = adapter._convert_tools(
            [{"name": "get_weather", "parameters": {"type": "object"}}, "web_search"]
        )
        assert tools == [
            {
                "type": "function",
                "function": {
                    "name": "get_weather",
                    "description": "",
                    "parameters": {"type": "object"},
                },
            }
        ]


    def test_convert_tools_accepts_chat_shape(self):
        adapter = OpenAIChatAdapter()
        tools = adapter._convert_tools(
            [{"type": "function", "function": {"name": "f", "description": "Does f"}}]
        )
        assert tools == [
            {
                "type": "function",
                "function": {"name": "f", "description": "Does f", "parameters": {}},
            }
        ]

    def test_convert_tools_expands_functions_from_tool_config(self):
        adapter = OpenAIChatAdapter()
        tools = adapter._convert_tools(
            ["functions"],
            {"functions": [{"name": "get_weather", "parameters": {"type": "object"}}]},
        )
        assert [t["function"]["name"] for t in tools] == ["get_weather"]

    def test_convert_tools_rejects_nameless_definition(self):
        adapter = OpenAIChatAdapter()
        with pytest.raises(ToolDefinitionError, match="no name"):
            adapter._convert_tools([{"type": "function", "function": {"description": "x"}}])



class TestOpenAIChatSend:
    """Test the chat completions call."""

    @pytest.mark.asyncio
    async def test_send_returns_raw_payload(self):
        payload = {"id": "chatcmpl-123", "model": "gpt-4o", "choices": []}
        mock_client = MagicMock()
        mock_client.chat.completions.create = AsyncMock(return_value=_sdk_object(payload))
        adapter = OpenAIChatAdapter()
        adapter._client = mock_client

        result = await adapter.send(
            AdapterRequest(
                model="gpt-4o",
                messages=[Message(role="user", content="Hi")],
                temperature=0.2,
                max_tokens=100,
                tools=[{"name": "f", "parameters": {}}],
                extras={"seed": 7},
            )
        )

        assert result == payload
        call_kwargs = mock_client.chat.completions.create.call_args.kwargs
        assert call_kwargs["model"] == "gpt-4o"
        assert call_kwargs["temperature"] == 0.2
        assert call_kwargs["max_tokens"] == 100
        assert call_kwargs["seed"] == 7
        assert call_kwargs["tools"][0]["function"]["name"] == "f"

    @pytest.mark.asyncio
    async def test_optional_fields_omitted(self):
        mock_client = MagicMock()
        mock_client.chat.completions.create = AsyncMock(return_value=_sdk_object({}))
        adapter = OpenAIChatAdapter()
        adapter._client = mock_client

        await adapter.send(AdapterRequest(model="gpt-4o"))

        call_kwargs = mock_client.chat.completions.create.call_args.kwargs
        assert set(call_kwargs) == {"model", "messages"}

    @pytest.mark.asyncio
    async def test_sdk_error_becomes_transport_error(self):
        error = Exception("invalid api key")
        error.status_code = 401  # type: ignore[attr-defined]
        mock_client = MagicMock()
        mock_client.chat.completions.create = AsyncMock(side_effect=error)
        adapter = OpenAIChatAdapter(transport=TransportConfig(max_retries=0))
        adapter._client = mock_client

        with pytest.raises(TransportError) as exc_info:
            await adapter.send(
                AdapterRequest(
                    model="gpt-4o",
                    messages=[Message(role="user", content="a"), Message(role="user", content="b")],
                    tools=[{"name": "secret_tool", "parameters": {"x": 1}}],
                )
            )

        summary = exc_info.value.request_summary
        assert exc_info.value.provider == "openai"
        assert exc_info.value.api == "chat_completions"
        assert exc_info.value.status_code == 401
        assert summary["messages"] == "<2 messages>"
        assert summary["tools"] == ["secret_tool"]

    def test_lazy_client_init(self):
        assert OpenAIChatAdapter()._client is None


class TestOpenAIResponsesFormatTools:
    """Test Responses API tool expansion."""

    def test_named_builtins(self):
        adapter = OpenAIResponsesAdapter()
        tools = adapter._format_tools(
            ["web_search", "code_interpreter", "file_search"],
            {"file_search": {"vector_store_ids": ["vs_1", "vs_2", "vs_3"]}},
        )
        assert tools[0] == {"type": "web_search_preview"}
        assert tools[1] == {"type": "code_interpreter", "container": {"type": "auto"}}
        assert tools[2]["type"] == "file_search"
        assert len(tools[2]["vector_store_ids"]) == MAX_VECTOR_STORES

    def test_file_search_without_stores(self):
        assert OpenAIResponsesAdapter()._format_tools(["file_search"], {}) == [
            {"type": "file_search"}
        ]

    def test_functions_from_tool_config(self):
        adapter = OpenAIResponsesAdapter()
        tools = adapter._format_tools(
            ["functions"],
            {
                "functions": [
                    {"name": "get_weather", "parameters": {"type": "object"}, "strict": True},
                    {"name": "get_time"},
                ]
            },
        )
        assert tools[0] == {
            "type": "function",
            "name": "get_weather",
            "description": "",
            "parameters": {"type": "object"},
            "strict": True,
        }
        assert "strict" not in tools[1]

    def test_dicts_pass_through(self):
        tool = {"type": "function", "name": "f", "parameters": {}}
        assert OpenAIResponsesAdapter()._format_tools([tool], {}) == [tool]


    def test_chat_shaped_function_is_flattened(self):
        tool = {"type": "function", "function": {"name": "f", "parameters": {"type": "object"}}}
        assert OpenAIResponsesAdapter()._format_tools([tool], {}) == [
            {
                "type": "function",
                "name": "f",
                "description": "",
                "parameters": {"type": "object"},
            }
        ]

    def test_nameless_tool_config_function_rejected(self):
        with pytest.raises(ToolDefinitionError):
            OpenAIResponsesAdapter()._format_tools(["functions"], {"functions": [{}]})



class TestOpenAIResponsesSend:
    """Test the Responses API call."""

    def _adapter(self, payload):
        mock_client = MagicMock()
        mock_client.responses.create = AsyncMock(return_value=_sdk_object(payload))
        adapter = OpenAIResponsesAdapter()
        adapter._client = mock_client
        return adapter, mock_client

    @pytest.mark.asyncio
    async def test_first_turn(self):
        adapter, client = self._adapter({"id": "resp_1"})

        result = await adapter.send(
            AdapterRequest(
                model="gpt-4o",
                messages=[Message(role="user", content="Weather in Berlin?")],
                system="Be brief.",
                tools=["web_search"],
                max_tokens=200,
            )
        )

        assert result == {"id": "resp_1"}
        kwargs = client.responses.create.call_args.kwargs
        assert kwargs["input"] == "Weather in Berlin?"
        assert kwargs["instructions"] == "Be brief."
        assert kwargs["tools"] == [{"type": "web_search_preview"}]
        assert kwargs["max_output_tokens"] == 200
        assert "previous_response_id" not in kwargs

    @pytest.mark.asyncio
    async def test_continuation(self):
        adapter, client = self._adapter({"id": "resp_2"})
        items = [{"type": "function_call_output", "call_id": "c1", "output": "{}"}]

        await adapter.send(
            AdapterRequest(model="gpt-4o", input_items=items, previous_response_id="resp_1")
        )

        kwargs = client.responses.create.call_args.kwargs
        assert kwargs["input"] == items
        assert kwargs["previous_response_id"] == "resp_1"
        assert "instructions" not in kwargs


class TestOpenAIAssistantsSend:
    """Test thread and run orchestration for the Assistants API."""

    def _client(self, run_data, messages_data=None, steps_data=None):
        client = MagicMock()
        threads = client.beta.threads
        threads.create = AsyncMock(return_value=MagicMock(id="thread_new"))
        threads.messages.create = AsyncMock(return_value=_sdk_object({}))
        threads.runs.create_and_poll = AsyncMock(return_value=_sdk_object(run_data))
        threads.runs.submit_tool_outputs_and_poll = AsyncMock(return_value=_sdk_object(run_data))
        threads.runs.steps.list = AsyncMock(
            return_value=_sdk_object(steps_data or {"data": []})
        )
        threads.messages.list = AsyncMock(
            return_value=_sdk_object(messages_data or {"data": []})
        )
        return client

    @pytest.mark.asyncio
    async def test_requires_assistant_id(self):
        with pytest.raises(ValueError, match="assistant_id"):
            await OpenAIAssistantsAdapter().send(AdapterRequest(model="gpt-4o"))

    @pytest.mark.asyncio
    async def test_new_thread_completed_run(self):
        run = {
            "id": "run_1",
            "status": "completed",
            "model": "gpt-4o",
            "usage": {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
        }
        messages = {
            "data": [
                {
                    "role": "assistant",
                    "content": [
                        {"type": "text", "text": {"value": "Hello!", "annotations": [{"type": "file_citation"}]}}
                    ],
                }
            ]
        }
        client = self._client(run, messages_data=messages)
        adapter = OpenAIAssistantsAdapter()
        adapter._client = client

        payload = await adapter.send(
            AdapterRequest(
                model="gpt-4o",
                assistant_id="asst_abc",
                messages=[Message(role="user", content="Hi")],
            )
        )

        threads = client.beta.threads
        threads.create.assert_awaited_once()
        assert threads.messages.create.call_args.kwargs == {
            "thread_id": "thread_new",
            "role": "user",
            "content": "Hi",
        }
        assert threads.runs.create_and_poll.call_args.kwargs["assistant_id"] == "asst_abc"
        assert payload["content"] == "Hello!"
        assert payload["annotations"] == [{"type": "file_citation"}]
        assert payload["thread_id"] == "thread_new"
        assert payload["run_id"] == "run_1"
        assert payload["usage"]["total_tokens"] == 15
        assert payload["run_steps"] == {"data": []}

    @pytest.mark.asyncio
    async def test_submit_tool_outputs(self):
        run = {"id": "run_1", "status": "completed", "model": "gpt-4o"}
        client = self._client(run)
        adapter = OpenAIAssistantsAdapter()
        adapter._client = client
        outputs = [{"tool_call_id": "call_1", "output": "42"}]

        payload = await adapter.send(
            AdapterRequest(
                model="gpt-4o",
                assistant_id="asst_abc",
                thread_id="thread_1",
                run_id="run_1",
                tool_outputs=outputs,
            )
        )

        threads = client.beta.threads
        threads.create.assert_not_called()
        threads.runs.create_and_poll.assert_not_called()
        assert threads.runs.submit_tool_outputs_and_poll.call_args.kwargs == {
            "thread_id": "thread_1",
            "run_id": "run_1",
            "tool_outputs": outputs,
        }
        assert payload["thread_id"] == "thread_1"

    @pytest.mark.asyncio
    async def test_requires_action_skips_messages(self):
        run = {
            "id": "run_2",
            "status": "requires_action",
            "required_action": {"type": "submit_tool_outputs"},
        }
        client = self._client(run)
        adapter = OpenAIAssistantsAdapter()
        adapter._client = client

        payload = await adapter.send(
            AdapterRequest(
                model="gpt-4o",
                assistant_id="asst_abc",
                thread_id="thread_1",
                messages=[Message(role="user", content="Find it")],
            )
        )

        client.beta.threads.messages.list.assert_not_called()
        assert payload["content"] is None
        assert payload["required_action"] == {"type": "submit_tool_outputs"}
