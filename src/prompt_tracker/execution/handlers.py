"""Conversation handlers: run a scripted multi-turn conversation.

Each handler drives one API family. The base class owns the turn loop
(state threading, token aggregation, tool result extraction); the
subclasses only know how to make one model call for their API and how
to feed function outputs back to it.

Without use_real_llm every handler answers with deterministic mock
responses and never touches a provider SDK.
"""

from __future__ import annotations

import logging
import secrets
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from types import MappingProxyType
from typing import Any, ClassVar

from pydantic import BaseModel, Field

from prompt_tracker.adapters.base import AdapterRequest, BaseAdapter, Message
from prompt_tracker.adapters.registry import get_adapter
from prompt_tracker.api_types import ApiType
from prompt_tracker.errors import DispatchError
from prompt_tracker.execution.aggregation import TokenAggregator, ToolResultExtractor
from prompt_tracker.execution.conversation_state import ConversationStateBuilder
from prompt_tracker.execution.function_calls import (
    Continuation,
    FunctionCallHandler,
    FunctionCallResult,
    FunctionExecutor,
)
from prompt_tracker.models.config import TrackerConfig
from prompt_tracker.models.conversation import ConversationState
from prompt_tracker.models.response import NormalizedLlmResponse, TokenUsage, ToolCall
from prompt_tracker.normalizers.registry import NormalizerRegistry, default_registry

logger = logging.getLogger(__name__)

MOCK_USAGE = {"prompt_tokens": 10, "completion_tokens": 20, "total_tokens": 30}


class ConversationParams(BaseModel):
    """Inputs for one scripted conversation.

    Turn 1 sends first_user_message; turn N sends follow_up_messages[N - 2].
    The conversation ends early when the script runs out of messages.
    """

    model_config = {"extra": "forbid"}

    first_user_message: str
    follow_up_messages: list[str] = Field(default_factory=list)
    max_turns: int = Field(default=1, ge=1)
    system_prompt: str | None = None
    mock_function_outputs: dict[str, Any] | None = None

    def user_message_for(self, turn: int) -> str | None:
        if turn == 1:
            return self.first_user_message
        index = turn - 2
        if index < len(self.follow_up_messages):
            return self.follow_up_messages[index]
        return None


class ConversationResult(BaseModel):
    """Everything a conversation run produced.

    status is "completed", or "incomplete" when some turn stopped at the
    function call iteration limit with tool calls still pending.
    """

    provider: str
    api: str
    model: str
    messages: list[dict[str, Any]] = Field(default_factory=list)
    tokens: TokenUsage | None = None
    tool_calls: list[ToolCall] = Field(default_factory=list)
    unresolved_tool_calls: list[ToolCall] = Field(default_factory=list)
    web_search_results: list[dict[str, Any]] = Field(default_factory=list)
    code_interpreter_results: list[dict[str, Any]] = Field(default_factory=list)
    file_search_results: list[dict[str, Any]] = Field(default_factory=list)
    previous_response_id: str | None = None
    thread_id: str | None = None
    conversation_state: ConversationState = Field(default_factory=ConversationState)
    response_time_ms: int = 0
    total_turns: int = 0
    status: str = "completed"


class ConversationTestHandler(ABC):
    """Base class for conversation handlers.

    model_config, use_real_llm and testable are fixed at construction and
    exposed read-only. Collaborators (adapter, normalizer registry,
    tracker config, real tool functions) are injected; defaults are
    built on first use.

    Args:
        model_config: Mapping with at least provider and api; model,
            temperature, max_tokens, tools, tool_config, assistant_id and
            adapter (dotted path) are read when present.
        use_real_llm: Call the provider instead of returning mocks.
        testable: Opaque context object, passed through unchanged.
        adapter: Adapter to use for real calls.
        registry: Normalizer registry for raw payloads.
        config: Tracker configuration.
        functions: Real tool implementations, keyed by function name.
    """

    api_type: ClassVar[ApiType] = ApiType.OPENAI_CHAT_COMPLETIONS

    def __init__(
        self,
        model_config: Mapping[str, Any],
        use_real_llm: bool = False,
        testable: Any = None,
        *,
        adapter: BaseAdapter | None = None,
        registry: NormalizerRegistry | None = None,
        config: TrackerConfig | None = None,
        functions: Mapping[str, Callable[..., Any]] | None = None,
    ) -> None:
        self._model_config = MappingProxyType(dict(model_config))
        self._use_real_llm = bool(use_real_llm)
        self._testable = testable
        self._adapter = adapter
        self._registry = registry
        self._config = config or TrackerConfig()
        self._functions = dict(functions or {})
        self._state_builder = ConversationStateBuilder()
        self._token_aggregator = TokenAggregator()
        self._mock_counter = 0

    @property
    def model_config(self) -> Mapping[str, Any]:
        return self._model_config

    @property
    def use_real_llm(self) -> bool:
        return self._use_real_llm

    @property
    def testable(self) -> Any:
        return self._testable

    @property
    def provider(self) -> str:
        return str(self._model_config["provider"])

    @property
    def api(self) -> str:
        return str(self._model_config["api"])

    @property
    def model(self) -> str:
        return str(self._model_config.get("model") or self._config.default_model)

    @property
    def temperature(self) -> float | None:
        return self._model_config.get("temperature", self._config.default_temperature)

    @property
    def tools(self) -> list[Any]:
        return list(self._model_config.get("tools") or [])

    @property
    def tool_config(self) -> dict[str, Any]:
        return dict(self._model_config.get("tool_config") or {})

    @property
    def resolved_api_type(self) -> ApiType | None:
        """The ApiType of the configured pair, or None for unknown pairs."""
        return ApiType.from_config(self.provider, self.api)

    async def execute(
        self, params: ConversationParams | Mapping[str, Any]
    ) -> ConversationResult:
        """Run the conversation described by params.

        Raises:
            TransportError: If a real provider call fails.
            NormalizationError: If a provider payload is structurally invalid.
        """
        if not isinstance(params, ConversationParams):
            params = ConversationParams.model_validate(dict(params))
        self._reset()

        executor = FunctionExecutor(
            mock_function_outputs=params.mock_function_outputs,
            functions=self._functions,
            use_real_llm=self.use_real_llm,
            timeout_seconds=self._config.function_calls.tool_timeout_seconds,
        )

        state = ConversationState()
        messages: list[dict[str, Any]] = []
        all_responses: list[NormalizedLlmResponse] = []
        all_tool_calls: list[ToolCall] = []
        unresolved: list[ToolCall] = []
        thread_id: str | None = None
        start = time.perf_counter()

        for turn in range(1, params.max_turns + 1):
            user_message = params.user_message_for(turn)
            if user_message is None:
                break

            logger.debug(
                "[%s] turn %d/%d (%s/%s)",
                type(self).__name__,
                turn,
                params.max_turns,
                self.provider,
                self.api,
            )
            messages.append({"role": "user", "content": user_message, "turn": turn})

            result = await self._run_turn(user_message, turn, params, executor)
            final = result.final_response

            state = self._state_builder.advance(state, user_message, final)
            thread_id = final.thread_id or thread_id
            usage = self._token_aggregator.aggregate_from_responses(result.all_responses)

            messages.append(
                {
                    "role": "assistant",
                    "content": final.text,
                    "turn": turn,
                    "usage": usage.model_dump(),
                    "tool_calls": [tc.model_dump() for tc in result.all_tool_calls],
                    "api_metadata": dict(final.api_metadata),
                }
            )
            all_responses.extend(result.all_responses)
            all_tool_calls.extend(result.all_tool_calls)
            unresolved.extend(result.unresolved_tool_calls)

        response_time_ms = int((time.perf_counter() - start) * 1000)

        return ConversationResult(
            provider=self.provider,
            api=self.api,
            model=self.model,
            messages=messages,
            tokens=self._token_aggregator.aggregate_from_messages(messages),
            tool_calls=all_tool_calls,
            unresolved_tool_calls=unresolved,
            previous_response_id=state.previous_response_id,
            thread_id=thread_id,
            conversation_state=state,
            response_time_ms=response_time_ms,
            total_turns=state.turn_count,
            status="incomplete" if unresolved else "completed",
            **ToolResultExtractor(all_responses).all_results(),
        )

    @abstractmethod
    async def _run_turn(
        self,
        user_message: str,
        turn: int,
        params: ConversationParams,
        executor: FunctionExecutor,
    ) -> FunctionCallResult:
        """Send one user message and resolve any tool calls it triggers."""
        ...

    def _reset(self) -> None:
        """Clear per-conversation state before a run."""
        self._mock_counter = 0

    def _function_call_handler(
        self, continuation: Continuation, executor: FunctionExecutor
    ) -> FunctionCallHandler:
        return FunctionCallHandler(
            continuation,
            executor=executor,
            max_iterations=self._config.function_calls.max_iterations,
        )

    def _get_adapter(self) -> BaseAdapter:
        if self._adapter is None:
            name = self._model_config.get("adapter") or self.resolved_api_type or self.api_type
            self._adapter = get_adapter(
                name,
                transport=self._config.transport,
                redaction=self._config.redaction,
            )
        return self._adapter

    def _get_registry(self) -> NormalizerRegistry:
        if self._registry is None:
            self._registry = default_registry()
        return self._registry

    async def _call_model(self, request: AdapterRequest) -> NormalizedLlmResponse:
        raw = await self._get_adapter().send(request)
        return self._get_registry().for_config(self.provider, self.api).normalize(raw)

    def _build_request(self, **fields: Any) -> AdapterRequest:
        return AdapterRequest(
            model=self.model,
            temperature=self.temperature,
            max_tokens=self._model_config.get("max_tokens"),
            tools=self.tools or None,
            tool_config=self.tool_config,
            **fields,
        )

    def _next_mock_number(self) -> int:
        self._mock_counter += 1
        return self._mock_counter


class ChatCompletionHandler(ConversationTestHandler):
    """Handler for chat-completion style APIs.

    Also serves Anthropic Messages, Gemini and any unknown (provider, api)
    pair: the full message history is resent on every call.
    """

    api_type = ApiType.OPENAI_CHAT_COMPLETIONS

    def _reset(self) -> None:
        super()._reset()
        self._history: list[Message] = []

    async def _run_turn(
        self,
        user_message: str,
        turn: int,
        params: ConversationParams,
        executor: FunctionExecutor,
    ) -> FunctionCallResult:
        self._history.append(Message(role="user", content=user_message))

        async def continuation(
            input_items: list[dict[str, Any]],
            previous_response_id: str | None,
            tool_calls: list[ToolCall],
        ) -> NormalizedLlmResponse:
            self._history.append(Message(role="assistant", tool_calls=list(tool_calls)))
            names = {tc.id: tc.function_name for tc in tool_calls}
            for item in input_items:
                if item.get("type") == "function_call_output":
                    self._history.append(
                        Message(
                            role="tool_result",
                            content=item["output"],
                            tool_call_id=item["call_id"],
                            tool_name=names.get(item["call_id"]),
                        )
                    )
            return await self._complete(params, turn)

        initial = await self._complete(params, turn)
        handler = self._function_call_handler(continuation, executor)
        result = await handler.process_with_function_handling(initial, turn=turn)
        self._history.append(Message(role="assistant", content=result.final_response.text))
        return result

    async def _complete(self, params: ConversationParams, turn: int) -> NormalizedLlmResponse:
        if not self.use_real_llm:
            return self._mock_response(turn)
        request = self._build_request(
            messages=list(self._history), system=params.system_prompt
        )
        return await self._call_model(request)

    def _mock_response(self, turn: int) -> NormalizedLlmResponse:
        number = self._next_mock_number()
        return NormalizedLlmResponse(
            text=f"Mock LLM response for turn {turn} ({number})",
            usage=MOCK_USAGE,
            model=self.model,
        )


class ResponseApiHandler(ConversationTestHandler):
    """Handler for the OpenAI Responses API.

    Conversation state lives server side: each call only sends the new
    input and chains from previous_response_id. The system prompt is sent
    as instructions on the first turn only.
    """

    api_type = ApiType.OPENAI_RESPONSES

    def _reset(self) -> None:
        super()._reset()
        self._previous_response_id: str | None = None

    async def _run_turn(
        self,
        user_message: str,
        turn: int,
        params: ConversationParams,
        executor: FunctionExecutor,
    ) -> FunctionCallResult:
        system = params.system_prompt if turn == 1 else None

        async def continuation(
            input_items: list[dict[str, Any]],
            previous_response_id: str | None,
            tool_calls: list[ToolCall],
        ) -> NormalizedLlmResponse:
            if not self.use_real_llm:
                return self._mock_response("Mock response after function call")
            request = self._build_request(
                input_items=input_items,
                previous_response_id=previous_response_id,
            )
            return await self._call_model(request)

        if self.use_real_llm:
            request = self._build_request(
                messages=[Message(role="user", content=user_message)],
                system=system,
                previous_response_id=self._previous_response_id,
            )
            initial = await self._call_model(request)
        else:
            initial = self._mock_response(
                f"Mock Response API response for testing ({self._next_mock_number()})"
            )

        handler = self._function_call_handler(continuation, executor)
        result = await handler.process_with_function_handling(
            initial, previous_response_id=self._previous_response_id, turn=turn
        )
        self._previous_response_id = result.final_response.response_id
        return result

    def _mock_response(self, text: str) -> NormalizedLlmResponse:
        return NormalizedLlmResponse(
            text=text,
            usage=MOCK_USAGE,
            model=self.model,
            api_metadata={"response_id": f"resp_mock_{secrets.token_hex(8)}"},
        )


class AssistantsApiHandler(ConversationTestHandler):
    """Handler for the OpenAI Assistants API.

    The assistant's instructions are configured on the assistant itself,
    so only user messages are sent. One thread is reused for every turn;
    function outputs are submitted to the run that requested them.
    """

    api_type = ApiType.OPENAI_ASSISTANTS

    @property
    def assistant_id(self) -> str | None:
        return self._model_config.get("assistant_id")

    def _reset(self) -> None:
        super()._reset()
        self._thread_id: str | None = None
        self._run_id: str | None = None
        self._mock_thread_id = f"thread_mock_{secrets.token_hex(8)}"

    async def _run_turn(
        self,
        user_message: str,
        turn: int,
        params: ConversationParams,
        executor: FunctionExecutor,
    ) -> FunctionCallResult:
        if self.use_real_llm and not self.assistant_id:
            raise DispatchError("model_config must include 'assistant_id' for the Assistants API")

        async def continuation(
            input_items: list[dict[str, Any]],
            previous_response_id: str | None,
            tool_calls: list[ToolCall],
        ) -> NormalizedLlmResponse:
            tool_outputs = [
                {"tool_call_id": item["call_id"], "output": item["output"]}
                for item in input_items
                if item.get("type") == "function_call_output"
            ]
            return await self._call(
                self._build_request(
                    assistant_id=self.assistant_id,
                    thread_id=self._thread_id,
                    run_id=self._run_id,
                    tool_outputs=tool_outputs,
                )
            )

        initial = await self._call(
            self._build_request(
                messages=[Message(role="user", content=user_message)],
                assistant_id=self.assistant_id,
                thread_id=self._thread_id,
            )
        )
        handler = self._function_call_handler(continuation, executor)
        return await handler.process_with_function_handling(initial, turn=turn)

    async def _call(self, request: AdapterRequest) -> NormalizedLlmResponse:
        if self.use_real_llm:
            response = await self._call_model(request)
        else:
            response = self._mock_response()
        self._thread_id = self._thread_id or response.thread_id
        self._run_id = response.run_id
        return response

    @property
    def model(self) -> str:
        return str(
            self._model_config.get("model")
            or self.assistant_id
            or self._config.default_model
        )

    def _mock_response(self) -> NormalizedLlmResponse:
        number = self._next_mock_number()
        run_id = f"run_mock_{secrets.token_hex(8)}"
        return NormalizedLlmResponse(
            text=f"Mock Assistants API response for testing ({number})",
            usage=MOCK_USAGE,
            model=self.model,
            api_metadata={
                "thread_id": self._mock_thread_id,
                "run_id": run_id,
                "annotations": [],
            },
            raw_response={"thread_id": self._mock_thread_id, "run_id": run_id},
        )
