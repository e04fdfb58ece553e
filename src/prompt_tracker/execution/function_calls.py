"""Tool-call resolution loop.

FunctionCallHandler keeps re-invoking the model with function outputs
until a response carries no tool calls or MAX_ITERATIONS rounds have
run. Hitting the cap is not an error: the result is flagged with
iteration_limit_reached and the pending calls are reported as
unresolved_tool_calls.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from prompt_tracker.models.response import NormalizedLlmResponse, ToolCall

logger = logging.getLogger(__name__)

MAX_ITERATIONS = 10

# Length of function output previews in debug logs.
_PREVIEW_CHARS = 100

Continuation = Callable[
    [list[dict[str, Any]], str | None, list[ToolCall]],
    Awaitable[NormalizedLlmResponse],
]


class FunctionExecutor:
    """Produces the output string for a single tool call.

    Resolution order:
    1. A custom mock from mock_function_outputs (mappings are JSON-encoded,
       anything else is passed through as a string).
    2. A registered callable, only when use_real_llm is set. Sync callables
       run in a worker thread; async ones are awaited. Both honor
       timeout_seconds.
    3. A generic mock echoing the arguments back.

    Errors raised by a registered callable (including TimeoutError)
    propagate to the caller.
    """

    def __init__(
        self,
        mock_function_outputs: Mapping[str, Any] | None = None,
        functions: Mapping[str, Callable[..., Any]] | None = None,
        use_real_llm: bool = False,
        timeout_seconds: float | None = None,
    ) -> None:
        self._mock_outputs = dict(mock_function_outputs or {})
        self._functions = dict(functions or {})
        self._use_real_llm = use_real_llm
        self._timeout = timeout_seconds

    async def execute(self, tool_call: ToolCall) -> str:
        name = tool_call.function_name

        custom_mock = self._mock_outputs.get(name)
        if custom_mock is not None:
            return self._format_custom_mock(custom_mock)

        if self._use_real_llm and name in self._functions:
            result = await self._run_function(self._functions[name], tool_call.arguments)
            return result if isinstance(result, str) else json.dumps(result, default=str)

        return json.dumps(
            {
                "success": True,
                "message": f"Mock result for {name}",
                "data": tool_call.arguments,
            }
        )

    @staticmethod
    def _format_custom_mock(custom_mock: Any) -> str:
        if isinstance(custom_mock, Mapping):
            return json.dumps(dict(custom_mock))
        return str(custom_mock)

    async def _run_function(
        self, func: Callable[..., Any], arguments: dict[str, Any]
    ) -> Any:
        if inspect.iscoroutinefunction(func):
            call = func(**arguments)
        else:
            call = asyncio.to_thread(func, **arguments)
        if self._timeout is None:
            return await call
        return await asyncio.wait_for(call, timeout=self._timeout)


class FunctionInputBuilder:
    """Builds the input items that carry function outputs back to the model.

    The Responses API wants each function_call item followed by its
    function_call_output item, in call order, when no previous_response_id
    is available to reference the calls server side.
    """

    def __init__(self, executor: FunctionExecutor) -> None:
        self._executor = executor

    async def build_outputs(self, tool_calls: Sequence[ToolCall]) -> list[dict[str, Any]]:
        """Execute each call and return its function_call_output item."""
        outputs: list[dict[str, Any]] = []
        for tool_call in tool_calls:
            output = await self._executor.execute(tool_call)
            logger.debug(
                "Function %s (%s) output: %s",
                tool_call.function_name,
                tool_call.id,
                output[:_PREVIEW_CHARS],
            )
            outputs.append(
                {"type": "function_call_output", "call_id": tool_call.id, "output": output}
            )
        return outputs

    async def build_continuation_input(
        self, tool_calls: Sequence[ToolCall]
    ) -> list[dict[str, Any]]:
        """Execute the calls and pair each function_call with its output."""
        outputs = await self.build_outputs(tool_calls)
        return self.pair_calls_with_outputs(tool_calls, outputs)

    @staticmethod
    def pair_calls_with_outputs(
        tool_calls: Sequence[ToolCall], outputs: Sequence[dict[str, Any]]
    ) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        for tool_call, output in zip(tool_calls, outputs, strict=True):
            items.append(
                {
                    "type": "function_call",
                    "call_id": tool_call.id,
                    "name": tool_call.function_name,
                    "arguments": json.dumps(tool_call.arguments),
                }
            )
            items.append(output)
        return items


@dataclass
class FunctionCallResult:
    """Outcome of one tool-call resolution loop.

    all_responses starts with the initial response and holds every
    intermediate response, so callers can rebuild the full turn history.
    """

    final_response: NormalizedLlmResponse
    all_tool_calls: list[ToolCall] = field(default_factory=list)
    all_responses: list[NormalizedLlmResponse] = field(default_factory=list)
    iterations: int = 0
    iteration_limit_reached: bool = False
    unresolved_tool_calls: list[ToolCall] = field(default_factory=list)


class FunctionCallHandler:
    """Drives the execute-then-reinvoke loop for pending tool calls.

    Args:
        continuation: Async callable re-invoking the model. It receives the
            input items for this round, the continuation id to chain from
            (None when the API has none), and the tool calls being answered.
        executor: Resolves each tool call to an output string.
        max_iterations: Maximum re-invocations before giving up.
    """

    def __init__(
        self,
        continuation: Continuation,
        executor: FunctionExecutor | None = None,
        max_iterations: int = MAX_ITERATIONS,
    ) -> None:
        self._continuation = continuation
        self._input_builder = FunctionInputBuilder(executor or FunctionExecutor())
        self.max_iterations = max_iterations

    async def process_with_function_handling(
        self,
        initial_response: NormalizedLlmResponse,
        previous_response_id: str | None = None,
        turn: int = 1,
    ) -> FunctionCallResult:
        """Resolve tool calls until the model answers without any.

        Args:
            initial_response: The first response of the turn.
            previous_response_id: Continuation id to use if a response
                does not carry its own.
            turn: Turn number, for logging.
        """
        all_tool_calls: list[ToolCall] = []
        all_responses = [initial_response]
        response = initial_response
        iterations = 0

        while response.tool_calls and iterations < self.max_iterations:
            iterations += 1
            pending = list(response.tool_calls)
            all_tool_calls.extend(pending)
            previous_response_id = response.response_id or previous_response_id

            logger.debug(
                "Turn %d round %d: resolving %d tool call(s): %s",
                turn,
                iterations,
                len(pending),
                ", ".join(tc.function_name for tc in pending),
            )

            if previous_response_id:
                input_items = await self._input_builder.build_outputs(pending)
            else:
                input_items = await self._input_builder.build_continuation_input(pending)

            response = await self._continuation(input_items, previous_response_id, pending)
            all_responses.append(response)

        result = FunctionCallResult(
            final_response=response,
            all_tool_calls=all_tool_calls,
            all_responses=all_responses,
            iterations=iterations,
        )

        if iterations >= self.max_iterations and response.tool_calls:
            logger.warning(
                "Function call iteration limit (%d) reached for turn %d. "
                "Model may be stuck in a function calling loop.",
                self.max_iterations,
                turn,
            )
            result.all_tool_calls.extend(response.tool_calls)
            result.iteration_limit_reached = True
            result.unresolved_tool_calls = list(response.tool_calls)

        return result
