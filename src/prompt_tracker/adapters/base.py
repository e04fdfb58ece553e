"""BaseAdapter ABC and the request/message dataclasses adapters consume.

Adapters are the transport boundary: they turn an AdapterRequest into
one provider SDK call and return the raw payload as a plain dict. They
never normalize; that is the job of prompt_tracker.normalizers.

These are plain dataclasses (not Pydantic) to avoid overhead in the
hot path of adapter calls.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from prompt_tracker.api_types import ApiType
from prompt_tracker.errors import ToolDefinitionError, TransportError
from prompt_tracker.execution.redaction import summarize_request
from prompt_tracker.execution.retry import retry_with_backoff, status_code_of
from prompt_tracker.models.config import RedactionConfig, TransportConfig
from prompt_tracker.models.response import ToolCall

logger = logging.getLogger(__name__)


@dataclass
class Message:
    """A single message in a provider-neutral conversation history.

    Roles: system, user, assistant, tool_result.
    """

    role: str
    content: str | None = None
    tool_calls: list[ToolCall] | None = None
    tool_call_id: str | None = None
    tool_name: str | None = None


@dataclass
class AdapterRequest:
    """Everything an adapter needs for one model invocation.

    Fields that a given API does not use are ignored by its adapter:
    input_items and previous_response_id are Responses API continuation
    state; assistant_id, thread_id, run_id and tool_outputs drive the
    Assistants API.
    """

    model: str
    messages: list[Message] = field(default_factory=list)
    system: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None
    tools: list[Any] | None = None
    tool_config: dict[str, Any] = field(default_factory=dict)
    input_items: list[dict[str, Any]] | None = None
    previous_response_id: str | None = None
    assistant_id: str | None = None
    thread_id: str | None = None
    run_id: str | None = None
    tool_outputs: list[dict[str, Any]] | None = None
    extras: dict[str, Any] = field(default_factory=dict)

    @property
    def last_user_content(self) -> str | None:
        for message in reversed(self.messages):
            if message.role == "user":
                return message.content
        return None


class BaseAdapter(ABC):
    """Abstract base class for provider adapters.

    Subclasses implement send(), which performs one provider call and
    returns the raw payload. SDK failures are retried when transient and
    then surfaced as TransportError with a redacted request summary.
    """

    provider: str = "custom"
    api: str = "custom"
    api_type: ApiType | None = None

    def __init__(
        self,
        transport: TransportConfig | None = None,
        redaction: RedactionConfig | None = None,
    ) -> None:
        self._transport = transport or TransportConfig()
        self._redaction = redaction or RedactionConfig()
        self._client: Any = None

    @abstractmethod
    async def send(self, request: AdapterRequest) -> dict[str, Any]:
        """Send a single request to the provider and return its raw payload.

        Raises:
            TransportError: If the provider call fails.
        """
        ...

    def provider_name(self) -> str:
        return self.provider

    async def _call(
        self,
        operation: Callable[[], Awaitable[Any]],
        kwargs: dict[str, Any],
    ) -> Any:
        """Run one SDK call with retries, wrapping failures in TransportError."""
        logger.debug(
            "[%s] request: %s", type(self).__name__, self.summarize(kwargs)
        )
        try:
            return await retry_with_backoff(
                operation,
                max_retries=self._transport.max_retries,
                base_delay=self._transport.base_delay,
                max_delay=self._transport.max_delay,
            )
        except TransportError:
            raise
        except Exception as exc:
            raise TransportError(
                f"{self.provider}/{self.api} request failed: "
                f"{type(exc).__name__}: {exc}",
                provider=self.provider,
                api=self.api,
                status_code=status_code_of(exc),
                request_summary=self.summarize(kwargs),
            ) from exc

    def summarize(self, kwargs: dict[str, Any]) -> dict[str, Any]:
        return summarize_request(
            kwargs,
            max_chars=self._redaction.max_prompt_chars,
            extra_patterns=self._redaction.custom_patterns,
        )

    @staticmethod
    def dump(response: Any) -> dict[str, Any]:
        """Convert an SDK response object into a plain dict."""
        if hasattr(response, "model_dump"):
            return response.model_dump()
        return dict(response)


def function_definitions(
    tools: list[Any], tool_config: Mapping[str, Any] | None = None
) -> list[dict[str, Any]]:
    """Flatten tool entries into {name, description, parameters} dicts.

    Accepts the unified shape ({"name": ...}), the Chat Completions shape
    ({"type": "function", "function": {...}}) and the string "functions",
    which expands to tool_config["functions"]. Any other string names a
    hosted tool and is skipped.

    Raises:
        ToolDefinitionError: If an entry is not a mapping or has no name.
    """
    definitions: list[dict[str, Any]] = []
    for tool in tools:
        if tool == "functions":
            for func in (tool_config or {}).get("functions") or []:
                definitions.append(function_definition(func))
        elif isinstance(tool, str):
            logger.debug("Skipping hosted tool '%s' for a function-only API", tool)
        else:
            definitions.append(function_definition(tool))
    return definitions


def function_definition(tool: Any) -> dict[str, Any]:
    """Normalize one function tool entry; see function_definitions()."""
    if not isinstance(tool, Mapping):
        raise ToolDefinitionError(
            f"Tool definition must be a mapping, got {type(tool).__name__}"
        )
    if isinstance(tool.get("function"), Mapping):
        tool = tool["function"]
    name = tool.get("name")
    if not isinstance(name, str) or not name:
        raise ToolDefinitionError(f"Tool definition has no name: {dict(tool)!r}")
    definition: dict[str, Any] = {
        "name": name,
        "description": tool.get("description") or "",
        "parameters": tool.get("parameters") or {},
    }
    if isinstance(tool.get("strict"), bool):
        definition["strict"] = tool["strict"]
    return definition
