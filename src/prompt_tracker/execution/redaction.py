"""Redaction and truncation for request summaries in errors and logs.

Removes secret patterns (API keys, tokens, passwords) from text, shortens
long prompt bodies while stating their original length, and replaces
structured tool/function definitions by their names.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from typing import Any

# Regex patterns that match common secret formats.
REDACTION_PATTERNS: list[str] = [
    r"(?i)bearer\s+[a-zA-Z0-9._-]+",  # Bearer tokens (before general auth pattern)
    r"sk-ant-[a-zA-Z0-9-]{20,}",  # Anthropic API key values
    r"sk-[a-zA-Z0-9_-]{20,}",  # OpenAI API key pattern
    r"(?i)(api[_-]?key|secret|password|token|authorization)\s*[:=]\s*\S+",
    r"(?i)x-api-key:\s*\S+",  # X-API-Key headers
    r"AIza[0-9A-Za-z_-]{35}",  # Google API keys
]

# Compiled once at module load.
_COMPILED_PATTERNS: list[re.Pattern[str]] = [
    re.compile(p) for p in REDACTION_PATTERNS
]

REDACTED_PLACEHOLDER = "[REDACTED]"

# Request fields whose values are prompt bodies.
TEXT_FIELDS: tuple[str, ...] = ("prompt", "system", "instructions", "input", "content")


def redact_content(content: str, extra_patterns: Iterable[str] = ()) -> str:
    """Replace secret patterns in content with [REDACTED].

    Args:
        content: The string to redact.
        extra_patterns: Additional regex patterns applied after the builtins.

    Returns:
        Content with matching secret patterns replaced.
    """
    for pattern in _COMPILED_PATTERNS:
        content = pattern.sub(REDACTED_PLACEHOLDER, content)
    for raw in extra_patterns:
        content = re.sub(raw, REDACTED_PLACEHOLDER, content)
    return content


def truncate_content(content: str, max_size: int) -> str:
    """Truncate content to max_size characters, stating the total length.

    Returns:
        Original content if within limit, otherwise the first max_size
        characters followed by '... [truncated, N chars total]'.
    """
    if len(content) <= max_size:
        return content
    return f"{content[:max_size]}... [truncated, {len(content)} chars total]"


def redact_tools(tools: list[Any] | None) -> list[str]:
    """Replace tool definitions with their names (or types for builtins)."""
    names: list[str] = []
    for tool in tools or []:
        if isinstance(tool, dict):
            function = tool.get("function")
            name = (
                tool.get("name")
                or (function.get("name") if isinstance(function, dict) else None)
                or tool.get("type")
            )
            names.append(str(name or "<unnamed>"))
        else:
            names.append(str(tool))
    return names


def _summarize_value(value: Any, max_chars: int, extra_patterns: Iterable[str]) -> Any:
    if isinstance(value, str):
        return truncate_content(redact_content(value, extra_patterns), max_chars)
    if isinstance(value, list):
        return f"<{len(value)} items>"
    return value


def summarize_request(
    request: dict[str, Any],
    max_chars: int = 500,
    extra_patterns: Iterable[str] = (),
) -> dict[str, Any]:
    """Build a log- and error-safe summary of an outbound request.

    Prompt-like fields are redacted and truncated, message lists are
    reduced to their count, and tool definitions to their names.

    Args:
        request: The keyword arguments about to be sent to a provider SDK.
        max_chars: Maximum characters kept from each prompt-like field.
        extra_patterns: Additional redaction regex patterns.

    Returns:
        A new dict safe to embed in exceptions and log lines.
    """
    extra_patterns = list(extra_patterns)
    summary: dict[str, Any] = {}
    for key, value in request.items():
        if key == "tools":
            summary["tools"] = redact_tools(value)
        elif key == "messages":
            summary["messages"] = f"<{len(value or [])} messages>"
        elif key in TEXT_FIELDS:
            summary[key] = _summarize_value(value, max_chars, extra_patterns)
        elif isinstance(value, (str, int, float, bool)) or value is None:
            summary[key] = value
        else:
            summary[key] = f"<{type(value).__name__}>"
    return summary
