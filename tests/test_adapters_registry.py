"""Tests for the adapter registry (get_adapter function)."""

from __future__ import annotations

import types
from unittest.mock import patch

import pytest

from prompt_tracker.adapters.anthropic_adapter import AnthropicMessagesAdapter
from prompt_tracker.adapters.base import BaseAdapter
from prompt_tracker.adapters.openai_adapter import (
    OpenAIAssistantsAdapter,
    OpenAIChatAdapter,
    OpenAIResponsesAdapter,
)
from prompt_tracker.adapters.registry import get_adapter
from prompt_tracker.api_types import ApiType
from prompt_tracker.models.config import RedactionConfig, TransportConfig


# --- Test adapter for dotted-path tests ---


class _TestAdapter(BaseAdapter):
    """A valid test adapter for dotted-path loading tests."""

    async def send(self, request):
        return {"model": request.model, "choices": []}


class _NotAnAdapter:
    """Not a BaseAdapter subclass -- used to test type validation."""

    pass


class TestGetAdapterBuiltin:
    """Test builtin adapter resolution."""

    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            (ApiType.OPENAI_CHAT_COMPLETIONS, OpenAIChatAdapter),
            ("openai_responses", OpenAIResponsesAdapter),
            (ApiType.OPENAI_ASSISTANTS, OpenAIAssistantsAdapter),
            ("anthropic_messages", AnthropicMessagesAdapter),
        ],
    )
    def test_builtin_types(self, name, expected) -> None:
        """Builtin adapters resolve without creating an SDK client."""
        adapter = get_adapter(name)
        assert type(adapter) is expected
        assert adapter._client is None

    def test_settings_are_passed_through(self) -> None:
        transport = TransportConfig(max_retries=0)
        redaction = RedactionConfig(max_prompt_chars=20)
        adapter = get_adapter(ApiType.ANTHROPIC_MESSAGES, transport=transport, redaction=redaction)
        assert adapter._transport is transport
        assert adapter._redaction is redaction

    def test_openai_missing_module_has_install_hint(self) -> None:
        with patch("importlib.import_module", side_effect=ImportError("No module named 'openai'")):
            with pytest.raises(ImportError, match=r"pip install prompt-tracker\[openai\]"):
                get_adapter(ApiType.OPENAI_RESPONSES)

    def test_anthropic_missing_module_has_install_hint(self) -> None:
        with patch("importlib.import_module", side_effect=ImportError("No module named 'anthropic'")):
            with pytest.raises(ImportError, match=r"pip install prompt-tracker\[anthropic\]"):
                get_adapter("anthropic_messages")

    def test_gemini_has_no_builtin_adapter(self) -> None:
        with pytest.raises(ValueError, match="No builtin adapter for 'google_gemini'"):
            get_adapter(ApiType.GOOGLE_GEMINI)


class TestGetAdapterDottedPath:
    """Test custom dotted-path adapter loading."""

    def test_custom_dotted_path(self) -> None:
        """get_adapter with a dotted path loads the class and returns an instance."""
        mock_module = types.ModuleType("tests.test_adapters_registry")
        mock_module._TestAdapter = _TestAdapter  # type: ignore[attr-defined]

        with patch("importlib.import_module", return_value=mock_module):
            adapter = get_adapter("tests.test_adapters_registry._TestAdapter")

        assert isinstance(adapter, _TestAdapter)

    def test_not_subclass_raises_type_error(self) -> None:
        mock_module = types.ModuleType("tests.test_adapters_registry")
        mock_module._NotAnAdapter = _NotAnAdapter  # type: ignore[attr-defined]

        with patch("importlib.import_module", return_value=mock_module):
            with pytest.raises(TypeError, match="not a subclass of BaseAdapter"):
                get_adapter("tests.test_adapters_registry._NotAnAdapter")

    def test_missing_attribute_raises_import_error(self) -> None:
        mock_module = types.ModuleType("tests.test_adapters_registry")
        with patch("importlib.import_module", return_value=mock_module):
            with pytest.raises(ImportError, match="has no attribute 'Missing'"):
                get_adapter("tests.test_adapters_registry.Missing")

    def test_custom_import_error_propagates(self) -> None:
        with patch("importlib.import_module", side_effect=ImportError("no such module")):
            with pytest.raises(ImportError, match="no such module"):
                get_adapter("my.module.MyAdapter")


class TestGetAdapterUnknown:
    """Test error handling for unknown adapter names."""

    def test_unknown_name(self) -> None:
        """An unknown name raises ValueError listing the builtins."""
        with pytest.raises(ValueError, match="Unknown adapter") as exc_info:
            get_adapter("unknown")
        assert "openai_responses" in str(exc_info.value)
        assert "anthropic_messages" in str(exc_info.value)
