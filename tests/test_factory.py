"""Tests for handler dispatch."""

from __future__ import annotations

import pytest

from prompt_tracker.errors import DispatchError
from prompt_tracker.execution.factory import (
    DEFAULT_HANDLER,
    HANDLER_REGISTRY,
    build_handler,
    handler_class_for,
)
from prompt_tracker.execution.handlers import (
    AssistantsApiHandler,
    ChatCompletionHandler,
    ResponseApiHandler,
)
from prompt_tracker.models.config import TrackerConfig


class TestHandlerClassFor:
    """Test the (provider, api) to handler mapping."""

    @pytest.mark.parametrize(
        ("provider", "api", "expected"),
        [
            ("openai", "chat_completions", ChatCompletionHandler),
            ("openai", "responses", ResponseApiHandler),
            ("openai", "assistants", AssistantsApiHandler),
            ("anthropic", "messages", ChatCompletionHandler),
            ("google", "gemini", ChatCompletionHandler),
            ("OpenAI", "Responses", ResponseApiHandler),
        ],
    )
    def test_known_pairs(self, provider, api, expected):
        assert handler_class_for({"provider": provider, "api": api}) is expected

    def test_unknown_pair_falls_back(self):
        assert handler_class_for({"provider": "acme", "api": "custom"}) is DEFAULT_HANDLER
        assert DEFAULT_HANDLER is ChatCompletionHandler

    def test_registry_only_lists_specialized_handlers(self):
        assert set(HANDLER_REGISTRY.values()) == {ResponseApiHandler, AssistantsApiHandler}


class TestBuildHandler:
    """Test handler construction and config validation."""

    @pytest.mark.parametrize(
        "model_config",
        [
            {"api": "responses"},
            {"provider": "", "api": "responses"},
            {"provider": "   ", "api": "responses"},
            {"provider": None, "api": "responses"},
        ],
    )
    def test_missing_provider(self, model_config):
        with pytest.raises(DispatchError, match="'provider'"):
            build_handler(model_config)

    def test_missing_api(self):
        with pytest.raises(DispatchError, match="'api'"):
            build_handler({"provider": "openai"})

    def test_provider_checked_before_api(self):
        with pytest.raises(DispatchError, match="'provider'"):
            build_handler({})

    def test_non_mapping_rejected(self):
        with pytest.raises(DispatchError, match="mapping"):
            build_handler(["openai", "responses"])  # type: ignore[arg-type]

    def test_dispatch_error_is_value_error(self):
        with pytest.raises(ValueError):
            build_handler({"api": "responses"})

    def test_unknown_provider_builds_chat_handler(self):
        handler = build_handler({"provider": "acme", "api": "custom", "model": "acme-1"})
        assert isinstance(handler, ChatCompletionHandler)
        assert handler.resolved_api_type is None
        assert handler.model == "acme-1"

    def test_flags_and_testable_passthrough(self):
        marker = {"suite": "smoke"}
        handler = build_handler(
            {"provider": "openai", "api": "responses"},
            use_real_llm=True,
            testable=marker,
        )
        assert isinstance(handler, ResponseApiHandler)
        assert handler.use_real_llm is True
        assert handler.testable is marker

    def test_dependencies_forwarded(self):
        config = TrackerConfig(default_model="gpt-4o-mini")
        handler = build_handler(
            {"provider": "openai", "api": "assistants"}, config=config
        )
        assert isinstance(handler, AssistantsApiHandler)
        assert handler.model == "gpt-4o-mini"

    def test_model_config_read_only(self):
        handler = build_handler({"provider": "openai", "api": "chat_completions"})
        with pytest.raises(TypeError):
            handler.model_config["api"] = "responses"  # type: ignore[index]
