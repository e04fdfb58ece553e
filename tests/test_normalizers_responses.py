"""Tests for prompt_tracker.normalizers.openai_responses."""

from __future__ import annotations

import pytest

from prompt_tracker.errors import NormalizationError
from prompt_tracker.normalizers.openai_responses import ResponsesNormalizer, detect_code_language


def _message(text: str, annotations=None):
    return {
        "type": "message",
        "id": "msg_1",
        "role": "assistant",
        "content": [
            {"type": "output_text", "text": text, "annotations": annotations or []}
        ],
    }


def _payload(output, **overrides):
    payload = {
        "id": "resp_abc",
        "object": "response",
        "status": "completed",
        "model": "gpt-4o",
        "output": output,
        "usage": {"input_tokens": 40, "output_tokens": 15},
    }
    payload.update(overrides)
    return payload


class TestText:
    """Text extraction from message items."""

    def test_message_text(self):
        response = ResponsesNormalizer().normalize(_payload([_message("Hi!")]))
        assert response.text == "Hi!"

    def test_response_id_and_usage(self):
        """response_id lands in api_metadata and total is input + output."""
        response = ResponsesNormalizer().normalize(_payload([_message("Hi!")]))
        assert response.response_id == "resp_abc"
        assert response.api_metadata["status"] == "completed"
        assert response.usage.total_tokens == 55

    def test_output_text_fallback(self):
        """Top-level output_text is used when no message item has text."""
        payload = _payload([], output_text="From the convenience field")
        assert ResponsesNormalizer().normalize(payload).text == "From the convenience field"

    def test_missing_output_raises(self):
        """No output list and no output_text is a structural failure."""
        payload = _payload(None)
        del payload["output"]
        with pytest.raises(NormalizationError, match="output"):
            ResponsesNormalizer().normalize(payload)


class TestToolCalls:
    """Only function_call items become tool calls."""

    def test_function_call(self):
        """call_id is preferred over the item id."""
        output = [
            {
                "type": "function_call",
                "id": "fc_1",
                "call_id": "call_1",
                "name": "lookup_order",
                "arguments": '{"order_id": 42}',
                "status": "completed",
            }
        ]
        response = ResponsesNormalizer().normalize(_payload(output))
        assert len(response.tool_calls) == 1
        call = response.tool_calls[0]
        assert call.id == "call_1"
        assert call.function_name == "lookup_order"
        assert call.arguments == {"order_id": 42}

    def test_function_call_without_call_id(self):
        output = [{"type": "function_call", "id": "fc_2", "name": "noop", "arguments": ""}]
        call = ResponsesNormalizer().normalize(_payload(output)).tool_calls[0]
        assert call.id == "fc_2"
        assert call.arguments == {}


class TestWebSearch:
    """web_search_call items fill web_search_results."""

    def test_web_search_with_citation(self):
        """One search plus one cited message gives one combined result."""
        output = [
            {
                "type": "web_search_call",
                "id": "ws_123",
                "status": "completed",
                "action": {
                    "type": "search",
                    "query": "weather in Berlin",
                    "sources": [
                        {
                            "type": "url",
                            "title": "Berlin Weather",
                            "url": "https://weather.example/berlin",
                        }
                    ],
                },
            },
            _message(
                "It is 18C in Berlin.",
                annotations=[
                    {
                        "type": "url_citation",
                        "title": "Berlin Weather",
                        "url": "https://weather.example/berlin",
                        "start_index": 0,
                        "end_index": 20,
                    }
                ],
            ),
        ]
        response = ResponsesNormalizer().normalize(_payload(output))

        assert response.tool_calls == ()
        assert len(response.web_search_results) == 1
        result = response.web_search_results[0]
        assert result["id"] == "ws_123"
        assert result["status"] == "completed"
        assert result["query"] == "weather in Berlin"
        assert len(result["sources"]) == 1
        assert result["sources"][0]["url"] == "https://weather.example/berlin"
        assert len(result["citations"]) == 1
        assert result["citations"][0]["start_index"] == 0
        assert response.text == "It is 18C in Berlin."

    def test_query_from_queries_list(self):
        output = [
            {
                "type": "web_search_call",
                "id": "ws_1",
                "status": "completed",
                "action": {"queries": ["first query", "second"]},
            }
        ]
        result = ResponsesNormalizer().normalize(_payload(output)).web_search_results[0]
        assert result["query"] == "first query"
        assert result["sources"] == []
        assert result["citations"] == []

    def test_missing_action_degrades(self):
        """A web search item without an action still produces a result."""
        output = [{"type": "web_search_call", "id": "ws_2", "status": "in_progress"}]
        result = ResponsesNormalizer().normalize(_payload(output)).web_search_results[0]
        assert result["query"] is None
        assert result["sources"] == []


class TestFileSearch:
    def test_file_search_results(self):
        output = [
            {
                "type": "file_search_call",
                "id": "fs_1",
                "status": "completed",
                "queries": ["refund policy"],
                "results": [
                    {"file_id": "file_1", "filename": "policy.pdf", "score": 0.91},
                    {"file_id": "file_2", "filename": "faq.md", "score": 0.72},
                ],
            }
        ]
        response = ResponsesNormalizer().normalize(_payload(output))
        assert response.tool_calls == ()
        assert list(response.file_search_results) == [
            {
                "id": "fs_1",
                "status": "completed",
                "query": "refund policy",
                "files": ["policy.pdf", "faq.md"],
                "scores": [0.91, 0.72],
            }
        ]


class TestCodeInterpreter:
    def test_code_interpreter_results(self):
        output = [
            {
                "type": "code_interpreter_call",
                "id": "ci_1",
                "status": "completed",
                "code": "import math\nprint(math.pi)",
                "outputs": [{"type": "logs", "logs": "3.141592653589793"}],
            }
        ]
        result = ResponsesNormalizer().normalize(_payload(output)).code_interpreter_results[0]
        assert result["id"] == "ci_1"
        assert result["language"] == "python"
        assert result["output"] == "3.141592653589793"
        assert result["files_created"] == []
        assert result["error"] is None


class TestDetectCodeLanguage:
    @pytest.mark.parametrize(
        ("code", "expected"),
        [
            ("def f():\n    return 1", "python"),
            ("const x = 1;", "javascript"),
            ("require 'json'\nputs 1", "ruby"),
            ("items.append(1)", None),
            (None, None),
        ],
    )
    def test_guesses(self, code, expected):
        assert detect_code_language(code) == expected
