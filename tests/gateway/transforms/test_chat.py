"""Tests for ChatTransformer."""

import time

import pytest

from nimbridge.gateway.models import ModelResolver
from nimbridge.gateway.transforms.chat import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    ChatTransformer,
    generate_completion_id,
)


class TestChatTransformerToUpstream:
    """Tests for converting OpenAI requests to NIM format."""

    def test_simple_request(self, chat_request):
        transformer = ChatTransformer()

        result = transformer.to_upstream(chat_request)

        assert result == {
            "model": "deepseek-ai/deepseek-r1-0528",
            "messages": chat_request["messages"],
            "temperature": 0.7,
            "max_tokens": 2048,
            "stream": False,
        }

    def test_defaults(self, chat_request):
        """Missing temperature and max_tokens should get the defaults."""
        transformer = ChatTransformer()

        result = transformer.to_upstream(chat_request)

        assert result["temperature"] == DEFAULT_TEMPERATURE == 0.7
        assert result["max_tokens"] == DEFAULT_MAX_TOKENS == 2048

    def test_explicit_values_kept(self, chat_request):
        transformer = ChatTransformer()

        result = transformer.to_upstream({**chat_request, "temperature": 0.2, "max_tokens": 64})

        assert result["temperature"] == 0.2
        assert result["max_tokens"] == 64

    def test_zero_temperature_kept(self, chat_request):
        """An explicit 0 is a value, not a missing field."""
        transformer = ChatTransformer()

        result = transformer.to_upstream({**chat_request, "temperature": 0})

        assert result["temperature"] == 0

    def test_null_values_get_defaults(self, chat_request):
        transformer = ChatTransformer()

        result = transformer.to_upstream(
            {**chat_request, "temperature": None, "max_tokens": None}
        )

        assert result["temperature"] == 0.7
        assert result["max_tokens"] == 2048

    @pytest.mark.parametrize("stream", [True, False, "yes", None])
    def test_stream_always_false(self, chat_request, stream):
        transformer = ChatTransformer()

        result = transformer.to_upstream({**chat_request, "stream": stream})

        assert result["stream"] is False

    def test_messages_forwarded_verbatim(self):
        """Message list should be forwarded without touching content."""
        transformer = ChatTransformer()
        messages = [
            {"role": "user", "content": "  keep   spacing\n"},
            {"role": "assistant", "content": "<think>x</think> ok", "name": "bot"},
            {"role": "user", "content": [{"type": "text", "text": "part"}]},
        ]

        result = transformer.to_upstream({"model": "gpt-4", "messages": messages})

        assert result["messages"] is messages
        assert result["messages"][0]["content"] == "  keep   spacing\n"
        assert result["messages"][1] == {
            "role": "assistant",
            "content": "<think>x</think> ok",
            "name": "bot",
        }

    def test_unknown_model_passes_through(self, chat_request):
        transformer = ChatTransformer()

        result = transformer.to_upstream({**chat_request, "model": "meta/llama-3.1-8b-instruct"})

        assert result["model"] == "meta/llama-3.1-8b-instruct"

    def test_custom_resolver(self, chat_request):
        transformer = ChatTransformer(resolver=ModelResolver({"gpt-4": "custom/model"}))

        result = transformer.to_upstream(chat_request)

        assert result["model"] == "custom/model"

    def test_extra_fields_dropped(self, chat_request):
        transformer = ChatTransformer()

        result = transformer.to_upstream({**chat_request, "top_p": 0.9, "user": "abc"})

        assert set(result) == {"model", "messages", "temperature", "max_tokens", "stream"}


class TestChatTransformerFromUpstream:
    """Tests for converting NIM responses to OpenAI format."""

    def test_simple_response(self, nim_response):
        transformer = ChatTransformer()

        result = transformer.from_upstream(nim_response, "gpt-4")

        assert result["object"] == "chat.completion"
        assert result["model"] == "gpt-4"
        assert result["id"].startswith("chatcmpl-")
        assert result["choices"] == [
            {
                "index": 0,
                "message": {"role": "assistant", "content": "Hello from NIM!"},
                "finish_reason": "stop",
            }
        ]
        assert result["usage"] == nim_response["usage"]

    def test_model_is_original_not_resolved(self, nim_response):
        """The client should see the model name it asked for."""
        transformer = ChatTransformer()

        result = transformer.from_upstream(nim_response, "gpt-4")

        assert nim_response["model"] == "deepseek-ai/deepseek-r1-0528"
        assert result["model"] == "gpt-4"

    def test_created_is_current_time(self, nim_response):
        transformer = ChatTransformer()

        before = int(time.time())
        result = transformer.from_upstream(nim_response, "gpt-4")
        after = int(time.time())

        assert before <= result["created"] <= after

    def test_multiple_choices_keep_order(self, nim_response):
        transformer = ChatTransformer()
        nim_response["choices"] = [
            {"index": 1, "message": {"role": "assistant", "content": "b"}, "finish_reason": "length"},
            {"index": 0, "message": {"role": "assistant", "content": "a"}, "finish_reason": "stop"},
        ]

        result = transformer.from_upstream(nim_response, "gpt-4")

        assert [c["index"] for c in result["choices"]] == [1, 0]
        assert [c["message"]["content"] for c in result["choices"]] == ["b", "a"]
        assert [c["finish_reason"] for c in result["choices"]] == ["length", "stop"]

    def test_extra_choice_fields_dropped(self, nim_response):
        transformer = ChatTransformer()
        nim_response["choices"][0]["logprobs"] = None
        nim_response["choices"][0]["message"]["reasoning_content"] = "thinking"

        result = transformer.from_upstream(nim_response, "gpt-4")

        assert set(result["choices"][0]) == {"index", "message", "finish_reason"}
        assert set(result["choices"][0]["message"]) == {"role", "content"}

    def test_empty_choices(self, nim_response):
        """Zero choices is not an error."""
        transformer = ChatTransformer()
        nim_response["choices"] = []

        result = transformer.from_upstream(nim_response, "gpt-4")

        assert result["choices"] == []

    def test_missing_usage_omitted(self, nim_response):
        transformer = ChatTransformer()
        del nim_response["usage"]

        result = transformer.from_upstream(nim_response, "gpt-4")

        assert "usage" not in result

    def test_usage_passed_through_unchanged(self, nim_response):
        transformer = ChatTransformer()
        nim_response["usage"] = {"prompt_tokens": 1, "custom": {"nested": [1, 2]}}

        result = transformer.from_upstream(nim_response, "gpt-4")

        assert result["usage"] == {"prompt_tokens": 1, "custom": {"nested": [1, 2]}}

    @pytest.mark.parametrize(
        "response",
        [
            [],
            {"choices": "nope"},
            {"choices": ["nope"]},
            {"choices": [{"index": 0, "message": "text"}]},
        ],
    )
    def test_malformed_response_raises(self, response):
        transformer = ChatTransformer()

        with pytest.raises(ValueError):
            transformer.from_upstream(response, "gpt-4")

    def test_ids_are_unique(self, nim_response):
        transformer = ChatTransformer()

        ids = {transformer.from_upstream(nim_response, "gpt-4")["id"] for _ in range(500)}

        assert len(ids) == 500


class TestRoundTrip:
    """Request then response translation end to end."""

    def test_messages_and_model_preserved(self, chat_request, nim_response):
        transformer = ChatTransformer()
        original = [dict(m) for m in chat_request["messages"]]

        upstream = transformer.to_upstream(chat_request)
        result = transformer.from_upstream(nim_response, chat_request["model"])

        assert upstream["messages"] == original
        assert chat_request["messages"] == original
        assert result["model"] == "gpt-4"


def test_generate_completion_id_format():
    completion_id = generate_completion_id()

    prefix, millis, sequence = completion_id.split("-")
    assert prefix == "chatcmpl"
    assert millis.isdigit()
    assert sequence.isdigit()
