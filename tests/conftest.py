"""Pytest configuration and fixtures."""

import pytest

UPSTREAM_BASE_URL = "https://nim.test.example.com/v1"
UPSTREAM_URL = f"{UPSTREAM_BASE_URL}/chat/completions"


@pytest.fixture
def nim_response():
    """A successful NIM chat completion body."""
    return {
        "id": "nim-abc123",
        "object": "chat.completion",
        "created": 1700000000,
        "model": "deepseek-ai/deepseek-r1-0528",
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": "Hello from NIM!"},
                "finish_reason": "stop",
            }
        ],
        "usage": {"prompt_tokens": 12, "completion_tokens": 4, "total_tokens": 16},
    }


@pytest.fixture
def chat_request():
    """A minimal OpenAI chat completion request body."""
    return {
        "model": "gpt-4",
        "messages": [
            {"role": "system", "content": "You are terse."},
            {"role": "user", "content": "Say hello"},
        ],
    }
