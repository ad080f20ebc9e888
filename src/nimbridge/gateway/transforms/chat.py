"""OpenAI Chat Completions <-> NIM transformer.

Converts inbound OpenAI chat requests into the request shape the NIM backend
expects, and rebuilds OpenAI chat responses from NIM results.

NIM API Reference:
- Request: POST /chat/completions with {model, messages, temperature, max_tokens, stream}
- Response: {choices: [{index, message: {role, content}, finish_reason}], usage}
"""

import itertools
import time
from dataclasses import dataclass, field
from typing import Any

from ..models import ModelResolver

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 2048

# Shared by every transformer so ids stay unique across requests
_completion_sequence = itertools.count(1)


def generate_completion_id() -> str:
    """Generate a process-unique chat completion id.

    Format: chatcmpl-{epoch_ms}-{sequence}
    """
    return f"chatcmpl-{int(time.time() * 1000)}-{next(_completion_sequence)}"


@dataclass
class ChatTransformer:
    """Transforms OpenAI chat requests to NIM format and NIM responses back."""

    resolver: ModelResolver = field(default_factory=ModelResolver)

    def to_upstream(self, body: dict[str, Any]) -> dict[str, Any]:
        """Convert an OpenAI chat request to a NIM request.

        Args:
            body: Inbound request body (already validated)

        Returns:
            NIM-format request dict ready for /chat/completions
        """
        temperature = body.get("temperature")
        max_tokens = body.get("max_tokens")

        return {
            "model": self.resolver.resolve(body["model"]),
            "messages": body["messages"],
            "temperature": DEFAULT_TEMPERATURE if temperature is None else temperature,
            "max_tokens": DEFAULT_MAX_TOKENS if max_tokens is None else max_tokens,
            "stream": False,
        }

    def from_upstream(self, response: dict[str, Any], model: str) -> dict[str, Any]:
        """Convert a NIM response to an OpenAI chat completion.

        Args:
            response: Parsed NIM response body
            model: Model name the client asked for (reported back unchanged)

        Returns:
            OpenAI chat.completion response dict

        Raises:
            ValueError: If the response has no usable choices list
        """
        if not isinstance(response, dict):
            raise ValueError(f"Upstream response must be an object, got {type(response).__name__}")

        choices = response.get("choices")
        if choices is None:
            choices = []
        if not isinstance(choices, list):
            raise ValueError(f"Upstream choices must be a list, got {type(choices).__name__}")

        result: dict[str, Any] = {
            "id": generate_completion_id(),
            "object": "chat.completion",
            "created": int(time.time()),
            "model": model,
            "choices": [self._convert_choice(choice) for choice in choices],
        }
        if "usage" in response:
            result["usage"] = response["usage"]
        return result

    def _convert_choice(self, choice: Any) -> dict[str, Any]:
        if not isinstance(choice, dict):
            raise ValueError(f"Upstream choice must be an object, got {type(choice).__name__}")

        message = choice.get("message") or {}
        if not isinstance(message, dict):
            raise ValueError(f"Upstream message must be an object, got {type(message).__name__}")

        return {
            "index": choice.get("index"),
            "message": {
                "role": message.get("role"),
                "content": message.get("content"),
            },
            "finish_reason": choice.get("finish_reason"),
        }
