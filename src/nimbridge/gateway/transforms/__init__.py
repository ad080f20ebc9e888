"""Transformers for converting between OpenAI and NIM chat formats."""

from .chat import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    ChatTransformer,
    generate_completion_id,
)
from .validation import ChatCompletionRequest, ChatMessage, validate_request

__all__ = [
    # Transformers
    "ChatTransformer",
    "DEFAULT_MAX_TOKENS",
    "DEFAULT_TEMPERATURE",
    "generate_completion_id",
    # Validation
    "ChatCompletionRequest",
    "ChatMessage",
    "validate_request",
]
