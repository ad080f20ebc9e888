"""Pydantic models for OpenAI Chat Completions request validation.

These models only check the inbound request. The translated backend request
is built from the original body so message content is forwarded untouched.
"""

from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    StrictFloat,
    StrictInt,
    ValidationError,
    field_validator,
)


class ChatMessage(BaseModel):
    """A message in the conversation."""

    model_config = ConfigDict(extra="allow")

    role: str
    # Plain text, or OpenAI content parts (text/image_url) passed through as-is
    content: str | list[dict[str, Any]] | None = None


class ChatCompletionRequest(BaseModel):
    """OpenAI Chat Completions request body."""

    model_config = ConfigDict(extra="allow")

    model: str
    messages: list[ChatMessage]
    # Strict: numeric strings and booleans are rejected
    temperature: StrictFloat | None = None
    max_tokens: StrictInt | None = None

    @field_validator("messages")
    @classmethod
    def validate_messages(cls, v: list[ChatMessage]) -> list[ChatMessage]:
        """Validate messages list is not empty."""
        if not v:
            raise ValueError("messages list cannot be empty")
        return v

    @field_validator("max_tokens")
    @classmethod
    def validate_max_tokens(cls, v: int | None) -> int | None:
        """Validate max_tokens is positive."""
        if v is not None and v <= 0:
            raise ValueError("max_tokens must be positive")
        return v


def validate_request(body: Any) -> list[str]:
    """Validate an OpenAI Chat Completions request body.

    Args:
        body: The decoded request body

    Returns:
        List of validation error messages (empty if valid)
    """
    try:
        ChatCompletionRequest.model_validate(body)
    except ValidationError as e:
        errors = []
        for error in e.errors():
            location = ".".join(str(part) for part in error["loc"]) or "body"
            errors.append(f"{location}: {error['msg']}")
        return errors
    return []
