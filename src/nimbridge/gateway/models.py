"""Model name resolution.

Maps the model names clients ask for (OpenAI names) onto the model served by
the backend. Names that are not in the table are forwarded unchanged.
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

# Ownership label reported by GET /v1/models
MODEL_OWNER = "nvidia-nim-proxy"

DEFAULT_MODEL_MAPPING: Mapping[str, str] = MappingProxyType(
    {
        "gpt-3.5-turbo": "deepseek-ai/deepseek-r1-0528",
        "gpt-4": "deepseek-ai/deepseek-r1-0528",
        "gpt-4-turbo": "deepseek-ai/deepseek-r1-0528",
        "gpt-4o": "deepseek-ai/deepseek-r1-0528",
    }
)


@dataclass(frozen=True)
class ModelResolver:
    """Read-only lookup from client model names to backend model names.

    Example:
        >>> resolver = ModelResolver()
        >>> resolver.resolve("gpt-4")
        'deepseek-ai/deepseek-r1-0528'
        >>> resolver.resolve("meta/llama-3.1-8b-instruct")
        'meta/llama-3.1-8b-instruct'
    """

    mapping: Mapping[str, str] = field(default_factory=lambda: DEFAULT_MODEL_MAPPING)

    def __post_init__(self) -> None:
        # Freeze a private copy so later edits to the caller's dict are not seen
        object.__setattr__(self, "mapping", MappingProxyType(dict(self.mapping)))

    def resolve(self, model: str) -> str:
        """Return the backend model for ``model``, or ``model`` itself if unmapped."""
        return self.mapping.get(model, model)

    def list_models(self) -> dict[str, Any]:
        """Build the OpenAI model-list payload from the mapping keys."""
        created = int(time.time())
        return {
            "object": "list",
            "data": [
                {
                    "id": model,
                    "object": "model",
                    "created": created,
                    "owned_by": MODEL_OWNER,
                }
                for model in self.mapping
            ],
        }
