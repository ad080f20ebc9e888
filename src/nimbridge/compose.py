"""Composition helpers for running the nimbridge proxy.

Resolves configuration once, at start-up, into an immutable NIMProxyConfig.

Configuration priority:
1. Function arguments (highest)
2. Environment variables
3. Config file (if given or NIMBRIDGE_CONFIG is set)
4. Built-in defaults
"""

from __future__ import annotations

import os
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from nimbridge.gateway.models import DEFAULT_MODEL_MAPPING

if TYPE_CHECKING:
    from nimbridge.gateway.nim_proxy import NIMProxyConfig

CONFIG_ENV_KEY = "NIMBRIDGE_CONFIG"


def load_config_file(
    config_file: str | None,
    env: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Load the YAML config file named by ``config_file`` or NIMBRIDGE_CONFIG.

    Returns an empty dict when no file is configured.

    Raises:
        FileNotFoundError: If a config file is named but does not exist.
        ValueError: If the file does not contain a mapping.
    """
    env = os.environ if env is None else env
    config_path = config_file or env.get(CONFIG_ENV_KEY)
    if not config_path:
        return {}

    content = yaml.safe_load(Path(config_path).read_text()) or {}
    if not isinstance(content, dict):
        raise ValueError(f"Config file {config_path} must contain a mapping")
    return content


def _value_resolver(
    file_config: dict[str, Any],
    env: Mapping[str, str],
) -> Callable[[Any, str, str, Any], Any]:
    """Return get_value(arg, env_key, file_key, default) applying arg > env > file > default."""

    def get_value(arg: Any, env_key: str, file_key: str, default: Any) -> Any:
        if arg is not None:
            return arg
        env_val = env.get(env_key)
        if env_val:
            return env_val
        file_val = file_config.get(file_key)
        if file_val is not None and file_val != "":
            return file_val
        return default

    return get_value


def build_model_mapping(file_config: dict[str, Any]) -> dict[str, str]:
    """Merge the config file's ``model_mapping`` table over the defaults."""
    overrides = file_config.get("model_mapping") or {}
    if not isinstance(overrides, dict):
        raise ValueError("model_mapping must be a mapping of client model -> backend model")

    mapping = dict(DEFAULT_MODEL_MAPPING)
    mapping.update({str(k): str(v) for k, v in overrides.items()})
    return mapping


def build_config(
    host: str | None = None,
    port: int | None = None,
    upstream_base_url: str | None = None,
    upstream_api_key: str | None = None,
    max_retries: int | None = None,
    max_concurrency: int | None = None,
    debug_dir: str | None = None,
    config_file: str | None = None,
    env: Mapping[str, str] | None = None,
) -> NIMProxyConfig:
    """Build the proxy configuration from arguments, environment and config file.

    Args:
        host: Host to bind to (or HOST env var).
        port: Port to bind to (or PORT env var).
        upstream_base_url: NIM API base URL (or NIM_API_BASE env var).
        upstream_api_key: NIM API key (or NIM_API_KEY env var).
        max_retries: Upstream retries (or NIM_MAX_RETRIES env var).
        max_concurrency: Concurrent upstream call cap (or NIM_MAX_CONCURRENCY env var).
        debug_dir: Directory for request dumps (or NIMBRIDGE_DEBUG_DIR env var).
        config_file: Path to YAML config (or NIMBRIDGE_CONFIG env var).
        env: Environment to read, defaults to os.environ.

    Returns:
        Frozen NIMProxyConfig.
    """
    from nimbridge.gateway.nim_proxy import DEFAULT_UPSTREAM_BASE_URL, NIMProxyConfig

    env = os.environ if env is None else env
    file_config = load_config_file(config_file, env)
    get_value = _value_resolver(file_config, env)

    debug = get_value(debug_dir, "NIMBRIDGE_DEBUG_DIR", "debug_dir", None)

    return NIMProxyConfig(
        host=str(get_value(host, "HOST", "host", "0.0.0.0")),
        port=int(get_value(port, "PORT", "port", 3000)),
        upstream_base_url=str(
            get_value(
                upstream_base_url,
                "NIM_API_BASE",
                "upstream_base_url",
                DEFAULT_UPSTREAM_BASE_URL,
            )
        ),
        upstream_api_key=str(get_value(upstream_api_key, "NIM_API_KEY", "upstream_api_key", "")),
        connect_timeout=float(get_value(None, "NIM_CONNECT_TIMEOUT", "connect_timeout", 10.0)),
        read_timeout=float(get_value(None, "NIM_READ_TIMEOUT", "read_timeout", 300.0)),
        max_retries=int(get_value(max_retries, "NIM_MAX_RETRIES", "max_retries", 0)),
        max_concurrency=int(
            get_value(max_concurrency, "NIM_MAX_CONCURRENCY", "max_concurrency", 0)
        ),
        model_mapping=build_model_mapping(file_config),
        debug_dir=str(debug) if debug else None,
    )


async def create_nim_proxy(
    host: str | None = None,
    port: int | None = None,
    upstream_base_url: str | None = None,
    upstream_api_key: str | None = None,
    config_file: str | None = None,
) -> None:
    """Create and run a NIM upstream proxy server.

    This proxy accepts OpenAI Chat Completions requests, forwards them to a
    NIM-compatible backend and returns OpenAI-shaped responses.

    This is a convenience function that blocks until stopped.

    Example:
        >>> # Using environment variables
        >>> # export NIM_API_KEY=nvapi-...
        >>> await create_nim_proxy()
        >>>
        >>> # Or with explicit arguments
        >>> await create_nim_proxy(
        ...     port=8080,
        ...     upstream_api_key="nvapi-...",
        ... )
    """
    from nimbridge.gateway.nim_proxy import NIMProxyServer

    config = build_config(
        host=host,
        port=port,
        upstream_base_url=upstream_base_url,
        upstream_api_key=upstream_api_key,
        config_file=config_file,
    )

    server = NIMProxyServer(config=config)
    await server.serve()
