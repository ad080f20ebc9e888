"""nimbridge - OpenAI-compatible gateway for NVIDIA NIM style backends.

Accepts OpenAI Chat Completions requests, forwards them to a single
NIM-compatible inference backend and returns OpenAI-shaped responses.

Layers:
    gateway/    Routing, translation and the upstream client
    compose     Configuration loading and server wiring
    cli         Command line entry point

Quick Start:
    >>> from nimbridge.compose import create_nim_proxy
    >>> import asyncio
    >>> asyncio.run(create_nim_proxy(upstream_api_key="nvapi-..."))
"""

__version__ = "0.1.0"
