"""nimbridge gateway - OpenAI-compatible front door for a NIM backend.

Components:
- Proxy server: routes OpenAI endpoints (and legacy aliases) to one handler
- Transforms: OpenAI <-> NIM chat format conversion
- Clients: HTTP client for the upstream NIM API
- Models: client model name -> backend model name resolution

Usage (via compose.py convenience functions):
    from nimbridge.compose import create_nim_proxy
    import asyncio

    asyncio.run(create_nim_proxy(upstream_api_key="nvapi-..."))

Usage (direct):
    from nimbridge.gateway.nim_proxy import NIMProxyConfig, NIMProxyServer
    import asyncio

    async def main():
        config = NIMProxyConfig(upstream_api_key="nvapi-...")
        server = NIMProxyServer(config=config)
        await server.serve()

    asyncio.run(main())
"""

from nimbridge.gateway.errors import error_body, not_found_body
from nimbridge.gateway.models import DEFAULT_MODEL_MAPPING, MODEL_OWNER, ModelResolver
from nimbridge.gateway.tracing import RequestTracer

__all__ = [
    "DEFAULT_MODEL_MAPPING",
    "MODEL_OWNER",
    "ModelResolver",
    "RequestTracer",
    "error_body",
    "not_found_body",
]
