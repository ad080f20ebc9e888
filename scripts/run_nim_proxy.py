#!/usr/bin/env python
"""Run the OpenAI-to-NIM proxy with logging.

Usage:
    export NIM_API_KEY="nvapi-..."
    uv run python scripts/run_nim_proxy.py

Then point an OpenAI client at it:
    export OPENAI_BASE_URL="http://127.0.0.1:3000/v1"
"""
import asyncio
import sys

from nimbridge.compose import build_config
from nimbridge.gateway.nim_proxy import NIMProxyServer
from nimbridge.logging_config import configure_logging

# Use DEBUG to see full request payloads
configure_logging(level="DEBUG")


async def main():
    config = build_config()
    if not config.upstream_api_key:
        print("Error: NIM_API_KEY environment variable is required")
        sys.exit(1)

    print(f"Starting NIM proxy on http://{config.host}:{config.port}")
    print(f"Upstream: {config.upstream_base_url}")
    if config.debug_dir:
        print(f"Debug logs: {config.debug_dir}/logs/{{session_id}}/")
    print()

    server = NIMProxyServer(config=config)
    await server.serve()


if __name__ == "__main__":
    asyncio.run(main())
