"""NIM upstream proxy server.

Exposes OpenAI-compatible endpoints and proxies chat completions to a
NIM-compatible upstream inference API:
1. Accepts OpenAI Chat Completions requests (and legacy alias paths)
2. Resolves the model name and applies default parameters
3. Forwards to the upstream /chat/completions endpoint
4. Rebuilds an OpenAI chat.completion response, or passes the upstream error through
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from aiohttp import web

from nimbridge.gateway.clients.nim_client import NIMClient, NIMClientConfig, UpstreamError
from nimbridge.gateway.errors import error_body, not_found_body
from nimbridge.gateway.models import DEFAULT_MODEL_MAPPING, ModelResolver
from nimbridge.gateway.tracing import RequestTracer
from nimbridge.gateway.transforms.chat import ChatTransformer
from nimbridge.gateway.transforms.validation import validate_request

logger = logging.getLogger(__name__)

DEFAULT_UPSTREAM_BASE_URL = "https://integrate.api.nvidia.com/v1"

CANONICAL_PATH = "/v1/chat/completions"

# Served by the canonical handler without any body transformation
ALIAS_PATHS = ("/v1/completions", "/v1/messages", "/v1/chat")

ROOT_PAYLOAD = {"status": "ok", "message": "NIM Proxy Running"}
HEALTH_PAYLOAD = {"status": "ok", "service": "OpenAI → NIM Proxy"}

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "*",
}


@dataclass(frozen=True)
class NIMProxyConfig:
    """Configuration for NIM upstream proxy server."""

    host: str = "0.0.0.0"
    port: int = 3000

    # Upstream configuration
    upstream_base_url: str = DEFAULT_UPSTREAM_BASE_URL
    upstream_api_key: str = ""

    # Client configuration
    connect_timeout: float = 10.0
    read_timeout: float = 300.0
    max_retries: int = 0
    max_concurrency: int = 0

    # Request limits
    max_body_size: int = 50 * 1024 * 1024  # 50MB

    model_mapping: Mapping[str, str] = field(default_factory=lambda: DEFAULT_MODEL_MAPPING)

    # Debug: save raw requests/responses to files
    debug_dir: str | None = None  # e.g., "/tmp/nimbridge-debug"


@web.middleware
async def log_requests(request: web.Request, handler: Any) -> web.StreamResponse:
    """Log every inbound request."""
    logger.info("%s %s", request.method, request.path)
    return await handler(request)


@web.middleware
async def allow_cors(request: web.Request, handler: Any) -> web.StreamResponse:
    """Allow cross-origin callers and answer preflight requests."""
    if request.method == "OPTIONS" and "Access-Control-Request-Method" in request.headers:
        return web.Response(status=204, headers=CORS_HEADERS)

    response = await handler(request)
    response.headers.update(CORS_HEADERS)
    return response


@web.middleware
async def json_errors(request: web.Request, handler: Any) -> web.StreamResponse:
    """Render aiohttp's own HTTP errors (e.g. 413) as error envelopes."""
    try:
        return await handler(request)
    except web.HTTPException as e:
        if e.status < 400:
            raise
        logger.warning("%s %s -> %d %s", request.method, request.path, e.status, e.reason)
        return web.json_response(error_body(e.text or e.reason), status=e.status)


@dataclass
class NIMProxyServer:
    """Server that accepts OpenAI Chat Completions requests
    and proxies them to a NIM-compatible upstream.

    Example:
        >>> config = NIMProxyConfig(upstream_api_key="nvapi-...")
        >>> server = NIMProxyServer(config=config)
        >>> await server.serve()
    """

    config: NIMProxyConfig
    _app: web.Application | None = None
    _runner: web.AppRunner | None = None
    _site: web.TCPSite | None = None
    _client: NIMClient | None = None
    _shutdown_event: asyncio.Event = field(default_factory=asyncio.Event)
    _tracer: RequestTracer = field(init=False)
    _transformer: ChatTransformer = field(init=False)

    def __post_init__(self) -> None:
        self._tracer = RequestTracer(debug_dir=self.config.debug_dir)
        self._transformer = ChatTransformer(resolver=ModelResolver(self.config.model_mapping))

    @property
    def resolver(self) -> ModelResolver:
        return self._transformer.resolver

    @property
    def bound_port(self) -> int | None:
        """Port the site is listening on (useful when configured with port 0)."""
        if self._site is None or self._site._server is None:
            return None
        return self._site._server.sockets[0].getsockname()[1]

    def create_app(self) -> web.Application:
        """Build the aiohttp application with all routes registered."""
        app = web.Application(
            client_max_size=self.config.max_body_size,
            middlewares=[log_requests, allow_cors, json_errors],
        )
        app.router.add_get("/", self._handle_root)
        app.router.add_get("/health", self._handle_health)
        app.router.add_get("/v1/models", self._handle_models)
        app.router.add_post(CANONICAL_PATH, self._handle_chat_completions)
        for alias in ALIAS_PATHS:
            app.router.add_post(alias, self._handle_chat_completions)
        # Registered last so every other route wins
        app.router.add_route("*", "/{tail:.*}", self._handle_not_found)
        return app

    async def start(self) -> None:
        """Connect the upstream client and start listening."""
        if not self.config.upstream_api_key:
            logger.warning("No upstream API key configured; upstream calls will be unauthorized")

        self._client = NIMClient(
            config=NIMClientConfig(
                base_url=self.config.upstream_base_url,
                api_key=self.config.upstream_api_key,
                connect_timeout=self.config.connect_timeout,
                read_timeout=self.config.read_timeout,
                max_retries=self.config.max_retries,
                max_concurrency=self.config.max_concurrency,
            )
        )
        await self._client.connect()

        self._app = self.create_app()
        self._runner = web.AppRunner(self._app)
        await self._runner.setup()

        self._site = web.TCPSite(self._runner, self.config.host, self.config.port)
        await self._site.start()
        logger.info(
            "NIM proxy listening on %s:%s -> %s",
            self.config.host,
            self.bound_port,
            self.config.upstream_base_url,
        )

    async def serve(self) -> None:
        """Start the proxy server and block until shutdown() is called."""
        await self.start()
        try:
            await self._shutdown_event.wait()
            logger.info("NIM proxy shutdown requested")
        finally:
            await self.stop()

    def shutdown(self) -> None:
        """Ask a running serve() to return."""
        self._shutdown_event.set()

    async def stop(self) -> None:
        """Stop the proxy server."""
        if self._client:
            await self._client.close()
            self._client = None
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            self._site = None

    async def _handle_root(self, request: web.Request) -> web.Response:
        """Handle GET /."""
        return web.json_response(ROOT_PAYLOAD)

    async def _handle_health(self, request: web.Request) -> web.Response:
        """Handle GET /health."""
        return web.json_response(HEALTH_PAYLOAD)

    async def _handle_models(self, request: web.Request) -> web.Response:
        """Handle GET /v1/models."""
        return web.json_response(self.resolver.list_models())

    async def _handle_not_found(self, request: web.Request) -> web.Response:
        """Handle any request that matched no route."""
        logger.warning("Unknown route: %s %s", request.method, request.path)
        return web.json_response(not_found_body(request.path), status=404)

    async def _handle_chat_completions(self, request: web.Request) -> web.Response:
        """Handle POST /v1/chat/completions and its alias paths."""
        if request.path != CANONICAL_PATH:
            logger.info("Routing %s -> %s", request.path, CANONICAL_PATH)

        start_time = time.time()

        try:
            body = json.loads(await request.read())
        except ValueError as e:
            # Covers undecodable bytes as well as malformed JSON
            return self._error_response(f"Invalid JSON: {e}", 400)
        if not isinstance(body, dict):
            return self._error_response("Invalid JSON: request body must be an object", 400)

        trace_id = self._tracer.generate_trace_id(body)

        validation_errors = validate_request(body)
        if validation_errors:
            error = "; ".join(validation_errors)
            self._tracer.log_response(trace_id, 400, time.time() - start_time, error=error)
            return self._error_response(error, 400, trace_id)

        self._tracer.save_debug(trace_id, "1_chat_request.json", body)
        self._tracer.log_request(trace_id, request.path, body["model"], len(body["messages"]))

        if not self._client:
            return self._error_response("Upstream client not initialized", 503, trace_id)

        nim_request = self._transformer.to_upstream(body)
        self._tracer.save_debug(trace_id, "2_nim_request.json", nim_request)
        logger.debug(
            "[%s] Transformed NIM request: %s",
            trace_id,
            json.dumps(nim_request, indent=2, default=str),
        )

        try:
            nim_response = await self._client.send(nim_request, trace_id)
            self._tracer.save_debug(trace_id, "3_nim_response.json", nim_response)
            chat_response = self._transformer.from_upstream(nim_response, body["model"])
        except UpstreamError as e:
            logger.error("[%s] Upstream error: %s", trace_id, e)
            self._tracer.log_response(
                trace_id, e.status_code, time.time() - start_time, error=e.payload
            )
            return self._error_response(e.payload, e.status_code, trace_id)
        except ValueError as e:
            logger.error("[%s] Malformed upstream response: %s", trace_id, e)
            self._tracer.log_response(trace_id, 500, time.time() - start_time, error=str(e))
            return self._error_response(str(e), 500, trace_id)
        except Exception as e:
            logger.exception("[%s] Unexpected error", trace_id)
            self._tracer.log_response(trace_id, 500, time.time() - start_time, error=str(e))
            return self._error_response(f"Internal error: {e}", 500, trace_id)

        self._tracer.save_debug(trace_id, "4_chat_response.json", chat_response)
        self._tracer.log_response(
            trace_id, 200, time.time() - start_time, usage=chat_response.get("usage")
        )
        return web.json_response(chat_response, headers={"X-Trace-Id": trace_id})

    def _error_response(
        self,
        payload: Any,
        status: int,
        trace_id: str | None = None,
    ) -> web.Response:
        """Return an error envelope response."""
        headers = {"X-Trace-Id": trace_id} if trace_id else None
        return web.json_response(error_body(payload), status=status, headers=headers)
