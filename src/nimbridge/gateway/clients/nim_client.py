"""NIM client for upstream API calls.

Uses aiohttp.ClientSession so backend calls never block the event loop.

Features:
- Single non-streaming chat completion call per request
- Error passthrough (backend status and body preserved)
- Optional retry with exponential backoff (off by default)
- Optional cap on concurrent backend calls
- Timeout handling
"""

import asyncio
import contextlib
import json
import logging
import time
from dataclasses import dataclass
from typing import Any

import aiohttp

logger = logging.getLogger(__name__)


class UpstreamError(Exception):
    """Raised when the upstream API fails or cannot be reached.

    Attributes:
        status_code: Backend HTTP status, or 500 for local/transport failures.
        payload: Backend error body (decoded JSON when possible) or a message.
    """

    def __init__(self, message: str, status_code: int, payload: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.payload = message if payload is None else payload


@dataclass
class NIMClientConfig:
    """Configuration for NIM client."""

    base_url: str
    api_key: str

    # Timeouts (seconds)
    connect_timeout: float = 10.0
    read_timeout: float = 300.0

    # Retry configuration
    max_retries: int = 0
    retry_base_delay: float = 1.0
    retry_max_delay: float = 30.0
    retryable_status_codes: frozenset[int] = frozenset({429, 500, 502, 503, 504})

    # 0 means unlimited
    max_concurrency: int = 0


@dataclass
class NIMClient:
    """HTTP client for the NIM chat completions endpoint.

    Example:
        >>> client = NIMClient(config=NIMClientConfig(
        ...     base_url="https://integrate.api.nvidia.com/v1",
        ...     api_key="nvapi-...",
        ... ))
        >>> await client.connect()
        >>> data = await client.send({"model": "...", "messages": [...]})
        >>> await client.close()
    """

    config: NIMClientConfig
    _session: aiohttp.ClientSession | None = None
    _limiter: asyncio.Semaphore | None = None

    @property
    def url(self) -> str:
        return f"{self.config.base_url.rstrip('/')}/chat/completions"

    async def connect(self) -> None:
        """Initialize HTTP session and concurrency limiter."""
        timeout = aiohttp.ClientTimeout(
            connect=self.config.connect_timeout,
            total=self.config.read_timeout,
        )
        self._session = aiohttp.ClientSession(
            headers={
                "Authorization": f"Bearer {self.config.api_key}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
        )
        if self.config.max_concurrency > 0:
            self._limiter = asyncio.Semaphore(self.config.max_concurrency)

    async def close(self) -> None:
        """Close HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None

    async def send(
        self,
        request_body: dict[str, Any],
        trace_id: str | None = None,
    ) -> dict[str, Any]:
        """Non-streaming chat completion request.

        Args:
            request_body: NIM-format request body
            trace_id: Optional trace ID for correlation

        Returns:
            Parsed NIM response body

        Raises:
            UpstreamError: If upstream returns a non-2xx status or is unreachable
            RuntimeError: If connect() has not been called
        """
        trace_id = trace_id or f"req_{int(time.time() * 1000)}"

        if self._session is None:
            raise RuntimeError("Client not connected. Call connect() first.")

        # Streaming is never requested upstream
        request_body = {**request_body, "stream": False}

        async with self._limiter or contextlib.nullcontext():
            start_time = time.time()
            logger.debug("[%s] POST %s", trace_id, self.url)
            result = await self._execute_with_retry(request_body, trace_id)
            logger.debug(
                "[%s] Upstream responded in %.2fs",
                trace_id,
                time.time() - start_time,
            )
            return result

    async def _execute_with_retry(
        self,
        request_body: dict[str, Any],
        trace_id: str,
    ) -> dict[str, Any]:
        """Execute request, retrying only when max_retries allows it."""
        attempt = 0
        while True:
            try:
                return await self._execute(request_body)
            except UpstreamError as e:
                retryable = e.status_code in self.config.retryable_status_codes
                if not retryable or attempt >= self.config.max_retries:
                    raise
                reason = str(e.status_code)
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                if attempt >= self.config.max_retries:
                    message = str(e) or type(e).__name__
                    raise UpstreamError(f"Upstream request failed: {message}", 500) from e
                reason = type(e).__name__

            delay = min(
                self.config.retry_base_delay * (2**attempt),
                self.config.retry_max_delay,
            )
            attempt += 1
            logger.warning(
                "Request %s failed with %s, retrying in %.1fs (attempt %d/%d)",
                trace_id,
                reason,
                delay,
                attempt,
                self.config.max_retries,
            )
            await asyncio.sleep(delay)

    async def _execute(self, request_body: dict[str, Any]) -> dict[str, Any]:
        assert self._session is not None

        async with self._session.post(self.url, json=request_body) as response:
            body = await response.text()

            if 200 <= response.status < 300:
                try:
                    return json.loads(body)
                except json.JSONDecodeError as e:
                    raise UpstreamError(f"Upstream returned invalid JSON: {e}", 500) from e

            raise UpstreamError(
                f"Upstream returned {response.status}",
                response.status,
                _decode_error_body(body),
            )


def _decode_error_body(body: str) -> Any:
    """Return the error body as JSON when it parses, else the raw text (or None if empty)."""
    if not body:
        return None
    try:
        return json.loads(body)
    except json.JSONDecodeError:
        return body
