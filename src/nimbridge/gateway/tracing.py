"""Request tracing for the gateway.

Provides human-readable trace IDs, per-request debug dumps and the
request/response log lines emitted by the proxy.

Debug files are saved to: {debug_dir}/logs/{session_id}/{trace_id}/
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class RequestTracer:
    """Handles request tracing and debug data saving.

    Example:
        tracer = RequestTracer(debug_dir="/tmp/nimbridge-debug")
        trace_id = tracer.generate_trace_id(body)
        tracer.save_debug(trace_id, "1_chat_request.json", body)
    """

    def __init__(self, debug_dir: str | Path | None = None):
        """Initialize tracer with an optional debug directory.

        Args:
            debug_dir: Directory for debug files. Nothing is written when None.
        """
        self._request_counter = 0
        self._session_id: str | None = None
        self._debug_dir_config = debug_dir

    @property
    def debug_dir(self) -> Path | None:
        """Get the debug directory path, creating the session folder name on first access."""
        if not self._debug_dir_config:
            return None

        if self._session_id is None:
            self._session_id = time.strftime("%Y-%m-%d_%H-%M-%S")

        return Path(self._debug_dir_config) / "logs" / self._session_id

    def generate_trace_id(self, body: dict[str, Any]) -> str:
        """Generate a human-readable trace ID with sequence number and context.

        Format: {counter}_{hhmmss}_{num_messages}msgs_{context}
        Example: 00001_031333_1msgs_Please_write_a
        """
        self._request_counter += 1

        timestamp = time.strftime("%H%M%S")

        msgs = body.get("messages")
        if not isinstance(msgs, list):
            msgs = []

        # Last user message with text content
        context = "empty"
        for m in reversed(msgs):
            if not isinstance(m, dict) or m.get("role") != "user":
                continue
            text = _message_text(m.get("content"))
            if text.strip():
                words = text.split()[:3]
                context = "_".join(w[:8] for w in words if w and not w.startswith("<"))[:20]
                break

        # Clean context for filesystem
        context = "".join(c if c.isalnum() or c == "_" else "" for c in context) or "request"

        return f"{self._request_counter:05d}_{timestamp}_{len(msgs)}msgs_{context}"

    def save_debug(self, trace_id: str, filename: str, data: Any) -> None:
        """Save debug data to JSON file if debug_dir is configured."""
        if not self.debug_dir:
            return

        try:
            trace_path = self.debug_dir / trace_id
            trace_path.mkdir(parents=True, exist_ok=True)

            filepath = trace_path / filename
            with open(filepath, "w") as f:
                json.dump(data, f, indent=2, default=str)
            logger.debug("[%s] Saved debug file: %s", trace_id, filepath)
        except OSError as e:
            logger.warning("[%s] Failed to save debug file %s: %s", trace_id, filename, e)

    def log_request(self, trace_id: str, path: str, model: str, msg_count: int) -> None:
        """Log an accepted chat request."""
        logger.info(
            "[%s] request_start: path=%s, model=%s, messages=%d",
            trace_id,
            path,
            model,
            msg_count,
        )

    def log_response(
        self,
        trace_id: str,
        status_code: int,
        duration_s: float,
        usage: Any = None,
        error: Any = None,
    ) -> None:
        """Log a finished chat request.

        Args:
            trace_id: Trace ID for this request.
            status_code: HTTP status code sent to the client.
            duration_s: Request duration in seconds.
            usage: Upstream usage object, if any.
            error: Error payload if the request failed.
        """
        if error is not None:
            logger.warning(
                "[%s] request_failed: status=%d, error=%s (%.2fs)",
                trace_id,
                status_code,
                str(error)[:200],
                duration_s,
            )
            return

        tokens_in = tokens_out = "?"
        if isinstance(usage, dict):
            tokens_in = usage.get("prompt_tokens", "?")
            tokens_out = usage.get("completion_tokens", "?")
        logger.info(
            "[%s] request_complete: status=%d, tokens_in=%s, tokens_out=%s (%.2fs)",
            trace_id,
            status_code,
            tokens_in,
            tokens_out,
            duration_s,
        )


def _message_text(content: Any) -> str:
    """Extract text from string content or OpenAI text content parts."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        for part in content:
            if isinstance(part, dict) and part.get("type") == "text":
                text = part.get("text")
                if isinstance(text, str) and text.strip():
                    return text
    return ""
