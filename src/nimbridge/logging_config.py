"""Process-wide logging setup for the nimbridge CLI and scripts.

Log lines go to stderr as plain text or one JSON object per line, and can
also be copied to a file. Call configure_logging() once before starting the
proxy; library modules only ever use logging.getLogger(__name__).

The NIMBRIDGE_LOG_LEVEL, NIMBRIDGE_LOG_FORMAT and NIMBRIDGE_LOG_FILE
environment variables fill in any argument left as None.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime
from typing import Any, Literal

# Text layout: "2026-10-19 14:30:00.123 - nimbridge.gateway.nim_proxy - INFO - ..."
TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
TEXT_FORMAT_WITH_MS = "%(asctime)s.%(msecs)03d - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_STANDARD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__.keys() | {"message", "taskName"}
)

# Set by the first configure_logging() call
_configured = False


class JsonFormatter(logging.Formatter):
    """Render each record as a single JSON line.

    Keys are timestamp, level, logger and message, plus ``exception`` when
    exc_info is set and ``extra`` for any attributes passed via extra=...
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra = {k: v for k, v in record.__dict__.items() if k not in _STANDARD_ATTRS}
        if extra:
            log_data["extra"] = extra

        return json.dumps(log_data, default=str)


def configure_logging(
    level: str | None = None,
    format: Literal["text", "json"] | None = None,
    file_path: str | None = None,
    include_ms: bool = True,
    force: bool = False,
) -> None:
    """Install stderr (and optionally file) handlers on the root logger.

    Only the first call takes effect; pass force=True to replace the handlers.

    Args:
        level: Level name; falls back to NIMBRIDGE_LOG_LEVEL, then "INFO".
        format: "text" or "json"; falls back to NIMBRIDGE_LOG_FORMAT, then "text".
        file_path: Extra log file; falls back to NIMBRIDGE_LOG_FILE.
        include_ms: Append milliseconds to text timestamps.
        force: Reconfigure even after a previous call.
    """
    global _configured
    if _configured and not force:
        return

    level = level or os.environ.get("NIMBRIDGE_LOG_LEVEL", "INFO")
    format = format or os.environ.get("NIMBRIDGE_LOG_FORMAT", "text")  # type: ignore
    file_path = file_path or os.environ.get("NIMBRIDGE_LOG_FILE")

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper()))
    root.handlers.clear()

    if format == "json":
        formatter: logging.Formatter = JsonFormatter()
    else:
        fmt = TEXT_FORMAT_WITH_MS if include_ms else TEXT_FORMAT
        formatter = logging.Formatter(fmt, datefmt=DATE_FORMAT)

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)

    if file_path:
        file_handler = logging.FileHandler(file_path)
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    # Access lines duplicate what log_requests already records
    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)

    _configured = True
