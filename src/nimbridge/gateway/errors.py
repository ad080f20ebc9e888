"""Shared error envelopes for gateway responses.

Every failure response carries a single ``error`` key. Upstream error
payloads are passed through verbatim rather than reshaped.
"""

from typing import Any


def error_body(payload: Any) -> dict[str, Any]:
    """Wrap an error payload (backend body or message string) in an envelope."""
    return {"error": payload}


def not_found_body(path: str) -> dict[str, Any]:
    """Envelope for a request path that matches no route."""
    return error_body(f"Route {path} not found")
