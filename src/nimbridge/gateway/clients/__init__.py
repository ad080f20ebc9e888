"""HTTP clients for upstream inference APIs."""

from .nim_client import NIMClient, NIMClientConfig, UpstreamError

__all__ = ["NIMClient", "NIMClientConfig", "UpstreamError"]
