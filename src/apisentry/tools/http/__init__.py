"""HTTP helpers for APISentry."""

from .client import HTTPClient, HTTPResponse

__all__ = [
    "HTTPClient",
    "HTTPResponse",
]
