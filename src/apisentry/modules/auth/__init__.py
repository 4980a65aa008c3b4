"""Access token providers."""

from .token_provider import ClientCredentialsTokenProvider, StaticTokenProvider

__all__ = ["ClientCredentialsTokenProvider", "StaticTokenProvider"]
