"""Bearer token acquisition for authenticated probing."""

import logging
import time
from collections.abc import Callable

import httpx

from apisentry.config import AuthSettings
from apisentry.errors import TokenError

logger = logging.getLogger(__name__)

DEFAULT_EXPIRES_IN = 86400
EXPIRY_MARGIN_SECONDS = 300


class StaticTokenProvider:
    """Hands out a token supplied up front."""

    def __init__(self, token: str):
        self.token = token

    async def get_access_token(self) -> str:
        if not self.token:
            raise TokenError("No access token configured")
        return self.token


class ClientCredentialsTokenProvider:
    """Fetch and cache a token from a client-credentials endpoint."""

    def __init__(
        self,
        settings: AuthSettings,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settings = settings
        self.timeout = timeout
        self.transport = transport
        self._clock = clock
        self._token: str | None = None
        self._expires_at = 0.0

    async def get_access_token(self) -> str:
        if self._token and self._clock() < self._expires_at:
            return self._token
        if not self.settings.configured:
            raise TokenError("Client credentials are not configured")

        logger.info("Requesting access token from %s", self.settings.auth_url)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    self.settings.auth_url,
                    params={
                        "client_id": self.settings.client_id,
                        "client_secret": self.settings.client_secret,
                    },
                )
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise TokenError(f"Failed to obtain access token: {exc}") from exc

        token = data.get("access_token") if isinstance(data, dict) else None
        if not token:
            raise TokenError("Token response did not contain access_token")
        try:
            expires_in = int(data.get("expires_in", DEFAULT_EXPIRES_IN))
        except (TypeError, ValueError):
            expires_in = DEFAULT_EXPIRES_IN

        self._token = token
        self._expires_at = self._clock() + max(expires_in - EXPIRY_MARGIN_SECONDS, 0)
        logger.info("Access token obtained, valid for %ds", expires_in)
        return token

    def invalidate(self) -> None:
        self._token = None
        self._expires_at = 0.0
