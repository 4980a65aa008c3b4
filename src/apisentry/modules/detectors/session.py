"""Per-scan probing context shared by all detectors."""

import logging
from dataclasses import dataclass
from typing import Any

from apisentry.modules.ratelimit import ProbeOutcome, ProbeRequest, RateLimiter
from apisentry.tools.http import HTTPClient, HTTPResponse

logger = logging.getLogger(__name__)


@dataclass
class ProbeSession:
    """Target base URL, credentials and the shared client/limiter pair."""

    base_url: str
    client: HTTPClient
    limiter: RateLimiter
    auth_token: str | None = None

    def __post_init__(self) -> None:
        self.base_url = self.base_url.rstrip("/")

    def url_for(self, path: str) -> str:
        if not path.startswith("/"):
            path = "/" + path
        return self.base_url + path

    async def probe(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        content: str | bytes | None = None,
        headers: dict[str, str] | None = None,
    ) -> ProbeOutcome:
        """Send one request to ``path`` through the rate limiter."""
        request_headers = dict(headers or {})
        if self.auth_token:
            request_headers["Authorization"] = f"Bearer {self.auth_token}"
        request = ProbeRequest(
            method=method.upper(),
            url=self.url_for(path),
            params=params,
            json=json,
            content=content,
            headers=request_headers,
        )
        return await self.limiter.execute(request, self._send)

    async def _send(self, request: ProbeRequest) -> HTTPResponse:
        response = await self.client.request(
            request.method,
            request.url,
            headers=request.headers,
            params=request.params,
            json=request.json,
            content=request.content,
        )
        logger.debug(
            "%s %s -> %d (%d bytes)",
            request.method,
            response.url,
            response.status_code,
            len(response.body),
        )
        return response
