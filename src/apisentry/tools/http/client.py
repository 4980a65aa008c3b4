"""Async HTTP client used for probing target APIs."""

import time
from dataclasses import dataclass
from typing import Any

import httpx


@dataclass
class HTTPResponse:
    """Represents an HTTP response."""

    url: str
    status_code: int
    headers: dict[str, str]
    body: str
    response_time: float
    content_type: str = ""

    def header(self, name: str) -> str | None:
        """Case-insensitive header lookup."""
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return None

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300


class HTTPClient:
    """Async HTTP client wrapping a single httpx.AsyncClient."""

    def __init__(
        self,
        timeout: float = 30.0,
        follow_redirects: bool = True,
        verify_ssl: bool = False,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.timeout = timeout
        self.follow_redirects = follow_redirects
        self.verify_ssl = verify_ssl
        self.transport = transport
        self.client: httpx.AsyncClient | None = None

    async def __aenter__(self):
        self.client = httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=self.follow_redirects,
            verify=self.verify_ssl,
            transport=self.transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.client:
            await self.client.aclose()
            self.client = None

    async def request(
        self,
        method: str,
        url: str,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        json: Any = None,
        content: str | bytes | None = None,
    ) -> HTTPResponse:
        """Make an HTTP request.

        Transport failures surface as ``httpx.TransportError``.
        """
        if not self.client:
            raise RuntimeError("Client not initialized. Use async context manager.")

        start = time.time()

        response = await self.client.request(
            method=method,
            url=url,
            headers=headers,
            params=params,
            json=json,
            content=content,
        )

        elapsed = time.time() - start

        return HTTPResponse(
            url=str(response.url),
            status_code=response.status_code,
            headers=dict(response.headers),
            body=response.text,
            response_time=elapsed,
            content_type=response.headers.get("content-type", ""),
        )
