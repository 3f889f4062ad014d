"""
Transport primitive: a single network exchange.
"""

from typing import Any, Mapping, Protocol

import httpx
from loguru import logger

from zap_http.services.models import TransportRequest


class TransportResponse(Protocol):
    """What the executor needs from a response (httpx.Response fits)."""

    status_code: int
    headers: Mapping[str, str]
    content: bytes

    def json(self, **kwargs: Any) -> Any: ...


class Transport(Protocol):
    async def send(self, request: TransportRequest) -> TransportResponse: ...


class HttpxTransport:
    """
    Transport backed by a shared httpx.AsyncClient.

    The client is created lazily unless one is injected; an injected client
    is owned by the caller and left open by close().
    """

    def __init__(self, client: httpx.AsyncClient | None = None):
        self._http_client = client
        self._owns_client = client is None

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            # Timeouts are enforced per attempt by CancellationScope
            self._http_client = httpx.AsyncClient(timeout=None, follow_redirects=True)
        return self._http_client

    async def send(self, request: TransportRequest) -> httpx.Response:
        client = await self._get_http_client()
        return await client.request(
            method=request.method,
            url=request.url,
            params=request.params,
            headers=request.headers,
            json=request.body,
        )

    async def close(self) -> None:
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None
            logger.debug("HttpxTransport closed")

    async def __aenter__(self) -> "HttpxTransport":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
