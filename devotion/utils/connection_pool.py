"""
HTTP connection pooling for API requests.

Each gateway owns one pool for the lifetime of a command invocation and
closes it when done. Connections are reused across the several requests a
transition makes (HTTP/2 where the server supports it).
"""

import asyncio
from typing import Any

import httpx
import structlog

log = structlog.get_logger(__name__)


class HTTPConnectionPool:
    """HTTP connection pool for one API base URL."""

    def __init__(
        self,
        base_url: str,
        max_connections: int = 10,
        max_keepalive_connections: int = 5,
        timeout: float = 30.0,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.base_url = base_url
        self.max_connections = max_connections
        self.max_keepalive_connections = max_keepalive_connections
        self.timeout = timeout
        self.headers = headers or {}
        self._client: httpx.AsyncClient | None = None
        self._lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Create the underlying client if it does not exist yet."""
        async with self._lock:
            if self._client is None:
                limits = httpx.Limits(
                    max_keepalive_connections=self.max_keepalive_connections,
                    max_connections=self.max_connections,
                    keepalive_expiry=30.0,
                )

                self._client = httpx.AsyncClient(
                    base_url=self.base_url,
                    limits=limits,
                    timeout=self.timeout,
                    http2=True,
                    headers=self.headers,
                )

                log.debug("connection_pool_initialized", base_url=self.base_url)

    async def close(self) -> None:
        """Close the connection pool."""
        async with self._lock:
            if self._client:
                await self._client.aclose()
                self._client = None
                log.debug("connection_pool_closed", base_url=self.base_url)

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            await self.initialize()
        assert self._client is not None
        return self._client

    async def get(self, path: str, **kwargs: Any) -> httpx.Response:
        """Make GET request."""
        client = await self._ensure_client()
        return await client.get(path, **kwargs)

    async def post(self, path: str, **kwargs: Any) -> httpx.Response:
        """Make POST request."""
        client = await self._ensure_client()
        return await client.post(path, **kwargs)

    async def patch(self, path: str, **kwargs: Any) -> httpx.Response:
        """Make PATCH request."""
        client = await self._ensure_client()
        return await client.patch(path, **kwargs)

    async def __aenter__(self) -> "HTTPConnectionPool":
        await self.initialize()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()
