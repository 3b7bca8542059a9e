"""
Pooled httpx client shared by every Azure DevOps request.

One instance lives for the whole process: the REST client opens it lazily
and closes it on shutdown, so connections (and HTTP/2 streams) are reused
across collection cycles. TLS verification cannot be turned off.

Usage:
    from ado_exporter.async_http_client import AsyncSecureHTTPClient

    http = AsyncSecureHTTPClient(timeout=30, headers={"Authorization": auth})
    response = await http.get(url, params={"api-version": "7.1"})
    await http.aclose()
"""

import httpx


class AsyncSecureHTTPClient:
    """
    Thin wrapper around httpx.AsyncClient with fixed pool limits and timeouts.

    Tests pass an httpx.MockTransport as `transport`; nothing else in the
    request path changes.
    """

    DEFAULT_TIMEOUT = 30  # seconds
    DEFAULT_MAX_CONNECTIONS = 100
    DEFAULT_MAX_KEEPALIVE = 20

    def __init__(
        self,
        max_connections: int = DEFAULT_MAX_CONNECTIONS,
        max_keepalive_connections: int = DEFAULT_MAX_KEEPALIVE,
        timeout: float = DEFAULT_TIMEOUT,
        http2: bool = True,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize async HTTP client.

        Args:
            max_connections: Maximum number of concurrent connections (default: 100)
            max_keepalive_connections: Max persistent connections (default: 20)
            timeout: Default timeout in seconds (default: 30)
            http2: Enable HTTP/2 support (default: True)
            headers: Headers sent with every request (auth, user agent)
            transport: Optional transport override (tests use httpx.MockTransport)
        """
        self.limits = httpx.Limits(max_connections=max_connections, max_keepalive_connections=max_keepalive_connections)
        self.timeout = httpx.Timeout(timeout)
        self.http2 = http2
        self.headers = headers or {}
        self.transport = transport
        self.client: httpx.AsyncClient | None = None

    def open(self) -> httpx.AsyncClient:
        """Create the underlying client if it does not exist yet."""
        if self.client is None:
            self.client = httpx.AsyncClient(
                limits=self.limits,
                timeout=self.timeout,
                verify=True,  # CRITICAL: Force SSL verification
                http2=self.http2,
                follow_redirects=True,
                headers=self.headers,
                transport=self.transport,
            )
        return self.client

    async def aclose(self) -> None:
        """Close pooled connections."""
        if self.client is not None:
            await self.client.aclose()
            self.client = None

    async def get(self, url: str, **kwargs) -> httpx.Response:
        """
        Async GET request with SSL verification enforced.

        The client is opened lazily on first use.

        Args:
            url: URL to fetch
            **kwargs: Additional arguments to pass to httpx.AsyncClient.get()

        Returns:
            httpx.Response: HTTP response
        """
        return await self.open().get(url, **kwargs)
