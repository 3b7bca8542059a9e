"""
Tests for the pooled HTTP client

Test Coverage:
- Lazy opening and reuse of the underlying httpx client
- aclose() releases the pool and allows reopening
- Default headers reach every request
"""

import httpx
import pytest

from ado_exporter.async_http_client import AsyncSecureHTTPClient


def echo_transport(seen):
    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"ok": True})

    return httpx.MockTransport(handler)


class TestAsyncSecureHTTPClient:
    """Tests for AsyncSecureHTTPClient lifecycle"""

    @pytest.mark.asyncio
    async def test_opened_lazily_and_reused(self):
        seen = []
        http = AsyncSecureHTTPClient(transport=echo_transport(seen), headers={"User-Agent": "exporter-test"})
        assert http.client is None

        await http.get("https://dev.azure.com/org/_apis/projects")
        first = http.client
        await http.get("https://dev.azure.com/org/_apis/projects")

        assert first is not None
        assert http.client is first
        assert [request.headers["User-Agent"] for request in seen] == ["exporter-test", "exporter-test"]
        await http.aclose()

    @pytest.mark.asyncio
    async def test_aclose_resets_client(self):
        http = AsyncSecureHTTPClient(transport=echo_transport([]))
        first = http.open()

        await http.aclose()

        assert first.is_closed
        assert http.client is None
        assert http.open() is not first
        await http.aclose()

    @pytest.mark.asyncio
    async def test_aclose_without_open_is_noop(self):
        http = AsyncSecureHTTPClient()

        await http.aclose()

        assert http.client is None

    def test_no_async_context_manager(self):
        """The shared client is closed explicitly on shutdown, never by a with-block"""
        assert not hasattr(AsyncSecureHTTPClient, "__aenter__")
