"""Tests for the shared JSON request helper."""
import httpx
import pytest

from marketos.marketplaces.base import MarketplaceError
from marketos.marketplaces.http import request_json


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestRequestJson:
    @pytest.mark.asyncio
    async def test_returns_decoded_body(self):
        async with _client(lambda req: httpx.Response(200, json={"ok": True})) as http:
            assert await request_json(http, "GET", "https://mp.test/x") == {"ok": True}

    @pytest.mark.asyncio
    async def test_retries_server_errors(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) < 3:
                return httpx.Response(503, text="busy")
            return httpx.Response(200, json=[1])

        async with _client(handler) as http:
            assert await request_json(http, "GET", "https://mp.test/x", retries=2) == [1]
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_retries(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500, text="down")

        async with _client(handler) as http:
            with pytest.raises(MarketplaceError) as exc_info:
                await request_json(http, "GET", "https://mp.test/x", retries=2)
        assert len(calls) == 3
        assert exc_info.value.status_code == 500
        assert "HTTP 500" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_client_errors_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(401, text="bad token")

        async with _client(handler) as http:
            with pytest.raises(MarketplaceError) as exc_info:
                await request_json(http, "GET", "https://mp.test/x", retries=2)
        assert len(calls) == 1
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_rate_limit_retried(self):
        responses = [httpx.Response(429), httpx.Response(200, json={})]

        async with _client(lambda req: responses.pop(0)) as http:
            assert await request_json(http, "GET", "https://mp.test/x", retries=1) == {}

    @pytest.mark.asyncio
    async def test_transport_error_wrapped(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        async with _client(handler) as http:
            with pytest.raises(MarketplaceError) as exc_info:
                await request_json(http, "GET", "https://mp.test/x", retries=1)
        assert exc_info.value.status_code is None
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_long_error_body_truncated(self):
        async with _client(lambda req: httpx.Response(400, text="x" * 2000)) as http:
            with pytest.raises(MarketplaceError) as exc_info:
                await request_json(http, "GET", "https://mp.test/x", retries=0)
        assert len(str(exc_info.value)) < 520
