"""Tests for HttpClient and credential providers."""

import asyncio
import json
from types import SimpleNamespace

import httpx
import pytest

from clients import http_client
from clients.credentials import CallbackCredentialProvider, StaticCredentialProvider
from clients.http_client import RateLimiter
from core.errors import TransportError
from tests.conftest import mock_client, run


async def _request(client, method="GET", url="https://api.test/ping", **kwargs):
    async with client:
        return await client.request(method, url, **kwargs)


class TestCredentials:
    """Bearer credential handling."""

    def test_static_token_sent(self):
        seen = []

        def handler(request):
            seen.append(request.headers.get("Authorization"))
            return httpx.Response(200, json={})

        client = mock_client(handler, credentials=StaticCredentialProvider("tok-1"))
        run(_request(client))
        assert seen == ["Bearer tok-1"]

    def test_no_token_no_header(self):
        seen = []

        def handler(request):
            seen.append("Authorization" in request.headers)
            return httpx.Response(200, json={})

        run(_request(mock_client(handler)))
        assert seen == [False]

    def test_refresh_once_on_401(self):
        tokens = iter(["stale", "fresh"])
        seen = []

        def handler(request):
            auth = request.headers.get("Authorization")
            seen.append(auth)
            return httpx.Response(200 if auth == "Bearer fresh" else 401, json={})

        provider = CallbackCredentialProvider(lambda: next(tokens))
        response = run(_request(mock_client(handler, credentials=provider)))

        assert response.status_code == 200
        assert seen == ["Bearer stale", "Bearer fresh"]

    def test_async_refresh_callback(self):
        async def fetch():
            return "async-token"

        provider = CallbackCredentialProvider(fetch, initial_token="old")
        assert run(provider.get_token()) == "old"
        assert run(provider.refresh()) == "async-token"
        provider.clear()
        assert run(provider.get_token()) == "async-token"

    def test_static_provider_returns_401(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(401, json={})

        client = mock_client(handler, credentials=StaticCredentialProvider("tok"))
        response = run(_request(client))
        assert response.status_code == 401
        assert len(calls) == 1


class TestTransport:
    """Network failures and payloads."""

    def test_network_error_becomes_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(TransportError):
            run(_request(mock_client(handler)))

    def test_timeout_retried(self):
        attempts = []

        def handler(request):
            attempts.append(request)
            if len(attempts) == 1:
                raise httpx.ReadTimeout("slow", request=request)
            return httpx.Response(200, json={"ok": True})

        client = mock_client(handler, max_retries=2)
        response = run(_request(client))
        assert response.json() == {"ok": True}
        assert len(attempts) == 2

    def test_json_body_and_params(self):
        seen = {}

        def handler(request):
            seen["query"] = dict(request.url.params)
            seen["body"] = request.content
            return httpx.Response(200, json={})

        run(_request(mock_client(handler), "POST", params={"page": 2}, json={"a": 1}))
        assert seen["query"] == {"page": "2"}
        assert json.loads(seen["body"]) == {"a": 1}

    def test_request_outside_context(self):
        client = mock_client(lambda request: httpx.Response(200))
        with pytest.raises(RuntimeError):
            run(client.request("GET", "https://api.test/ping"))


class TestRateLimiter:
    """Request spacing."""

    def test_concurrent_acquires_are_spaced(self, monkeypatch):
        clock = {"now": 100.0}
        real_sleep = asyncio.sleep

        async def fake_sleep(seconds):
            clock["now"] += seconds
            await real_sleep(0)

        monkeypatch.setattr(http_client, "time", SimpleNamespace(monotonic=lambda: clock["now"]))
        monkeypatch.setattr(http_client, "asyncio", SimpleNamespace(sleep=fake_sleep))

        async def go():
            limiter = RateLimiter(rate=10)
            stamps = []

            async def acquire():
                await limiter.acquire()
                stamps.append(clock["now"])

            await asyncio.gather(*(acquire() for _ in range(3)))
            return stamps

        assert run(go()) == pytest.approx([100.0, 100.1, 100.2])

    def test_zero_rate_never_waits(self):
        limiter = RateLimiter(rate=0)
        run(limiter.acquire())
        assert limiter._last_request == 0.0
