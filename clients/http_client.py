"""HTTP client wrapper with rate limiting, retries and bearer auth."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from clients.credentials import CredentialProvider, StaticCredentialProvider
from core.errors import TransportError

logger = structlog.get_logger()


@dataclass
class RateLimiter:
    """Simple rate limiter spacing requests at least 1/rate apart."""

    rate: float  # requests per second
    _last_request: float = field(default=0.0, init=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False, repr=False)

    async def acquire(self) -> None:
        """Wait if needed to respect rate limit.

        Concurrent callers are serialized so each one sees the previous
        caller's timestamp.
        """
        if self.rate <= 0:
            return

        min_interval = 1.0 / self.rate
        async with self._lock:
            now = time.monotonic()
            elapsed = now - self._last_request

            if elapsed < min_interval:
                await asyncio.sleep(min_interval - elapsed)

            self._last_request = time.monotonic()


class HttpClient:
    """Authenticated JSON client with rate limiting and retry support."""

    def __init__(
        self,
        credentials: CredentialProvider | None = None,
        timeout: int = 30,
        rate_limit: float = 5.0,
        max_retries: int = 3,
        user_agent: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.credentials = credentials or StaticCredentialProvider()
        self.timeout = timeout
        self.max_retries = max_retries
        self.rate_limiter = RateLimiter(rate=rate_limit)
        self.user_agent = user_agent or "RoundTracker/1.0"
        self._transport = transport

        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> HttpClient:
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            headers={
                "User-Agent": self.user_agent,
                "Content-Type": "application/json",
            },
            follow_redirects=True,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args: Any) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _auth_headers(self, token: str | None = None) -> dict[str, str]:
        token = token if token is not None else await self.credentials.get_token()
        return {"Authorization": f"Bearer {token}"} if token else {}

    async def request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> httpx.Response:
        """Send a request; refresh the credential once on 401.

        Raises:
            TransportError: the request could not be completed
        """
        await self.rate_limiter.acquire()

        headers = await self._auth_headers()
        response = await self._send(method, url, params, json, headers)

        if response.status_code == 401:
            fresh = await self.credentials.refresh()
            if fresh:
                logger.info("Retrying with refreshed credential", method=method, url=url)
                headers = await self._auth_headers(fresh)
                response = await self._send(method, url, params, json, headers)

        return response

    async def _send(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None,
        json: Any,
        headers: dict[str, str],
    ) -> httpx.Response:
        start_time = time.monotonic()
        try:
            response = await self._send_with_retry(method, url, params, json, headers)
        except httpx.HTTPError as e:
            logger.warning("Request failed", method=method, url=url, error=str(e))
            raise TransportError(f"{method} {url} failed: {e}") from e

        logger.debug(
            "Request complete",
            method=method,
            url=url,
            status_code=response.status_code,
            duration_ms=round((time.monotonic() - start_time) * 1000, 1),
        )
        return response

    async def _send_with_retry(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None,
        json: Any,
        headers: dict[str, str],
    ) -> httpx.Response:
        """Internal send with retry logic."""
        if not self._client:
            raise RuntimeError("Client not initialized. Use 'async with' context.")

        @retry(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=1, min=1, max=10),
            retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError)),
            reraise=True,
        )
        async def _do_send() -> httpx.Response:
            return await self._client.request(  # type: ignore[union-attr]
                method, url, params=params, json=json, headers=headers
            )

        return await _do_send()


def decode_json(response: httpx.Response) -> Any:
    """Parse a response body as JSON, mapping garbage to TransportError."""
    try:
        return response.json()
    except ValueError as e:
        raise TransportError(
            f"Invalid JSON from {response.request.method} {response.request.url}",
            status_code=response.status_code,
        ) from e
