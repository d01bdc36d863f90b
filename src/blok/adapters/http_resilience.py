"""httpx client with retries and client-side rate limiting."""

from __future__ import annotations

import time
from contextlib import nullcontext
from logging import getLogger
from typing import TYPE_CHECKING, Any, Self

import httpx
from aiolimiter import AsyncLimiter
from httpx_retries import RetryTransport

if TYPE_CHECKING:
    from contextlib import AbstractAsyncContextManager
    from types import TracebackType

    from blok.config.http_resilience import ResilienceConfig

log = getLogger(__name__)


class ResilientClient:
    """Async HTTP client shared by the registry adapter.

    Retries come from ``httpx_retries.RetryTransport`` and every request waits
    on the configured ``AsyncLimiter`` first. ``transport`` replaces the network
    layer underneath the retry transport, which is how tests plug in
    ``httpx.MockTransport``.
    """

    def __init__(
        self,
        config: ResilienceConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self._limiter = (
            AsyncLimiter(config.ratelimit.max_calls, config.ratelimit.per_seconds)
            if config.ratelimit
            else None
        )
        self._client = httpx.AsyncClient(
            base_url=config.base_url or "",
            timeout=config.timeout_seconds,
            headers=dict(config.default_headers or {}),
            transport=RetryTransport(transport=transport, retry=config.retry.build()),
        )

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Send one request; retries happen inside the transport."""

        started = time.perf_counter()
        async with self._throttle():
            response = await self._client.request(method, path, json=json)
        log.debug(
            "%s %s %s -> %d in %.3fs",
            self.config.name,
            method,
            path,
            response.status_code,
            time.perf_counter() - started,
        )
        return response

    def _throttle(self) -> AbstractAsyncContextManager[object]:
        if self._limiter is None:
            return nullcontext()
        return self._limiter
