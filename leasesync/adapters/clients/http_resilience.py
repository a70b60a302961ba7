# leasesync/adapters/clients/http_resilience.py
from __future__ import annotations

import asyncio
import logging
import random
import time
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

import certifi
import httpx

from ...config import settings
from ...domain.errors import FetchError
from ...domain.urls import host_of

log = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_STATUS = (429, 500, 502, 503, 504)


class HostRateLimiter:
    """
    Per-host minimum-interval gate.

    Each host key has its own clock and its own lock, so waiters on one host
    are released one at a time in arrival order while other hosts proceed.
    """

    def __init__(self, requests_per_second: float) -> None:
        self.requests_per_second = float(requests_per_second)
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._last: dict[str, float] = {}

    @property
    def min_interval(self) -> float:
        if self.requests_per_second <= 0:
            return 0.0
        return 1.0 / self.requests_per_second

    async def wait(self, host_key: str) -> None:
        gap = self.min_interval
        if gap <= 0:
            return
        async with self._locks[host_key]:
            last = self._last.get(host_key)
            if last is not None:
                delay = (last + gap) - time.monotonic()
                if delay > 0:
                    await asyncio.sleep(delay)
            self._last[host_key] = time.monotonic()


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    jitter: float = 0.5

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        return cls(
            max_retries=int(settings.HTTP_MAX_RETRIES),
            base_delay=float(settings.HTTP_BACKOFF_BASE_S),
            max_delay=float(settings.HTTP_BACKOFF_MAX_S),
            jitter=float(settings.HTTP_BACKOFF_JITTER_S),
        )

    def delay_for(self, attempt: int) -> float:
        return min(self.base_delay * (2**attempt) + random.uniform(0, self.jitter), self.max_delay)


async def with_retry(
    op: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
    *,
    label: str = "operation",
    retry_if: Callable[[Exception], bool] | None = None,
) -> T:
    """
    Run `op`, retrying failures with exponential backoff plus jitter.

    After `max_retries` extra attempts the last exception is re-raised as is;
    an exception `retry_if` rejects is re-raised immediately.
    """
    policy = policy or RetryPolicy.from_settings()
    attempt = 0
    while True:
        try:
            return await op()
        except Exception as e:
            if attempt >= policy.max_retries:
                raise
            if retry_if is not None and not retry_if(e):
                raise
            delay = policy.delay_for(attempt)
            log.warning(
                "%s failed (attempt %d/%d): %s; retrying in %.2fs",
                label,
                attempt + 1,
                policy.max_retries + 1,
                e,
                delay,
            )
            await asyncio.sleep(delay)
            attempt += 1


def _is_transient(e: Exception) -> bool:
    return getattr(e, "retryable", True)


def build_client(*, timeout_s: float | None = None, transport: httpx.AsyncBaseTransport | None = None) -> httpx.AsyncClient:
    """
    Shared AsyncClient: certifi CA bundle, redirects followed, bot user agent.
    `transport` exists for tests (httpx.MockTransport).
    """
    kwargs: dict[str, Any] = {
        "timeout": httpx.Timeout(float(timeout_s or settings.HTTP_TIMEOUT_S)),
        "follow_redirects": True,
        "headers": {"User-Agent": settings.HTTP_USER_AGENT},
    }
    if transport is not None:
        kwargs["transport"] = transport
    else:
        kwargs["verify"] = certifi.where() if settings.HTTP_VERIFY_SSL else False
    return httpx.AsyncClient(**kwargs)


class ResilientHttp:
    """
    Every outbound call goes through here: rate limit by host, then retry.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        limiter: HostRateLimiter | None = None,
        policy: RetryPolicy | None = None,
    ) -> None:
        self.client = client
        self.limiter = limiter or HostRateLimiter(settings.HTTP_RATE_LIMIT_RPS)
        self.policy = policy or RetryPolicy.from_settings()

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        json: Any | None = None,
    ) -> httpx.Response:
        host = host_of(url)

        async def _once() -> httpx.Response:
            await self.limiter.wait(host)
            try:
                resp = await self.client.request(method, url, headers=headers, json=json)
            except httpx.HTTPError as e:
                raise FetchError(url, reason=f"{type(e).__name__}: {e}") from e
            if resp.status_code >= 400:
                raise FetchError(
                    url,
                    status_code=resp.status_code,
                    reason=resp.reason_phrase,
                    retryable=resp.status_code in RETRYABLE_STATUS,
                )
            return resp

        return await with_retry(_once, self.policy, label=f"{method} {url[:120]}", retry_if=_is_transient)

    async def get_json(
        self,
        url: str,
        *,
        method: str = "GET",
        headers: dict[str, str] | None = None,
        body: Any | None = None,
    ) -> Any:
        h = {"Accept": "application/json"}
        h.update(headers or {})
        resp = await self.request(method, url, headers=h, json=body if method.upper() == "POST" else None)
        try:
            return resp.json()
        except ValueError as e:
            raise FetchError(url, status_code=resp.status_code, reason="response is not JSON") from e

    async def get_bytes(self, url: str) -> tuple[bytes, str]:
        """(body, mime type without parameters)."""
        resp = await self.request("GET", url, headers={"Accept": "image/*"})
        mime = (resp.headers.get("content-type") or "image/jpeg").split(";")[0].strip().lower()
        return resp.content, mime or "image/jpeg"
