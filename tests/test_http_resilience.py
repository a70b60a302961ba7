import asyncio
import time

import httpx
import pytest

from conftest import make_http
from leasesync.adapters.clients.http_resilience import HostRateLimiter, RetryPolicy, with_retry
from leasesync.domain.errors import FetchError

NO_WAIT = RetryPolicy(max_retries=2, base_delay=0, max_delay=0, jitter=0)


async def test_with_retry_recovers():
    calls = {"n": 0}

    async def flaky():
        calls["n"] += 1
        if calls["n"] < 3:
            raise ConnectionError("temporary")
        return "ok"

    assert await with_retry(flaky, NO_WAIT) == "ok"
    assert calls["n"] == 3


async def test_with_retry_reraises_last_exception_unchanged():
    calls = {"n": 0}

    async def always_fails():
        calls["n"] += 1
        raise ValueError(f"attempt {calls['n']}")

    with pytest.raises(ValueError, match="attempt 3"):
        await with_retry(always_fails, NO_WAIT)
    assert calls["n"] == 3


def test_backoff_delay_is_capped():
    policy = RetryPolicy(max_retries=5, base_delay=1.0, max_delay=5.0, jitter=0.0)
    assert [policy.delay_for(a) for a in range(4)] == [1.0, 2.0, 4.0, 5.0]


async def test_rate_limiter_spaces_same_host():
    limiter = HostRateLimiter(20)  # 50ms apart
    start = time.monotonic()
    for _ in range(3):
        await limiter.wait("a.example.com")
    assert time.monotonic() - start >= 0.09


async def test_rate_limiter_hosts_are_independent():
    limiter = HostRateLimiter(2)  # 500ms apart
    await limiter.wait("a.example.com")
    start = time.monotonic()
    await asyncio.gather(limiter.wait("b.example.com"), limiter.wait("c.example.com"))
    assert time.monotonic() - start < 0.25


async def test_rate_limiter_disabled():
    limiter = HostRateLimiter(0)
    start = time.monotonic()
    for _ in range(50):
        await limiter.wait("a.example.com")
    assert time.monotonic() - start < 0.1


async def test_resilient_http_retries_server_errors():
    statuses = iter([503, 429, 200])

    def handler(request: httpx.Request) -> httpx.Response:
        status = next(statuses)
        return httpx.Response(status, json={"ok": status == 200})

    http = make_http(handler, retries=2)
    assert await http.get_json("https://api.x.com/list") == {"ok": True}
    await http.client.aclose()


async def test_resilient_http_raises_fetch_error_after_retries():
    http = make_http(lambda request: httpx.Response(500), retries=1)
    with pytest.raises(FetchError) as exc:
        await http.get_json("https://api.x.com/list")
    assert exc.value.status_code == 500
    await http.client.aclose()


async def test_get_bytes_returns_mime():
    http = make_http(lambda request: httpx.Response(200, content=b"abc", headers={"content-type": "image/webp; q=1"}))
    data, mime = await http.get_bytes("https://cdn.x.com/a")
    assert (data, mime) == (b"abc", "image/webp")
    await http.client.aclose()


async def test_client_errors_are_not_retried():
    hits = []

    def handler(request: httpx.Request) -> httpx.Response:
        hits.append(request.url.path)
        return httpx.Response(404)

    http = make_http(handler, retries=3)
    with pytest.raises(FetchError) as exc:
        await http.get_json("https://api.x.com/missing")
    assert exc.value.status_code == 404
    assert exc.value.retryable is False
    assert hits == ["/missing"]
    await http.client.aclose()


async def test_transport_errors_are_retried():
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        if calls["n"] == 1:
            raise httpx.ConnectError("refused", request=request)
        return httpx.Response(200, json=[1])

    http = make_http(handler, retries=1)
    assert await http.get_json("https://api.x.com/list") == [1]
    assert calls["n"] == 2
    await http.client.aclose()


async def test_with_retry_predicate_stops_early():
    calls = {"n": 0}

    async def rejected():
        calls["n"] += 1
        raise KeyError("permanent")

    with pytest.raises(KeyError):
        await with_retry(rejected, NO_WAIT, retry_if=lambda e: not isinstance(e, KeyError))
    assert calls["n"] == 1
