"""Tests for middleware — security headers, request IDs, rate limits.

Learn: Rate limiting is skipped while Redis is unavailable (always the
case in tests), so the limiter tests swap in a tiny in-memory counter
that answers the two Redis calls the middleware makes.
"""

import pytest

from hivemind.middleware import rate_limit


class CountingRedis:
    """Stands in for the Redis client: INCR + EXPIRE only."""

    def __init__(self, fail: bool = False):
        self.counts: dict[str, int] = {}
        self.fail = fail

    async def incr(self, key):
        if self.fail:
            raise ConnectionError("redis went away")
        self.counts[key] = self.counts.get(key, 0) + 1
        return self.counts[key]

    async def expire(self, key, seconds):
        return True


@pytest.fixture()
def fake_redis(monkeypatch):
    redis = CountingRedis()
    monkeypatch.setattr(rate_limit, "redis_available", lambda: True)
    monkeypatch.setattr(rate_limit, "get_redis", lambda: redis)
    return redis


# ═══════════════════════════════════════════════════════════
# Security headers
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_security_headers_on_health(client):
    """Health endpoint returns security headers."""
    r = await client.get("/api/v1/health")
    assert r.status_code == 200
    assert r.headers["X-Content-Type-Options"] == "nosniff"
    assert r.headers["X-Frame-Options"] == "DENY"
    assert r.headers["Referrer-Policy"] == "strict-origin-when-cross-origin"
    assert "X-XSS-Protection" not in r.headers


@pytest.mark.asyncio
async def test_api_responses_not_cached(client):
    r = await client.get("/api/v1/specialists")
    assert r.headers["Cache-Control"] == "no-store"


@pytest.mark.asyncio
async def test_no_hsts_on_http(client):
    """HSTS header is NOT set on HTTP connections (only HTTPS)."""
    r = await client.get("/api/v1/health")
    assert "Strict-Transport-Security" not in r.headers


# ═══════════════════════════════════════════════════════════
# Request IDs
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_request_id_generated(client):
    """Each request gets a unique X-Request-ID header."""
    r1 = await client.get("/api/v1/health")
    r2 = await client.get("/api/v1/health")
    assert "X-Request-ID" in r1.headers
    assert r1.headers["X-Request-ID"] != r2.headers["X-Request-ID"]


@pytest.mark.asyncio
async def test_request_id_propagated(client):
    """Incoming X-Request-ID is propagated through the response."""
    custom_id = "test-trace-12345"
    r = await client.get("/api/v1/health", headers={"X-Request-ID": custom_id})
    assert r.headers["X-Request-ID"] == custom_id


# ═══════════════════════════════════════════════════════════
# Rate limiting
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_no_rate_limit_headers_without_redis(client):
    r = await client.get("/api/v1/health")
    assert "X-RateLimit-Limit" not in r.headers


@pytest.mark.asyncio
async def test_rate_limit_headers(client, fake_redis):
    r = await client.get("/api/v1/health")
    assert r.headers["X-RateLimit-Limit"] == "60"
    assert r.headers["X-RateLimit-Remaining"] == "59"


@pytest.mark.asyncio
async def test_dispatch_uses_stricter_bucket(client, runtime, fake_redis):
    for _ in range(20):
        r = await client.post("/api/v1/dispatch", json={"prompt": "hello"})
        assert r.status_code == 202
    assert r.headers["X-RateLimit-Limit"] == "20"

    r = await client.post("/api/v1/dispatch", json={"prompt": "hello"})
    assert r.status_code == 429
    assert r.headers["Retry-After"] == "60"

    # reads are counted separately
    r = await client.get("/api/v1/health")
    assert r.status_code == 200
    await runtime.scheduler.drain()


@pytest.mark.asyncio
async def test_redis_errors_do_not_block(client, fake_redis):
    fake_redis.fail = True
    r = await client.get("/api/v1/health")
    assert r.status_code == 200
    assert "X-RateLimit-Limit" not in r.headers
