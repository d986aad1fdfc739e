"""Rate limiting middleware — Redis-based fixed window per minute.

Learn: Each IP gets a counter key like "hivemind:rl:{ip}:{bucket}:{minute}".
Work-creating endpoints (POST /dispatch and the paid specialist invoke)
share a stricter "work" bucket; everything else counts against "api".

Skipped entirely while Redis is not connected (e.g., in tests).
"""

import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from hivemind.realtime.pubsub import get_redis, redis_available

logger = structlog.get_logger()


def _is_work_request(request: Request) -> bool:
    if request.method != "POST":
        return False
    path = request.url.path
    return path == "/api/v1/dispatch" or (
        path.startswith("/api/v1/specialists/") and path.endswith("/invoke")
    )


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Redis-based rate limiting per IP per minute."""

    def __init__(self, app, default_rpm: int = 60, dispatch_rpm: int = 20):
        super().__init__(app)
        self.default_rpm = default_rpm
        self.dispatch_rpm = dispatch_rpm

    async def dispatch(self, request: Request, call_next) -> Response:
        if not redis_available():
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        is_work = _is_work_request(request)
        rpm = self.dispatch_rpm if is_work else self.default_rpm
        bucket = "work" if is_work else "api"
        key = f"hivemind:rl:{client_ip}:{bucket}:{int(time.time() // 60)}"

        try:
            redis = get_redis()
            count = await redis.incr(key)
            if count == 1:
                await redis.expire(key, 120)
        except Exception as e:
            # Redis error: let the request through
            logger.warning("ratelimit.redis_error", error=str(e))
            return await call_next(request)

        if count > rpm:
            logger.info("ratelimit.exceeded", client=client_ip, bucket=bucket)
            return JSONResponse(
                status_code=429,
                content={"detail": "Rate limit exceeded. Try again later."},
                headers={"Retry-After": "60"},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(rpm)
        response.headers["X-RateLimit-Remaining"] = str(max(0, rpm - count))
        return response
