"""Rate limiting middleware — Redis fixed-window counter per minute.

Learn: Each client IP gets a counter key like
"comityspace:rl:{ip}:{bucket}:{minute}". Login and refresh share the
stricter "auth" bucket since they are the password-guessing surface.

Rate limiting is skipped when Redis is not connected (tests, local
development without Redis) and when a Redis call fails mid-request.
"""

import time

import structlog
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from comityspace.cache import get_redis

logger = structlog.get_logger()

AUTH_PATHS = ("/api/auth/login", "/api/auth/refresh")


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, default_rpm: int = 100, auth_rpm: int = 10):
        super().__init__(app)
        self.default_rpm = default_rpm
        self.auth_rpm = auth_rpm

    def _bucket(self, path: str) -> tuple[str, int]:
        if path.startswith(AUTH_PATHS):
            return "auth", self.auth_rpm
        return "api", self.default_rpm

    async def dispatch(self, request: Request, call_next) -> Response:
        redis = get_redis()
        if redis is None:
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        bucket, rpm = self._bucket(request.url.path)
        window = int(time.time() // 60)
        key = f"comityspace:rl:{client_ip}:{bucket}:{window}"

        try:
            count = await redis.incr(key)
            if count == 1:
                await redis.expire(key, 120)
        except RedisError as e:
            logger.warning("rate_limit.redis_error", error=str(e))
            return await call_next(request)

        if count > rpm:
            logger.info("rate_limit.exceeded", bucket=bucket, client_ip=client_ip)
            return JSONResponse(
                status_code=429,
                content={
                    "error": "Too many requests",
                    "message": "Rate limit exceeded. Try again later.",
                    "code": "RATE_LIMITED",
                },
                headers={"Retry-After": "60"},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(rpm)
        response.headers["X-RateLimit-Remaining"] = str(max(0, rpm - count))
        return response
