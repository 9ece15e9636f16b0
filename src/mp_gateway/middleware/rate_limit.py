"""Fixed-window rate limiting backed by Redis.

Rules (per client IP, per minute):
  - auth   : /auth/* endpoints (anti brute-force)
  - write  : POST/PUT/PATCH/DELETE elsewhere (offer submission and transitions)
  - read   : everything else

Key pattern: ``ratelimit:{ip}:{group}:{window}`` with INCR + EXPIRE.
If Redis is unreachable the request is let through and a warning is logged.
"""

import logging
import time
from collections.abc import Awaitable, Callable

import redis.asyncio as aioredis
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.types import ASGIApp

from config.settings import settings
from src.mp_common.errors import RateLimitError
from src.mp_common.redis_client import get_redis
from src.mp_common.response import error_response

logger = logging.getLogger(__name__)

_WINDOW_SECONDS = 60
_WRITE_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})
_EXEMPT_PATHS = frozenset({"/health", "/docs", "/openapi.json"})

RedisFactory = Callable[[], Awaitable[aioredis.Redis]]


def endpoint_group(method: str, path: str) -> str:
    if "/auth/" in path:
        return "auth"
    return "write" if method.upper() in _WRITE_METHODS else "read"


def group_limit(group: str) -> int:
    return {
        "auth": settings.RATE_LIMIT_AUTH_PER_MINUTE,
        "write": settings.RATE_LIMIT_WRITE_PER_MINUTE,
    }.get(group, settings.RATE_LIMIT_READ_PER_MINUTE)


def client_ip(request: Request) -> str:
    """First hop of X-Forwarded-For when behind a proxy, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


class FixedWindowRateLimiter:
    def __init__(self, redis_factory: RedisFactory = get_redis) -> None:
        self._redis_factory = redis_factory

    async def hit(self, identity: str, group: str, limit: int) -> tuple[bool, int]:
        """Count one request. Returns (allowed, seconds until the window resets)."""
        now = int(time.time())
        window = now // _WINDOW_SECONDS
        key = f"ratelimit:{identity}:{group}:{window}"
        redis = await self._redis_factory()
        count = await redis.incr(key)
        if count == 1:
            await redis.expire(key, _WINDOW_SECONDS)
        retry_after = _WINDOW_SECONDS - now % _WINDOW_SECONDS
        return count <= limit, retry_after


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, limiter: FixedWindowRateLimiter | None = None) -> None:
        super().__init__(app)
        self._limiter = limiter or FixedWindowRateLimiter()

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if not settings.RATE_LIMIT_ENABLED or request.url.path in _EXEMPT_PATHS:
            return await call_next(request)

        group = endpoint_group(request.method, request.url.path)
        ip = client_ip(request)
        try:
            allowed, retry_after = await self._limiter.hit(ip, group, group_limit(group))
        except (RedisError, OSError) as exc:
            logger.warning("Rate limit backend unavailable, allowing request: %s", exc)
            return await call_next(request)

        if not allowed:
            logger.info("Rate limited: ip=%s group=%s path=%s", ip, group, request.url.path)
            err = RateLimitError()
            return JSONResponse(
                status_code=err.http_status,
                content=error_response(err.code, err.message).model_dump(),
                headers={"Retry-After": str(retry_after)},
            )
        return await call_next(request)
