"""
Redis-backed sliding window rate limiter.

Tiers (per client IP):
  - lookup: /weather/current and /weather/forecast, 20 req/min.
            A cache miss on these costs an OpenWeatherMap call.
  - anon:   everything else, 60 req/min

/health is never limited. Without Redis every request passes through.
"""

import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from services.forecast_api.config import settings

LOOKUP_PATHS = ("/weather/current", "/weather/forecast")
WINDOW_S = 60.0


def _get_rate_limit(path: str) -> tuple[int, str]:
    """Return (limit_per_min, tier_name) for the given path."""
    if path in LOOKUP_PATHS:
        return settings.rate_limit_lookup_per_min, "lookup"
    return settings.rate_limit_anon_per_min, "anon"


def _get_client_key(request: Request) -> str:
    client_ip = request.client.host if request.client else "unknown"
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        client_ip = forwarded.split(",")[0].strip()
    return f"ip:{client_ip}"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Sliding window rate limiter backed by Redis sorted sets."""

    def __init__(self, app, redis_client=None):
        super().__init__(app)
        self.redis = redis_client

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path == "/health":
            return await call_next(request)

        if self.redis is None:
            return await call_next(request)

        limit, tier = _get_rate_limit(request.url.path)
        window_key = f"ratelimit:{tier}:{_get_client_key(request)}"

        now = time.time()
        window_start = now - WINDOW_S

        pipe = self.redis.pipeline()
        pipe.zremrangebyscore(window_key, 0, window_start)
        pipe.zcard(window_key)
        pipe.zadd(window_key, {f"{now}:{id(request)}": now})
        pipe.expire(window_key, int(WINDOW_S * 2))
        results = await pipe.execute()

        current_count = results[1]

        headers = {
            "X-RateLimit-Limit": str(limit),
            "X-RateLimit-Remaining": str(max(0, limit - current_count - 1)),
            "X-RateLimit-Reset": str(int(now + WINDOW_S)),
        }

        if current_count >= limit:
            headers["Retry-After"] = str(int(WINDOW_S))
            return JSONResponse(
                status_code=429,
                content={
                    "success": False,
                    "error": {
                        "code": "RATE_LIMITED",
                        "message": f"Rate limit exceeded. Max {limit} requests per minute for {tier} tier.",
                    },
                    "requestId": request.state.__dict__.get("request_id", ""),
                },
                headers=headers,
            )

        response = await call_next(request)
        for key, value in headers.items():
            response.headers[key] = value
        return response
