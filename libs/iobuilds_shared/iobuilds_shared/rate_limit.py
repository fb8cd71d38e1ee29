import os
import time
from collections import defaultdict, deque
from typing import Deque, Dict

import redis
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse


OTP_PATHS = ("/issue-otp", "/verify-otp", "/reset-password")
OTP_LIMIT_PER_MINUTE = 20
UNLIMITED_PATHS = ("/health", "/metrics")


def _limited_response(retry_after: int) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content={"error": {"code": "rate_limited", "message": "Too many requests", "details": {"retry_after": retry_after}}},
        headers={"Retry-After": str(retry_after)},
    )


class _LimiterBase(BaseHTTPMiddleware):
    def __init__(self, app, limit_per_minute: int = 60, auth_boost: int = 2, exempt_otp: bool = True):
        super().__init__(app)
        self.limit_per_minute = limit_per_minute
        self.auth_boost = auth_boost
        self.exempt_otp = exempt_otp

    def _client_key(self, request: Request) -> str:
        auth = request.headers.get("authorization")
        if auth:
            return f"token:{auth[-24:]}"
        client = request.client.host if request.client else "unknown"
        return f"ip:{client}"

    def _is_exempt(self, path: str) -> bool:
        if path in UNLIMITED_PATHS:
            return True
        dev_env = os.getenv("ENV", "dev").lower() == "dev"
        return (
            self.exempt_otp
            and dev_env
            and path in OTP_PATHS
            and os.getenv("RL_EXEMPT_OTP", "true").lower() == "true"
        )

    def _limit_for(self, request: Request) -> int:
        try:
            base = int(os.getenv("RL_LIMIT_PER_MINUTE_OVERRIDE", str(self.limit_per_minute)))
        except ValueError:
            base = self.limit_per_minute
        if request.url.path in OTP_PATHS:
            base = min(base, OTP_LIMIT_PER_MINUTE)
        if request.headers.get("authorization"):
            base *= self.auth_boost
        return base


class SlidingWindowLimiter(_LimiterBase):
    """Per-process sliding window; suitable for a single dev instance."""

    def __init__(self, app, **kwargs):
        super().__init__(app, **kwargs)
        self.window_seconds = 60
        self.store: Dict[str, Deque[float]] = defaultdict(deque)

    async def dispatch(self, request: Request, call_next):
        if self._is_exempt(request.url.path):
            return await call_next(request)
        now = time.time()
        dq = self.store[self._client_key(request)]
        while dq and now - dq[0] > self.window_seconds:
            dq.popleft()
        if len(dq) >= self._limit_for(request):
            return _limited_response(max(1, int(self.window_seconds - (now - dq[0]))))
        dq.append(now)
        return await call_next(request)


class RedisRateLimiter(_LimiterBase):
    """Fixed one-minute windows shared across instances through Redis."""

    def __init__(self, app, redis_url: str, prefix: str = "ratelimit", **kwargs):
        super().__init__(app, **kwargs)
        self.prefix = prefix
        self.redis = redis.from_url(redis_url, decode_responses=True)

    async def dispatch(self, request: Request, call_next):
        if self._is_exempt(request.url.path):
            return await call_next(request)
        now = int(time.time())
        key = f"{self.prefix}:{self._client_key(request)}:{now // 60}"
        try:
            count = self.redis.incr(key)
            if count == 1:
                self.redis.expire(key, 70)
        except redis.RedisError:
            # fail open
            return await call_next(request)
        if count > self._limit_for(request):
            return _limited_response(60 - (now % 60))
        return await call_next(request)
