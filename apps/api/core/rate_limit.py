"""
Rate Limiting Middleware

Fixed-window counters in Redis. The credential endpoints get tight,
long-window limits keyed by client IP; everything else shares a
per-minute limit keyed by user (or IP when unauthenticated).
"""
import time
import logging
from typing import Dict, Optional, Tuple
from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from core.config import settings
from core.redis_client import get_redis_client
from core.security import get_user_id_from_token

logger = logging.getLogger(__name__)

# path -> (requests allowed, window in seconds)
AUTH_ENDPOINT_LIMITS: Dict[str, Tuple[int, int]] = {
    "/auth/login": (5, 15 * 60),
    "/auth/forgot-password": (3, 60 * 60),
    "/auth/register": (3, 24 * 60 * 60),
}

EXEMPT_PATHS = {"/health", "/ping", "/docs", "/openapi.json", "/redoc"}


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Rejects requests over their window's budget with 429."""

    def __init__(self, app, default_limit: int = 60, window: int = 60, endpoint_limits: Optional[Dict] = None):
        super().__init__(app)
        self.default_limit = default_limit
        self.window = window
        self.endpoint_limits = endpoint_limits if endpoint_limits is not None else AUTH_ENDPOINT_LIMITS

    async def dispatch(self, request: Request, call_next):
        if not settings.RATE_LIMIT_ENABLED or request.url.path in EXEMPT_PATHS:
            return await call_next(request)

        path = request.url.path
        rule = self.endpoint_limits.get(path) if request.method == "POST" else None
        if rule:
            limit, window = rule
            identity = self._client_ip(request)
            bucket = path
        else:
            limit, window = self.default_limit, self.window
            identity = self._identity(request)
            bucket = "default"

        allowed, remaining, reset_at = self._hit(f"rate_limit:{bucket}:{identity}", limit, window)

        if not allowed:
            logger.warning(
                "Rate limit exceeded",
                extra={"extra_fields": {"path": path, "identity": identity, "limit": limit}},
            )
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={
                    "detail": "Too many requests, please try again later",
                    "error_code": "RATE_LIMITED",
                },
                headers={
                    "X-RateLimit-Limit": str(limit),
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Reset": str(reset_at),
                    "Retry-After": str(max(1, reset_at - int(time.time()))),
                },
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(limit)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        response.headers["X-RateLimit-Reset"] = str(reset_at)
        return response

    @staticmethod
    def _client_ip(request: Request) -> str:
        return f"ip:{request.client.host if request.client else 'unknown'}"

    def _identity(self, request: Request) -> str:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            user_id = get_user_id_from_token(auth_header[len("Bearer "):].strip())
            if user_id is not None:
                return f"user:{user_id}"
        return self._client_ip(request)

    def _hit(self, key: str, limit: int, window: int) -> Tuple[bool, int, int]:
        """Count one request against key. Returns (allowed, remaining, reset_at)."""
        now = int(time.time())
        redis_client = get_redis_client()
        if not redis_client:
            logger.warning("Redis unavailable, skipping rate limit check")
            return True, limit, now + window

        try:
            pipe = redis_client.pipeline()
            pipe.incr(key)
            pipe.expire(key, window, nx=True)
            pipe.ttl(key)
            count, _, ttl = pipe.execute()
        except Exception as e:
            # Fail open
            logger.error(f"Rate limit check error: {e}")
            return True, limit, now + window

        reset_at = now + (ttl if ttl and ttl > 0 else window)
        if count > limit:
            return False, 0, reset_at
        return True, max(0, limit - count), reset_at
