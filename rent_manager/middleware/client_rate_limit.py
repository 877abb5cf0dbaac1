from __future__ import annotations

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from rent_manager.core.client import resolve_client_ip
from rent_manager.core.error_handlers import error_response
from rent_manager.core.rate_limiter import InMemoryRateLimiterService, RateLimiterService

RATE_LIMITED_PREFIX = "/api/"


class ClientRateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, *, rate_limiter: RateLimiterService | None = None) -> None:
        super().__init__(app)
        self._rate_limiter = rate_limiter or InMemoryRateLimiterService()

    async def dispatch(self, request: Request, call_next):
        if not request.url.path.startswith(RATE_LIMITED_PREFIX):
            return await call_next(request)

        client_key = resolve_client_ip(request) or "unknown"
        decision = self._rate_limiter.check(client_key=client_key, endpoint=request.url.path)
        if not decision.allowed:
            return error_response(
                429,
                "Too many requests. Please slow down.",
                headers={
                    "Retry-After": str(decision.retry_after_seconds),
                    "X-RateLimit-Limit": str(decision.limit),
                    "X-RateLimit-Remaining": str(decision.remaining),
                },
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(decision.limit)
        response.headers["X-RateLimit-Remaining"] = str(decision.remaining)
        return response
