"""
FastAPI integration for the rate limiter.
"""

from typing import Awaitable, Callable, Iterable, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from shared.errors import LimitExceeded
from shared.logging import clear_context, set_request_context

from .limiter import RateLimiter
from .options import CheckOptions


class RateLimitMiddleware:
    """Checks requests against a ``RateLimiter`` keyed by client and path."""

    def __init__(self, rate_limiter: RateLimiter, options: Optional[CheckOptions] = None):
        self.rate_limiter = rate_limiter
        self.options = options

    async def check_request(self, request: Request, options: Optional[CheckOptions] = None) -> None:
        """Check the rate limit for ``request``.

        Raises:
            LimitExceeded: The client is over its limit for this path.
        """
        client_id = self.client_id(request)
        set_request_context(
            request_id=request.headers.get("X-Request-ID"),
            client_id=client_id,
        )
        await self.rate_limiter.check(f"{client_id}:{request.url.path}", options or self.options)

    def dependency(self, options: Optional[CheckOptions] = None) -> Callable[[Request], Awaitable[None]]:
        """Route dependency enforcing ``options`` (e.g. a tighter burst for one endpoint)."""
        async def enforce(request: Request) -> None:
            await self.check_request(request, options)

        return enforce

    def client_id(self, request: Request) -> str:
        """Extract client ID from request."""
        # Set by authentication middleware when the caller is known
        user_info = getattr(request.state, "user_info", None)
        if isinstance(user_info, dict) and user_info.get("user_id"):
            return user_info["user_id"]

        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip

        return request.client.host if request.client else "unknown"


def limit_exceeded_response(exc: LimitExceeded) -> JSONResponse:
    """429 response carrying the standard error body."""
    headers = {}
    retry_after = exc.details.get("retry_after")
    if retry_after is not None:
        headers["Retry-After"] = str(retry_after)
    return JSONResponse(
        status_code=429,
        content=exc.to_response().model_dump(),
        headers=headers,
    )


async def rate_limit_exception_handler(request: Request, exc: LimitExceeded) -> JSONResponse:
    """Map ``LimitExceeded`` raised by route dependencies to HTTP 429."""
    return limit_exceeded_response(exc)


def install(
    app: FastAPI,
    rate_limiter: RateLimiter,
    options: Optional[CheckOptions] = None,
    exempt_paths: Iterable[str] = ("/health",),
) -> RateLimitMiddleware:
    """Rate limit every request to ``app`` except ``exempt_paths``."""
    middleware = RateLimitMiddleware(rate_limiter, options)
    exempt = frozenset(exempt_paths)

    app.add_exception_handler(LimitExceeded, rate_limit_exception_handler)

    @app.middleware("http")
    async def enforce_rate_limit(request: Request, call_next):
        if request.url.path in exempt:
            return await call_next(request)
        try:
            try:
                await middleware.check_request(request)
            except LimitExceeded as exc:
                return limit_exceeded_response(exc)
            return await call_next(request)
        finally:
            clear_context()

    app.state.rate_limit_middleware = middleware
    return middleware
