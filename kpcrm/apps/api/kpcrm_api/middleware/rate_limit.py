"""IETF RateLimit headers + fixed-window enforcement for /api/v1/* routes.

- 2xx responses: RateLimit-Policy + RateLimit (handler-set values preserved)
- 429 responses: {message, statusCode} + RateLimit-Policy + RateLimit + Retry-After
- Format (Structured Fields style):
  - RateLimit-Policy: "api"; q=100; w=900
  - RateLimit: "api"; r=<remaining>; t=<seconds to reset>
"""

import logging

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from kpcrm_api.errors import RateLimitedError
from kpcrm_api.observability.metrics import log_rate_limit_exceeded
from kpcrm_api.rate_limiter import NoOpRateLimiter, RateLimiter, RateLimitResult, client_key_for
from kpcrm_api.responses import error_response

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1/"


def _policy_header(result: RateLimitResult) -> str:
    return f'"{result.policy_id}"; q={result.quota}; w={result.window}'


def _limit_header(result: RateLimitResult) -> str:
    return f'"{result.policy_id}"; r={result.remaining}; t={result.reset}'


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Check the app's rate limiter (app.state.rate_limiter) before routing."""

    async def dispatch(self, request: Request, call_next):
        if not request.url.path.startswith(API_PREFIX) or request.method == "OPTIONS":
            return await call_next(request)

        rate_limiter: RateLimiter = getattr(request.app.state, "rate_limiter", None) or NoOpRateLimiter()

        key = client_key_for(request.client.host if request.client else None)
        result = rate_limiter.check_rate_limit(key, request.url.path)

        if not result.allowed:
            log_rate_limit_exceeded(bucket=result.policy_id, client_key=key, limit=result.quota)
            error = RateLimitedError(retry_after=result.reset)
            return error_response(
                error.status_code,
                error.message,
                headers={
                    "RateLimit-Policy": _policy_header(result),
                    "RateLimit": _limit_header(result),
                    "Retry-After": str(error.retry_after),
                },
            )

        response = await call_next(request)

        if 200 <= response.status_code < 300:
            if "RateLimit-Policy" not in response.headers:
                response.headers["RateLimit-Policy"] = _policy_header(result)
            if "RateLimit" not in response.headers:
                response.headers["RateLimit"] = _limit_header(result)

        return response
