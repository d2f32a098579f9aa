"""
Rate Limit Headers Middleware - Add rate limit info to responses.

Headers added when a rate limit dependency ran for the request:
- X-RateLimit-Limit: Maximum requests allowed in the window
- X-RateLimit-Remaining: Remaining requests in current window
- X-RateLimit-Reset: Unix time when a rejected caller may retry
- Retry-After: Seconds to wait before retrying (if rate limited)

Usage:
    app.add_middleware(RateLimitHeadersMiddleware)
"""

import time

from starlette.middleware.base import BaseHTTPMiddleware


class RateLimitHeadersMiddleware(BaseHTTPMiddleware):
    """Reads request.state.rate_limit_info; adds nothing when it is missing."""

    async def dispatch(self, request, call_next):
        response = await call_next(request)

        rate_limit_info = getattr(request.state, "rate_limit_info", None)
        if not rate_limit_info:
            return response

        if "limit" in rate_limit_info:
            response.headers["X-RateLimit-Limit"] = str(rate_limit_info["limit"])

        if "remaining" in rate_limit_info:
            response.headers["X-RateLimit-Remaining"] = str(rate_limit_info["remaining"])

        retry_after = rate_limit_info.get("retry_after")
        if retry_after is not None:
            if not rate_limit_info.get("allowed", True):
                response.headers["Retry-After"] = str(retry_after)
            response.headers["X-RateLimit-Reset"] = str(int(time.time()) + retry_after)

        return response
