"""
Middleware components for request processing.

This package contains middleware for:
- Request context (request ID, IP address, user agent)
- Rate limiting (anti-abuse protection)
- CORS for the browser client
"""

from wassel.middleware.cors import CORSMiddleware
from wassel.middleware.rate_limit_dependencies import rate_limit_ip, rate_limit_sms_recipient
from wassel.middleware.rate_limit_headers import RateLimitHeadersMiddleware
from wassel.middleware.rate_limiter import RateLimiter
from wassel.middleware.request_context import RequestContextMiddleware

__all__ = [
    "CORSMiddleware",
    "RequestContextMiddleware",
    "RateLimitHeadersMiddleware",
    "RateLimiter",
    "rate_limit_ip",
    "rate_limit_sms_recipient",
]
