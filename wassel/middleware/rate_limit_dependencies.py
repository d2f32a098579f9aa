"""
Rate Limit Dependencies - rate limiting for endpoints as FastAPI dependencies.

Usage:
    @router.post("/api/sms/send")
    async def send_sms(
        body: SmsSendRequest,
        _rate: None = Depends(rate_limit_sms_recipient),
    ):
        ...

Features:
- Per-recipient limit for SMS (keyed on the destination number)
- Per-IP limit for public endpoints
- Automatic 429 responses with Retry-After
- Rate limit info stored on request.state for RateLimitHeadersMiddleware
"""

from fastapi import HTTPException, Request, status

from wassel.config import settings
from wassel.infrastructure.observability.logging import get_logger
from wassel.middleware.rate_limiter import RateLimiter

logger = get_logger(__name__)


def _limiter(request: Request) -> RateLimiter:
    return request.app.state.services.rate_limiter


def _reject(info: dict, message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail={
            "error": "rate_limit_exceeded",
            "message": message,
            "limit": info["limit"],
            "retry_after": info["retry_after"],
        },
        headers={"Retry-After": str(info["retry_after"])},
    )


async def rate_limit_sms_recipient(request: Request) -> None:
    """
    Limit SMS sends per destination number.

    Reads `to` from the JSON body; a body FastAPI cannot parse is left for
    validation to reject.
    """
    if not settings.RATE_LIMIT_ENABLED:
        return

    try:
        body = await request.json()
    except ValueError:
        return
    to = body.get("to") if isinstance(body, dict) else None
    if not isinstance(to, str) or not to:
        return

    config = settings.get_sms_rate_limit()
    allowed, info = await _limiter(request).check_rate_limit(
        key=f"sms:{to}",
        limit=config["limit"],
        window_seconds=config["window_seconds"],
    )
    request.state.rate_limit_info = info

    if not allowed:
        logger.warning(
            "SMS rate limit exceeded",
            to_suffix=to[-4:],
            limit=info["limit"],
            retry_after=info["retry_after"],
        )
        raise _reject(info, f"Too many messages to this number. Try again in {info['retry_after']} seconds.")


async def rate_limit_ip(request: Request) -> None:
    """Per-IP limit with the limiter's default budget."""
    if not settings.RATE_LIMIT_ENABLED:
        return

    ip_address = getattr(request.state, "ip_address", None)
    if not ip_address:
        logger.warning("Rate limit check skipped - no IP address")
        return

    allowed, info = await _limiter(request).check_rate_limit(key=f"ip:{ip_address}")
    request.state.rate_limit_info = info

    if not allowed:
        logger.warning(
            "IP rate limit exceeded",
            ip_address=ip_address,
            limit=info["limit"],
            retry_after=info["retry_after"],
            path=request.url.path,
        )
        raise _reject(info, f"Too many requests from your IP. Try again in {info['retry_after']} seconds.")
