# wassel/services/upstream.py
"""
Shared error type for the thin API handlers.

Every handler forwards to exactly one upstream (Supabase REST, Stripe, Twilio).
Whatever goes wrong there is surfaced verbatim to the caller as an
UpstreamError; there is no retry at this layer.
"""

from typing import Any

import httpx

from wassel.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class UpstreamError(Exception):
    """An upstream dependency failed or returned a non-success status."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        upstream: str = "unknown",
        details: Any = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.upstream = upstream
        self.details = details

    def to_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class UpstreamConfigError(UpstreamError):
    """Credentials for an upstream are missing from settings."""

    def __init__(self, upstream: str):
        super().__init__(f"Missing {upstream} config", status_code=500, upstream=upstream)


def response_details(response: httpx.Response) -> Any:
    """Best-effort decoded error body of an upstream response."""
    try:
        return response.json()
    except ValueError:
        return response.text


async def send_upstream(
    client: httpx.AsyncClient,
    upstream: str,
    method: str,
    url: str,
    *,
    error_message: str,
    error_status: int = 500,
    **kwargs: Any,
) -> httpx.Response:
    """
    Send a single request to an upstream and fail loudly on non-2xx.

    Args:
        client: Shared async HTTP client
        upstream: Upstream name for logs and errors ("supabase", "stripe", ...)
        method: HTTP method
        url: Absolute URL
        error_message: Message surfaced to the caller on failure
        error_status: Status code surfaced to the caller on failure

    Raises:
        UpstreamError: On transport failure or non-success status
    """
    try:
        response = await client.request(method, url, **kwargs)
    except httpx.HTTPError as e:
        logger.error(
            "Upstream request failed",
            upstream=upstream,
            method=method,
            error=str(e),
            error_type=type(e).__name__,
        )
        raise UpstreamError(
            error_message, status_code=error_status, upstream=upstream, details=str(e)
        ) from e

    if not response.is_success:
        details = response_details(response)
        logger.warning(
            "Upstream returned error status",
            upstream=upstream,
            method=method,
            status_code=response.status_code,
        )
        raise UpstreamError(
            error_message, status_code=error_status, upstream=upstream, details=details
        )

    return response
