# models/domain/cache_domain.py
"""
Runtime cache domain models.

A CacheEntry is a stored copy of one successful GET response, filed under a
named cache group. Bodies are kept as base64 text so entries serialize to JSON
unchanged for any storage backend.
"""

import base64
import time

import httpx
from pydantic import BaseModel, Field


def request_key(method: str, url: str | httpx.URL) -> str:
    """Identity of a cacheable request: method + absolute URL."""
    return f"{method.upper()} {url}"


class CacheEntry(BaseModel):
    """Stored response for one request identity."""

    key: str
    url: str
    status_code: int
    headers: list[tuple[str, str]] = Field(default_factory=list)
    body_b64: str = ""
    stored_at: int  # epoch milliseconds

    @classmethod
    def from_response(
        cls, request: httpx.Request, response: httpx.Response, body: bytes, now_ms: int | None = None
    ) -> "CacheEntry":
        return cls(
            key=request_key(request.method, request.url),
            url=str(request.url),
            status_code=response.status_code,
            headers=[(k, v) for k, v in response.headers.multi_items()],
            body_b64=base64.b64encode(body).decode("ascii"),
            stored_at=now_ms if now_ms is not None else int(time.time() * 1000),
        )

    def body(self) -> bytes:
        return base64.b64decode(self.body_b64)

    def to_response(self, request: httpx.Request | None = None) -> httpx.Response:
        """Rebuild an httpx response from the stored copy."""
        return httpx.Response(
            status_code=self.status_code,
            headers=self.headers,
            content=self.body(),
            request=request,
            extensions={"from_cache": True},
        )

    def age_ms(self, now_ms: int) -> int:
        return max(0, now_ms - self.stored_at)
