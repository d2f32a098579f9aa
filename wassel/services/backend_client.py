# wassel/services/backend_client.py
"""
Client-side access to the Wassel API handlers.

Used by the sync coordinator to flush the offline backlog. The underlying
httpx client is normally built on top of the runtime cache transport, which
passes these POSTs straight through.
"""

from typing import Any

import httpx

from wassel.infrastructure.observability.logging import get_logger
from wassel.models.domain.offline_domain import PendingMessage, PendingTrip
from wassel.services.upstream import UpstreamError, response_details

logger = get_logger(__name__)

TRIPS_SYNC_PATH = "/api/trips/sync"
MESSAGES_SYNC_PATH = "/api/messages/sync"


class NetworkFailure(Exception):
    """Request never got a response: connection refused, DNS, timeout."""

    def __init__(self, message: str, url: str | None = None):
        super().__init__(message)
        self.url = url


class BackendClient:
    """Thin wrapper that submits offline records to the sync endpoints."""

    def __init__(self, http: httpx.AsyncClient, access_token: str | None = None):
        self._http = http
        self.access_token = access_token

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    async def _post(self, path: str, body: dict) -> Any:
        try:
            response = await self._http.post(path, json=body, headers=self._headers())
        except httpx.TransportError as e:
            raise NetworkFailure(f"POST {path} failed: {e}", url=path) from e

        if not response.is_success:
            raise UpstreamError(
                f"POST {path} returned {response.status_code}",
                status_code=response.status_code,
                upstream="wassel-api",
                details=response_details(response),
            )

        # 2xx means accepted; a non-JSON acknowledgement is kept as text
        return response_details(response) if response.content else {}

    async def submit_trip(self, trip: PendingTrip) -> Any:
        return await self._post(TRIPS_SYNC_PATH, trip.to_wire())

    async def submit_message(self, message: PendingMessage) -> Any:
        return await self._post(MESSAGES_SYNC_PATH, message.to_wire())
