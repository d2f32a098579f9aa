# wassel/services/supabase_rest.py
"""
Minimal PostgREST client for the Supabase tables the API handlers touch.

Reads go out with the anon key; writes need the service role key. Missing
keys surface as UpstreamConfigError ("Missing supabase config") at call time
so the app still boots without credentials.
"""

from typing import Any

import httpx

from wassel.config import Settings
from wassel.infrastructure.observability.logging import get_logger
from wassel.services.upstream import UpstreamConfigError, send_upstream

logger = get_logger(__name__)

UPSTREAM = "supabase"


def eq(value: Any) -> str:
    """PostgREST equality filter value."""
    return f"eq.{value}"


class SupabaseRestClient:
    def __init__(
        self,
        http: httpx.AsyncClient,
        base_url: str | None,
        anon_key: str | None = None,
        service_role_key: str | None = None,
    ):
        self._http = http
        self.base_url = base_url.rstrip("/") if base_url else None
        self.anon_key = anon_key
        self.service_role_key = service_role_key

    @classmethod
    def from_settings(cls, http: httpx.AsyncClient, settings: Settings) -> "SupabaseRestClient":
        return cls(
            http,
            settings.SUPABASE_URL,
            anon_key=settings.SUPABASE_ANON_KEY,
            service_role_key=settings.SUPABASE_SERVICE_ROLE_KEY,
        )

    @property
    def configured(self) -> bool:
        return bool(self.base_url and (self.anon_key or self.service_role_key))

    def _table_url(self, table: str) -> str:
        return f"{self.base_url}/rest/v1/{table}"

    def _headers(self, *, write: bool, prefer: str | None = None) -> dict[str, str]:
        key = self.service_role_key if write else (self.anon_key or self.service_role_key)
        if not self.base_url or not key:
            raise UpstreamConfigError(UPSTREAM)

        headers = {"apikey": key, "Authorization": f"Bearer {key}"}
        if prefer:
            headers["Prefer"] = prefer
        return headers

    async def select_one(
        self, table: str, column: str, value: Any, *, error_message: str = "Failed to fetch row"
    ) -> dict[str, Any] | None:
        """First row where `column` equals `value`, or None."""
        headers = self._headers(write=False)
        response = await send_upstream(
            self._http,
            UPSTREAM,
            "GET",
            self._table_url(table),
            params={column: eq(value), "select": "*"},
            headers=headers,
            error_message=error_message,
        )
        rows = response.json()
        return rows[0] if rows else None

    async def insert(self, table: str, row: dict[str, Any], *, error_message: str) -> None:
        headers = self._headers(write=True, prefer="return=minimal")
        await send_upstream(
            self._http,
            UPSTREAM,
            "POST",
            self._table_url(table),
            json=row,
            headers=headers,
            error_message=error_message,
        )

    async def upsert(
        self, table: str, row: dict[str, Any], *, on_conflict: str = "id", error_message: str
    ) -> None:
        """Insert or merge on `on_conflict`, so replays of the same id are harmless."""
        headers = self._headers(write=True, prefer="resolution=merge-duplicates,return=minimal")
        await send_upstream(
            self._http,
            UPSTREAM,
            "POST",
            self._table_url(table),
            params={"on_conflict": on_conflict},
            json=row,
            headers=headers,
            error_message=error_message,
        )

    async def update(
        self, table: str, column: str, value: Any, changes: dict[str, Any], *, error_message: str
    ) -> None:
        headers = self._headers(write=True, prefer="return=minimal")
        await send_upstream(
            self._http,
            UPSTREAM,
            "PATCH",
            self._table_url(table),
            params={column: eq(value)},
            json=changes,
            headers=headers,
            error_message=error_message,
        )

    async def delete(self, table: str, column: str, value: Any, *, error_message: str) -> None:
        headers = self._headers(write=True)
        await send_upstream(
            self._http,
            UPSTREAM,
            "DELETE",
            self._table_url(table),
            params={column: eq(value)},
            headers=headers,
            error_message=error_message,
        )

    async def ping(self) -> bool:
        """Reachability check against the REST root."""
        if not self.configured:
            return False
        try:
            response = await self._http.get(f"{self.base_url}/rest/v1/", headers=self._headers(write=False))
        except httpx.HTTPError as e:
            logger.warning("Supabase ping failed", error=str(e))
            return False
        return response.status_code < 500
