# wassel/worker/cache_manager.py
"""
Runtime cache manager - intercepts outgoing requests and applies a caching
strategy before/after delegating to the network.

Per request:
1. Non-GET, or cross-origin and not allow-listed -> pass through untouched
2. First matching rule picks the strategy; no match -> pass through
3. CacheFirst:           cached entry, else network (store 2xx)
4. NetworkFirst:         network with bounded wait (store 2xx), else cached
                         entry, else synthesized 503 offline response
5. StaleWhileRevalidate: cached entry now + background refresh, else network

Failures inside a strategy never abort the request beyond returning the best
available fallback.

Lifecycle:
- install():  precache the app shell manifest
- activate(): drop cache groups from older versions, enforce group bounds,
              take control
- handle_message(): SKIP_WAITING / CLEAR_CACHE / CACHE_URLS / GET_CACHE_SIZE

Usage:
    manager = RuntimeCacheManager(httpx.AsyncHTTPTransport(), MemoryCacheStorage(),
                                  app_origin="https://wassel.app")
    client = httpx.AsyncClient(transport=CachingTransport(manager))
"""

import asyncio
import time
from collections.abc import Callable
from enum import Enum

import httpx
from pydantic import BaseModel, ValidationError

from wassel.infrastructure.observability.logging import get_logger
from wassel.models.domain.cache_domain import CacheEntry, request_key
from wassel.worker.cache_rules import (
    PRECACHE_MANIFEST,
    CacheRule,
    Strategy,
    default_rules,
    group_name,
    is_allowed_origin,
    match_rule,
    shell_group,
)
from wassel.worker.cache_storage import CacheStorage
from wassel.worker.lifecycle import Lifecycle
from wassel.worker.messages import (
    CacheSizeReply,
    CacheUrlsMessage,
    CacheUrlsReply,
    ClearCacheMessage,
    GetCacheSizeMessage,
    SkipWaitingMessage,
    control_message_adapter,
)

logger = get_logger(__name__)

OFFLINE_BODY = {"error": "Offline", "message": "You are currently offline"}

# Headers describing the wire encoding; the stored body is already decoded.
_ENCODING_HEADERS = {"content-encoding", "content-length", "transfer-encoding"}


class WorkerState(str, Enum):
    PARSED = "parsed"
    INSTALLING = "installing"
    INSTALLED = "installed"
    ACTIVATED = "activated"


def _now_ms() -> int:
    return int(time.time() * 1000)


def offline_response(request: httpx.Request) -> httpx.Response:
    return httpx.Response(503, json=OFFLINE_BODY, request=request)


def is_navigation(request: httpx.Request) -> bool:
    return "text/html" in request.headers.get("accept", "")


class RuntimeCacheManager:
    """Classifies requests against ordered rules and serves them per strategy."""

    def __init__(
        self,
        network: httpx.AsyncBaseTransport,
        storage: CacheStorage,
        *,
        app_origin: str,
        version: str = "v1",
        rules: tuple[CacheRule, ...] | None = None,
        lifecycle: Lifecycle | None = None,
        precache_manifest: tuple[str, ...] = PRECACHE_MANIFEST,
        clock: Callable[[], int] = _now_ms,
    ):
        self.network = network
        self.storage = storage
        self.app_origin = httpx.URL(app_origin)
        self.version = version
        self.rules = rules if rules is not None else default_rules(version)
        self.lifecycle = lifecycle or Lifecycle()
        self.precache_manifest = precache_manifest
        self.shell_group = shell_group(version)
        self.runtime_group = group_name("runtime", version)
        self.state = WorkerState.PARSED
        self.controlling = False
        self._clock = clock

    @property
    def known_groups(self) -> set[str]:
        return {self.shell_group, self.runtime_group} | {rule.group for rule in self.rules}

    # =================================================================
    # REQUEST HANDLING
    # =================================================================

    async def handle(self, request: httpx.Request) -> httpx.Response:
        if request.method != "GET" or not is_allowed_origin(request.url, self.app_origin):
            return await self.network.handle_async_request(request)

        rule = match_rule(self.rules, request.url)
        if rule is None:
            return await self.network.handle_async_request(request)

        logger.debug("Cache rule matched", rule=rule.name, strategy=rule.strategy.value)

        if rule.strategy is Strategy.CACHE_FIRST:
            return await self._cache_first(request, rule)
        if rule.strategy is Strategy.NETWORK_FIRST:
            return await self._network_first(request, rule)
        return await self._stale_while_revalidate(request, rule)

    async def _cache_first(self, request: httpx.Request, rule: CacheRule) -> httpx.Response:
        cached = await self._match(rule.group, request)
        if cached is not None:
            return cached

        try:
            return await self._fetch_and_cache(request, rule.group)
        except httpx.TransportError as e:
            logger.warning("Cache-first fetch failed", url=str(request.url), error=str(e))
            return await self._fallback(request)

    async def _network_first(self, request: httpx.Request, rule: CacheRule) -> httpx.Response:
        try:
            return await asyncio.wait_for(
                self._fetch_and_cache(request, rule.group),
                timeout=rule.network_timeout_seconds,
            )
        except (httpx.TransportError, TimeoutError) as e:
            logger.info(
                "Network failed, serving from cache",
                url=str(request.url),
                error_type=type(e).__name__,
            )

        cached = await self._match(rule.group, request)
        if cached is not None:
            return cached
        return await self._fallback(request)

    async def _stale_while_revalidate(self, request: httpx.Request, rule: CacheRule) -> httpx.Response:
        cached = await self._match(rule.group, request)
        if cached is not None:
            self.lifecycle.wait_until(
                self._revalidate(request, rule.group), name=f"revalidate {request.url}"
            )
            return cached

        try:
            return await self._fetch_and_cache(request, rule.group)
        except httpx.TransportError as e:
            logger.warning("Fetch failed with nothing cached", url=str(request.url), error=str(e))
            return await self._fallback(request)

    async def _revalidate(self, request: httpx.Request, group: str) -> None:
        try:
            await self._fetch_and_cache(request, group)
        except httpx.TransportError as e:
            logger.debug("Background update failed", url=str(request.url), error=str(e))

    async def _fallback(self, request: httpx.Request) -> httpx.Response:
        """Navigations fall back to the cached shell, everything else to 503."""
        if is_navigation(request):
            shell_request = httpx.Request("GET", self.app_origin.join("/"))
            shell = await self._match(self.shell_group, shell_request)
            if shell is not None:
                return shell
        return offline_response(request)

    # =================================================================
    # NETWORK + STORAGE PRIMITIVES
    # =================================================================

    async def _fetch(self, request: httpx.Request) -> httpx.Response:
        """Delegate to the network and buffer the body so it can be stored."""
        response = await self.network.handle_async_request(request)
        try:
            body = await response.aread()
        finally:
            await response.aclose()

        headers = [
            (k, v) for k, v in response.headers.multi_items() if k.lower() not in _ENCODING_HEADERS
        ]
        return httpx.Response(response.status_code, headers=headers, content=body, request=request)

    async def _fetch_and_cache(self, request: httpx.Request, group: str) -> httpx.Response:
        response = await self._fetch(request)
        if response.is_success:
            await self._store(group, request, response)
        return response

    async def _store(self, group: str, request: httpx.Request, response: httpx.Response) -> None:
        entry = CacheEntry.from_response(request, response, response.content, now_ms=self._clock())
        await self.storage.put(group, entry)

    async def _match(self, group: str, request: httpx.Request) -> httpx.Response | None:
        entry = await self.storage.match(group, request_key(request.method, request.url))
        return entry.to_response(request) if entry is not None else None

    # =================================================================
    # LIFECYCLE
    # =================================================================

    async def install(self) -> None:
        """Precache the app shell. Individual failures are logged, not fatal."""
        self.state = WorkerState.INSTALLING
        logger.info("Installing cache manager", version=self.version)

        cached = 0
        for path in self.precache_manifest:
            request = httpx.Request("GET", self.app_origin.join(path))
            try:
                response = await self._fetch(request)
            except httpx.TransportError as e:
                logger.error("Precache failed", path=path, error=str(e))
                continue

            if response.is_success:
                await self._store(self.shell_group, request, response)
                cached += 1
            else:
                logger.warning("Precache skipped non-success", path=path, status_code=response.status_code)

        self.state = WorkerState.INSTALLED
        logger.info("Precached app shell", cached=cached, manifest=len(self.precache_manifest))

    async def activate(self) -> None:
        """Delete unknown cache groups, enforce bounds, and take control."""
        removed_groups = []
        for group in await self.storage.groups():
            if group not in self.known_groups:
                await self.storage.delete_group(group)
                removed_groups.append(group)
                logger.info("Deleting old cache", group=group)

        evicted = await self.enforce_limits()

        self.state = WorkerState.ACTIVATED
        self.controlling = True
        logger.info(
            "Cache manager activated",
            version=self.version,
            removed_groups=len(removed_groups),
            evicted_entries=evicted,
        )

    async def skip_waiting(self) -> None:
        if self.state is WorkerState.INSTALLED:
            await self.activate()

    async def enforce_limits(self) -> int:
        """Drop entries past a group's max age, then the oldest beyond max entries."""
        now = self._clock()
        removed = 0
        seen: set[str] = set()

        for rule in self.rules:
            if rule.group in seen:
                continue
            seen.add(rule.group)

            entries = await self.storage.entries(rule.group)
            max_age_ms = rule.max_age_seconds * 1000
            expired = {e.key for e in entries if e.age_ms(now) > max_age_ms}

            fresh = sorted((e for e in entries if e.key not in expired), key=lambda e: e.stored_at)
            overflow = len(fresh) - rule.max_entries
            if overflow > 0:
                expired.update(e.key for e in fresh[:overflow])

            if expired:
                removed += await self.storage.delete_entries(rule.group, sorted(expired))

        return removed

    async def clear_all(self) -> int:
        groups = await self.storage.groups()
        for group in groups:
            await self.storage.delete_group(group)
        logger.info("Cleared all cache groups", groups=len(groups))
        return len(groups)

    async def cache_urls(self, urls: list[str]) -> CacheUrlsReply:
        reply = CacheUrlsReply()
        for url in urls:
            request = httpx.Request("GET", self.app_origin.join(url))
            try:
                response = await self._fetch(request)
            except httpx.TransportError as e:
                logger.warning("Failed to cache url", url=url, error=str(e))
                reply.failed.append(url)
                continue

            if response.is_success:
                await self._store(self.runtime_group, request, response)
                reply.cached.append(url)
            else:
                reply.failed.append(url)
        return reply

    # =================================================================
    # CONTROL MESSAGES
    # =================================================================

    async def handle_message(self, raw: dict) -> BaseModel | None:
        """Apply a control message from the page; returns a reply when one is due."""
        try:
            message = control_message_adapter.validate_python(raw)
        except ValidationError as e:
            logger.warning("Ignoring malformed control message", error=str(e))
            return None

        logger.info("Control message received", type=message.type)

        if isinstance(message, SkipWaitingMessage):
            await self.skip_waiting()
            return None
        if isinstance(message, ClearCacheMessage):
            await self.clear_all()
            return None
        if isinstance(message, CacheUrlsMessage):
            return await self.cache_urls(message.urls)
        if isinstance(message, GetCacheSizeMessage):
            # Placeholder reply; the size is not computed.
            return CacheSizeReply()
        return None


class CachingTransport(httpx.AsyncBaseTransport):
    """httpx transport that routes every request through the cache manager."""

    def __init__(self, manager: RuntimeCacheManager):
        self.manager = manager

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        return await self.manager.handle(request)

    async def aclose(self) -> None:
        await self.manager.network.aclose()
