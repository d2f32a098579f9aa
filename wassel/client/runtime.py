# wassel/client/runtime.py
"""
Client-side runtime: one object owning every offline collaborator.

    runtime = ClientRuntime(settings, notifier=..., clients=...)
    await runtime.start()                 # migrate store, precache, activate
    await runtime.store.save_trip_offline(trip)
    await runtime.go_online(user_id)      # flush the backlog
    await runtime.close()                 # drain background work

All outgoing requests go through `runtime.http`, whose transport is the
runtime cache manager.
"""

import httpx

from wassel.config import Settings
from wassel.infrastructure.observability.logging import get_logger
from wassel.models.domain.offline_domain import SyncReport
from wassel.offline.store import LocalStore
from wassel.offline.sync_coordinator import SyncCoordinator
from wassel.services.backend_client import BackendClient
from wassel.services.redis_client import RedisClient
from wassel.services.task_queue import TaskQueue
from wassel.worker.cache_manager import CachingTransport, RuntimeCacheManager
from wassel.worker.cache_storage import CacheStorage, MemoryCacheStorage, RedisCacheStorage
from wassel.worker.lifecycle import Lifecycle
from wassel.worker.push_bridge import ClientRegistry, Notifier, PushBridge

logger = get_logger(__name__)

RETENTION_SWEEP_JOB = "retention-sweep"


class ClientRuntime:
    def __init__(
        self,
        settings: Settings,
        *,
        network: httpx.AsyncBaseTransport | None = None,
        storage: CacheStorage | None = None,
        notifier: Notifier | None = None,
        clients: ClientRegistry | None = None,
        access_token: str | None = None,
    ):
        self.settings = settings
        self.lifecycle = Lifecycle()
        self.store = LocalStore(settings.OFFLINE_DB_PATH)

        self.redis: RedisClient | None = None
        if storage is None:
            storage = self._build_cache_storage()

        self.cache = RuntimeCacheManager(
            network or httpx.AsyncHTTPTransport(),
            storage,
            app_origin=settings.APP_ORIGIN,
            version=settings.CACHE_VERSION,
            lifecycle=self.lifecycle,
        )
        self.http = httpx.AsyncClient(
            transport=CachingTransport(self.cache),
            base_url=settings.BACKEND_BASE_URL,
            timeout=settings.UPSTREAM_TIMEOUT_S,
        )

        self.backend = BackendClient(self.http, access_token=access_token)
        self.sync = SyncCoordinator(self.store, self.backend, max_attempts=settings.SYNC_MAX_ATTEMPTS)

        self.push: PushBridge | None = None
        if notifier is not None and clients is not None:
            self.push = PushBridge(notifier, clients, settings.APP_ORIGIN, lifecycle=self.lifecycle)

        self.jobs = TaskQueue(lifecycle=self.lifecycle)
        self.jobs.register_handler(RETENTION_SWEEP_JOB, self._run_retention_sweep)

    def _build_cache_storage(self) -> CacheStorage:
        if self.settings.CACHE_STORAGE == "redis":
            if self.settings.REDIS_URL:
                self.redis = RedisClient(self.settings.REDIS_URL)
                return RedisCacheStorage(self.redis)
            logger.warning("CACHE_STORAGE=redis without REDIS_URL, using memory")
        return MemoryCacheStorage()

    def set_access_token(self, token: str | None) -> None:
        self.backend.access_token = token

    async def start(self) -> None:
        if self.redis is not None:
            await self.redis.initialize()

        await self.store.initialize()
        await self.cache.install()
        await self.cache.activate()
        logger.info("Client runtime started", cache_version=self.settings.CACHE_VERSION)

    async def close(self) -> None:
        await self.jobs.wait_idle()
        await self.lifecycle.drain()
        await self.http.aclose()
        if self.redis is not None:
            await self.redis.close()
        logger.info("Client runtime closed")

    async def go_online(self, user_id: str) -> dict[str, SyncReport]:
        """Connectivity restored: flush the trip and message backlog."""
        logger.info("Connectivity restored, syncing offline data", user_id=user_id)
        return await self.sync.sync_all(user_id)

    async def post_message(self, raw: dict) -> dict | None:
        """Page -> worker control message; returns the serialized reply if any."""
        reply = await self.cache.handle_message(raw)
        return reply.model_dump() if reply is not None else None

    async def schedule_retention_sweep(self, max_age_ms: int | None = None) -> str:
        return await self.jobs.add_job(
            RETENTION_SWEEP_JOB,
            {"max_age_ms": max_age_ms or self.settings.retention_max_age_ms()},
        )

    async def _run_retention_sweep(self, payload: dict) -> None:
        result = await self.store.clear_old_data(max_age_ms=payload["max_age_ms"])
        logger.info("Retention sweep finished", **result)
