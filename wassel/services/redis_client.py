# wassel/services/redis_client.py
import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool

from wassel.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class RedisClient:
    """Pooled async Redis client with fallback handling (errors -> miss, logged)"""

    def __init__(self, url: str, max_connections: int = 20):
        self.url = url
        self.max_connections = max_connections
        self.pool = None
        self.client = None
        self._initialized = False

    async def initialize(self):
        """Initialize connection pool on startup"""
        if self._initialized:
            return

        try:
            logger.info("Attempting Redis connection", url_preview=self.url[:30] + "...")

            self.pool = ConnectionPool.from_url(
                self.url,
                max_connections=self.max_connections,
                retry_on_timeout=True,
                socket_connect_timeout=10,
                socket_timeout=10,
                health_check_interval=30,
                decode_responses=True,
            )
            self.client = redis.Redis(connection_pool=self.pool)

            result = await self.client.ping()
            logger.info("Redis ping successful", result=result)

            self._initialized = True

        except Exception as e:
            logger.error("Failed to initialize Redis client", error=str(e))
            self._initialized = False
            raise RuntimeError("Redis initialization failed") from e

    async def close(self):
        """Clean shutdown"""
        try:
            if self.client:
                await self.client.aclose()
            if self.pool:
                await self.pool.disconnect()
            self._initialized = False
            logger.info("Redis client closed")
        except Exception as e:
            logger.error("Error closing Redis client", error=str(e))

    async def _ensure_initialized(self):
        if not self._initialized:
            logger.warning("Redis not initialized, attempting to initialize")
            await self.initialize()

    async def ping(self) -> bool:
        try:
            await self._ensure_initialized()
            return bool(await self.client.ping())
        except Exception as e:
            logger.error("Redis ping failed", error=str(e))
            return False

    async def hget(self, key: str, field: str) -> str | None:
        try:
            await self._ensure_initialized()
            return await self.client.hget(key, field)
        except Exception as e:
            logger.error("Redis HGET failed", key=key[:30], error=str(e))
            return None

    async def hset(self, key: str, field: str, value: str) -> bool:
        try:
            await self._ensure_initialized()
            await self.client.hset(key, field, value)
            return True
        except Exception as e:
            logger.error("Redis HSET failed", key=key[:30], error=str(e))
            return False

    async def hdel(self, key: str, *fields: str) -> int:
        if not fields:
            return 0
        try:
            await self._ensure_initialized()
            return int(await self.client.hdel(key, *fields))
        except Exception as e:
            logger.error("Redis HDEL failed", key=key[:30], error=str(e))
            return 0

    async def hgetall(self, key: str) -> dict[str, str]:
        try:
            await self._ensure_initialized()
            return await self.client.hgetall(key)
        except Exception as e:
            logger.error("Redis HGETALL failed", key=key[:30], error=str(e))
            return {}

    async def delete(self, key: str) -> bool:
        try:
            await self._ensure_initialized()
            return await self.client.delete(key) > 0
        except Exception as e:
            logger.error("Redis DELETE failed", key=key[:30], error=str(e))
            return False

    async def eval_script(self, script: str, keys: list[str], *args):
        """Run a Lua script atomically. Errors propagate to the caller."""
        await self._ensure_initialized()
        return await self.client.eval(script, len(keys), *keys, *args)

    async def scan_keys(self, pattern: str) -> list[str]:
        """Collect keys matching `pattern` without blocking the server (SCAN)."""
        try:
            await self._ensure_initialized()
            return [key async for key in self.client.scan_iter(match=pattern)]
        except Exception as e:
            logger.error("Redis SCAN failed", pattern=pattern, error=str(e))
            return []
