# wassel/worker/cache_storage.py
"""
Storage backends for named cache groups.

A cache group is an independently clearable partition of CacheEntry records
keyed by request identity. The runtime cache manager owns these records; the
local offline store is never touched from here.
"""

from typing import Protocol

from pydantic import ValidationError

from wassel.infrastructure.observability.logging import get_logger
from wassel.models.domain.cache_domain import CacheEntry
from wassel.services.redis_client import RedisClient

logger = get_logger(__name__)


class CacheStorage(Protocol):
    async def match(self, group: str, key: str) -> CacheEntry | None: ...

    async def put(self, group: str, entry: CacheEntry) -> None: ...

    async def delete_entries(self, group: str, keys: list[str]) -> int: ...

    async def entries(self, group: str) -> list[CacheEntry]: ...

    async def groups(self) -> list[str]: ...

    async def delete_group(self, group: str) -> bool: ...


class MemoryCacheStorage:
    """Process-local cache groups. Lost on restart."""

    def __init__(self):
        self._groups: dict[str, dict[str, CacheEntry]] = {}

    async def match(self, group: str, key: str) -> CacheEntry | None:
        return self._groups.get(group, {}).get(key)

    async def put(self, group: str, entry: CacheEntry) -> None:
        self._groups.setdefault(group, {})[entry.key] = entry

    async def delete_entries(self, group: str, keys: list[str]) -> int:
        bucket = self._groups.get(group, {})
        return sum(1 for key in keys if bucket.pop(key, None) is not None)

    async def entries(self, group: str) -> list[CacheEntry]:
        return list(self._groups.get(group, {}).values())

    async def groups(self) -> list[str]:
        return list(self._groups)

    async def delete_group(self, group: str) -> bool:
        return self._groups.pop(group, None) is not None


class RedisCacheStorage:
    """One Redis hash per cache group: field = request key, value = entry JSON."""

    def __init__(self, redis_client: RedisClient, prefix: str = "wassel-cache"):
        self.redis = redis_client
        self.prefix = prefix

    def _key(self, group: str) -> str:
        return f"{self.prefix}:{group}"

    @staticmethod
    def _decode(raw: str) -> CacheEntry | None:
        try:
            return CacheEntry.model_validate_json(raw)
        except ValidationError as e:
            logger.warning("Dropping unreadable cache entry", error=str(e))
            return None

    async def match(self, group: str, key: str) -> CacheEntry | None:
        raw = await self.redis.hget(self._key(group), key)
        return self._decode(raw) if raw else None

    async def put(self, group: str, entry: CacheEntry) -> None:
        await self.redis.hset(self._key(group), entry.key, entry.model_dump_json())

    async def delete_entries(self, group: str, keys: list[str]) -> int:
        return await self.redis.hdel(self._key(group), *keys)

    async def entries(self, group: str) -> list[CacheEntry]:
        raw_entries = await self.redis.hgetall(self._key(group))
        decoded = (self._decode(raw) for raw in raw_entries.values())
        return [entry for entry in decoded if entry is not None]

    async def groups(self) -> list[str]:
        keys = await self.redis.scan_keys(f"{self.prefix}:*")
        return [key.split(":", 1)[1] for key in keys]

    async def delete_group(self, group: str) -> bool:
        return await self.redis.delete(self._key(group))
