from fnmatch import fnmatchcase

import pytest

from wassel.models.domain.cache_domain import CacheEntry
from wassel.worker.cache_storage import MemoryCacheStorage, RedisCacheStorage


class FakeRedis:
    """Hash subset of RedisClient backed by dicts."""

    def __init__(self):
        self.hashes: dict[str, dict[str, str]] = {}

    async def hget(self, key, field):
        return self.hashes.get(key, {}).get(field)

    async def hset(self, key, field, value):
        self.hashes.setdefault(key, {})[field] = value
        return True

    async def hdel(self, key, *fields):
        bucket = self.hashes.get(key, {})
        removed = sum(1 for f in fields if bucket.pop(f, None) is not None)
        if key in self.hashes and not bucket:
            del self.hashes[key]
        return removed

    async def hgetall(self, key):
        return dict(self.hashes.get(key, {}))

    async def delete(self, key):
        return self.hashes.pop(key, None) is not None

    async def scan_keys(self, pattern):
        return [k for k in self.hashes if fnmatchcase(k, pattern)]


def entry(url: str, stored_at: int = 0) -> CacheEntry:
    return CacheEntry(key=f"GET {url}", url=url, status_code=200, body_b64="eA==", stored_at=stored_at)


@pytest.fixture(params=["memory", "redis"])
def storage(request):
    if request.param == "memory":
        return MemoryCacheStorage()
    return RedisCacheStorage(FakeRedis())


@pytest.mark.asyncio
async def test_put_match_and_overwrite(storage):
    await storage.put("wassel-images-v1", entry("https://app.test/a.png", stored_at=1))
    await storage.put("wassel-images-v1", entry("https://app.test/a.png", stored_at=2))

    found = await storage.match("wassel-images-v1", "GET https://app.test/a.png")

    assert found is not None and found.stored_at == 2
    assert found.body() == b"x"
    assert len(await storage.entries("wassel-images-v1")) == 1
    assert await storage.match("wassel-images-v1", "GET https://app.test/b.png") is None
    assert await storage.match("wassel-api-v1", "GET https://app.test/a.png") is None


@pytest.mark.asyncio
async def test_groups_and_group_deletion(storage):
    await storage.put("wassel-images-v1", entry("https://app.test/a.png"))
    await storage.put("wassel-api-v1", entry("https://app.test/api/x"))

    assert sorted(await storage.groups()) == ["wassel-api-v1", "wassel-images-v1"]
    assert await storage.delete_group("wassel-api-v1") is True
    assert await storage.delete_group("wassel-api-v1") is False
    assert await storage.groups() == ["wassel-images-v1"]


@pytest.mark.asyncio
async def test_delete_entries_counts_removed(storage):
    await storage.put("g", entry("https://app.test/a"))
    await storage.put("g", entry("https://app.test/b"))

    removed = await storage.delete_entries("g", ["GET https://app.test/a", "GET https://app.test/zzz"])

    assert removed == 1
    assert [e.url for e in await storage.entries("g")] == ["https://app.test/b"]


@pytest.mark.asyncio
async def test_unreadable_redis_entry_is_skipped():
    redis = FakeRedis()
    storage = RedisCacheStorage(redis)
    await storage.put("g", entry("https://app.test/a"))
    redis.hashes["wassel-cache:g"]["GET https://app.test/bad"] = "{not json"

    assert [e.url for e in await storage.entries("g")] == ["https://app.test/a"]
    assert await storage.match("g", "GET https://app.test/bad") is None
