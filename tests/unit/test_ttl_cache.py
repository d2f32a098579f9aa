from wassel.services.ttl_cache import TTLCache


class Ticker:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def test_value_expires_after_ttl():
    ticker = Ticker()
    cache = TTLCache(default_ttl=30, clock=ticker)

    cache.set("trip:T1", {"id": "T1"})
    ticker.now += 30
    assert cache.get("trip:T1") == {"id": "T1"}

    ticker.now += 1
    assert cache.get("trip:T1") is None
    assert len(cache) == 0


def test_per_entry_ttl_overrides_default():
    ticker = Ticker()
    cache = TTLCache(default_ttl=300, clock=ticker)

    cache.set("short", 1, ttl_seconds=5)
    cache.set("long", 2)
    ticker.now += 10

    assert cache.has("short") is False
    assert cache.has("long") is True


def test_delete_and_clear():
    cache = TTLCache()
    cache.set("a", 1)
    cache.set("b", 2)

    cache.delete("a")
    cache.delete("missing")
    assert cache.get("a") is None
    assert cache.get("b") == 2

    cache.clear()
    assert len(cache) == 0
