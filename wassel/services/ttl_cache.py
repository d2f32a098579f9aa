# wassel/services/ttl_cache.py
"""Process-local key/value cache with per-entry expiry."""

import time
from collections.abc import Callable
from typing import Any

DEFAULT_TTL_SECONDS = 300


class TTLCache:
    """Expired entries are evicted lazily on read."""

    def __init__(self, default_ttl: float = DEFAULT_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: dict[str, tuple[Any, float]] = {}

    def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        ttl = self.default_ttl if ttl_seconds is None else ttl_seconds
        self._entries[key] = (value, self._clock() + ttl)

    def get(self, key: str) -> Any | None:
        item = self._entries.get(key)
        if item is None:
            return None

        value, expires_at = item
        if self._clock() > expires_at:
            del self._entries[key]
            return None
        return value

    def has(self, key: str) -> bool:
        return self.get(key) is not None

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
