"""Small in-process TTL cache for external lookups."""

from __future__ import annotations

import time
from typing import Any, Awaitable, Callable, TypeVar

T = TypeVar("T")


class TTLCache:
    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[float, Any]] = {}

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: Any, ttl: float) -> None:
        self._entries[key] = (self._clock() + ttl, value)

    def clear(self) -> None:
        self._entries.clear()

    async def memo(
        self, key: str, ttl: float, fn: Callable[[], Awaitable[T]]
    ) -> T:
        """Return the cached value for *key* or compute and store it."""
        cached = self.get(key)
        if cached is not None:
            return cached
        fresh = await fn()
        self.set(key, fresh, ttl)
        return fresh
