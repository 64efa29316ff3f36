"""TTL cache for expensive, idempotent results.

Two instances are used in practice: a short-lived one for raw structural
fetches (metadata, trees) and a long-lived one for derived analysis. Entries
expire lazily on read; there is no size-based eviction because the working
set is a single session.
"""

import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")

STRUCTURE_TTL_SECONDS = 10 * 60
ANALYSIS_TTL_SECONDS = 30 * 60


@dataclass
class CacheEntry(Generic[T]):
    """Cached value with the time it was stored."""

    data: T
    timestamp: float


class ResultCache(Generic[T]):
    """In-memory TTL cache keyed by string.

    Args:
        ttl_seconds: Entry lifetime; an entry is valid while
            `now - timestamp <= ttl_seconds`
        clock: Callable returning the current time in seconds
    """

    def __init__(
        self,
        ttl_seconds: float = STRUCTURE_TTL_SECONDS,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock or time.monotonic
        self._entries: dict[str, CacheEntry[T]] = {}

    def set(self, key: str, value: T) -> None:
        self._entries[key] = CacheEntry(data=value, timestamp=self._clock())

    def get(self, key: str) -> T | None:
        """Return the cached value, or None on miss or expiry."""
        entry = self._entries.get(key)
        if entry is None:
            return None

        if self._clock() - entry.timestamp > self.ttl_seconds:
            del self._entries[key]
            return None

        return entry.data

    def has(self, key: str) -> bool:
        return self.get(key) is not None

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def size(self) -> int:
        """Number of stored entries, including not-yet-evicted expired ones."""
        return len(self._entries)

    async def get_or_set(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        """Return the cached value or await `factory()` and cache its result.

        Failures from `factory` propagate and nothing is cached.
        """
        cached = self.get(key)
        if cached is not None:
            return cached

        value = await factory()
        self.set(key, value)
        return value
