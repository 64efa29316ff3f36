"""Unit tests for the TTL result cache."""

import asyncio

import pytest

from gitmind.cache import ResultCache


class TestResultCache:
    """Tests for get/set and expiry."""

    def test_miss_returns_none(self, clock) -> None:
        """Test that an unknown key is a miss."""
        cache: ResultCache[str] = ResultCache(ttl_seconds=60, clock=clock)

        assert cache.get("missing") is None
        assert not cache.has("missing")

    def test_hit_within_ttl(self, clock) -> None:
        """Test that an entry is valid up to and including the TTL."""
        cache: ResultCache[str] = ResultCache(ttl_seconds=60, clock=clock)
        cache.set("k", "v")

        clock.advance(60)

        assert cache.get("k") == "v"

    def test_expired_entry_is_evicted(self, clock) -> None:
        """Test that an entry older than the TTL is removed on read."""
        cache: ResultCache[str] = ResultCache(ttl_seconds=60, clock=clock)
        cache.set("k", "v")

        clock.advance(60.5)

        assert cache.get("k") is None
        assert cache.size() == 0

    def test_set_refreshes_timestamp(self, clock) -> None:
        """Test that overwriting a key restarts its TTL."""
        cache: ResultCache[int] = ResultCache(ttl_seconds=10, clock=clock)
        cache.set("k", 1)
        clock.advance(8)
        cache.set("k", 2)
        clock.advance(8)

        assert cache.get("k") == 2

    def test_delete_and_clear(self, clock) -> None:
        """Test explicit removal."""
        cache: ResultCache[int] = ResultCache(ttl_seconds=10, clock=clock)
        cache.set("a", 1)
        cache.set("b", 2)

        cache.delete("a")
        assert cache.get("a") is None
        assert cache.size() == 1

        cache.clear()
        assert cache.size() == 0


class TestGetOrSet:
    """Tests for the async get_or_set helper."""

    def test_factory_called_once(self, clock) -> None:
        """Test that the second call is served from the cache."""
        cache: ResultCache[str] = ResultCache(ttl_seconds=60, clock=clock)
        calls: list[int] = []

        async def factory() -> str:
            calls.append(1)
            return "value"

        async def run() -> tuple[str, str]:
            return await cache.get_or_set("k", factory), await cache.get_or_set("k", factory)

        assert asyncio.run(run()) == ("value", "value")
        assert len(calls) == 1

    def test_failure_is_not_cached(self, clock) -> None:
        """Test that a failing factory leaves nothing behind."""
        cache: ResultCache[str] = ResultCache(ttl_seconds=60, clock=clock)

        async def factory() -> str:
            raise RuntimeError("upstream down")

        with pytest.raises(RuntimeError, match="upstream down"):
            asyncio.run(cache.get_or_set("k", factory))

        assert cache.size() == 0
