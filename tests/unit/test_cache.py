"""Unit tests for the TTL cache."""

import pytest

from finresearch.data.cache import TTLCache


class TestTTLCache:
    """Test size-bounded cache with lazy expiry."""

    @pytest.fixture
    def cache(self, clock):
        return TTLCache(max_size=2, ttl_seconds=60, clock=clock, name="test")

    def test_miss_returns_none(self, cache):
        assert cache.get("missing") is None
        assert cache.misses == 1

    def test_put_and_get(self, cache):
        cache.put("a", 1)
        assert cache.get("a") == 1
        assert cache.hits == 1

    def test_evicts_oldest_insertion_not_least_recently_read(self, cache):
        cache.put("a", 1)
        cache.put("b", 2)
        # Reading does not promote "a"
        assert cache.get("a") == 1

        cache.put("c", 3)

        assert cache.get("a") is None
        assert cache.get("b") == 2
        assert cache.get("c") == 3
        assert len(cache) == 2

    def test_overwrite_moves_key_to_newest(self, cache):
        cache.put("a", 1)
        cache.put("b", 2)
        cache.put("a", 10)

        cache.put("c", 3)

        assert cache.keys() == ["a", "c"]
        assert cache.get("a") == 10

    def test_stale_entry_is_a_miss_but_stays_stored(self, cache, clock):
        cache.put("a", 1)
        clock.advance(61)

        assert cache.get("a") is None
        assert len(cache) == 1
        assert "a" in cache.keys()

    def test_entry_at_exact_ttl_is_still_fresh(self, cache, clock):
        cache.put("a", 1)
        clock.advance(60)
        assert cache.get("a") == 1

    def test_overwrite_refreshes_stale_entry(self, cache, clock):
        cache.put("a", 1)
        clock.advance(120)
        cache.put("a", 2)
        assert cache.get("a") == 2

    def test_no_ttl_never_expires(self, clock):
        cache = TTLCache(max_size=5, ttl_seconds=None, clock=clock)
        cache.put("a", 1)
        clock.advance(10 ** 9)
        assert cache.get("a") == 1

    def test_contains_respects_expiry(self, cache, clock):
        cache.put("a", 1)
        assert "a" in cache
        clock.advance(61)
        assert "a" not in cache

    def test_stats(self, cache, clock):
        cache.put("a", 1)
        cache.put("b", 2)
        cache.get("a")
        cache.get("zzz")
        clock.advance(61)

        stats = cache.get_stats()

        assert stats["name"] == "test"
        assert stats["entries"] == 2
        assert stats["stale_entries"] == 2
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["max_size"] == 2

    def test_clear(self, cache):
        cache.put("a", 1)
        cache.clear()
        assert len(cache) == 0

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            TTLCache(max_size=0)
