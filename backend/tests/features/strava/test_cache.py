"""
Tests for the in-memory response cache.
"""

from fitsync.features.strava.cache import ResponseCache, get_cache_key


# =============================================================================
# Cache keys
# =============================================================================

class TestCacheKey:
    """Key construction from endpoint and params."""

    def test_endpoint_without_params(self):
        assert get_cache_key("/athlete") == "/athlete"
        assert get_cache_key("/athlete", {}) == "/athlete"

    def test_params_sorted_by_name(self):
        first = get_cache_key("/athlete/activities", {"per_page": 30, "page": 1})
        second = get_cache_key("/athlete/activities", {"page": 1, "per_page": 30})

        assert first == second
        assert first == "/athlete/activities?page=1&per_page=30"

    def test_boolean_params_lowercased(self):
        key = get_cache_key("/activities/5", {"include_all_efforts": True})
        assert key == "/activities/5?include_all_efforts=true"


# =============================================================================
# Expiry
# =============================================================================

class TestResponseCache:
    """Per-entry TTL and lazy eviction."""

    def test_get_before_expiry(self, clock):
        cache = ResponseCache(clock=clock)
        cache.set("/athlete", {"id": 1}, ttl=600)

        clock.advance(599)

        assert cache.get("/athlete") == {"id": 1}
        assert cache.has("/athlete")

    def test_expired_entry_is_absent_and_evicted(self, clock):
        cache = ResponseCache(clock=clock)
        cache.set("/athlete", {"id": 1}, ttl=10)

        clock.advance(11)

        assert cache.get("/athlete") is None
        assert not cache.has("/athlete")
        assert len(cache) == 0

    def test_default_ttl(self, clock):
        cache = ResponseCache(default_ttl=300, clock=clock)
        cache.set("k", "v")

        clock.advance(300)
        assert cache.get("k") == "v"

        clock.advance(1)
        assert cache.get("k") is None

    def test_set_replaces_entry(self, clock):
        cache = ResponseCache(clock=clock)
        cache.set("k", "old", ttl=5)
        clock.advance(4)
        cache.set("k", "new", ttl=5)
        clock.advance(4)

        assert cache.get("k") == "new"

    def test_delete_and_clear(self, clock):
        cache = ResponseCache(clock=clock)
        cache.set("a", 1)
        cache.set("b", 2)

        cache.delete("a")
        cache.delete("missing")
        assert cache.get("a") is None
        assert cache.get("b") == 2

        cache.clear()
        assert len(cache) == 0

    def test_falsy_values_are_cached(self, clock):
        cache = ResponseCache(clock=clock)
        cache.set("/athlete/activities?page=9", [])

        assert cache.has("/athlete/activities?page=9")
        assert cache.get("/athlete/activities?page=9") == []


class TestCacheSweep:
    """Periodic cleanup of expired entries."""

    def test_cleanup_returns_removed_count(self, clock):
        cache = ResponseCache(clock=clock)
        cache.set("short", 1, ttl=1)
        cache.set("long", 2, ttl=100)

        clock.advance(2)

        assert cache.cleanup() == 1
        assert len(cache) == 1

    def test_every_tenth_write_sweeps(self, clock):
        cache = ResponseCache(sweep_every=10, clock=clock)
        for i in range(5):
            cache.set(f"stale-{i}", i, ttl=1)
        clock.advance(2)

        for i in range(4):
            cache.set(f"fresh-{i}", i, ttl=100)
        # Nine writes so far, stale entries still held
        assert len(cache) == 9

        cache.set("fresh-4", 4, ttl=100)
        assert len(cache) == 5

    def test_stats(self, clock):
        cache = ResponseCache(sweep_every=0, clock=clock)
        cache.set("a", 1, ttl=1)
        cache.set("b", 2, ttl=100)
        cache.set("c", 3, ttl=100)
        clock.advance(5)

        assert cache.stats() == {"total": 3, "valid": 2, "expired": 1}
