"""Unit tests for TTLCache, RecommendationCache and CacheRegistry."""

import pytest

from app.utils.cache import CacheRegistry, RecommendationCache, TTLCache


class TestTTLCache:
    """Lazy expiry, eviction and metrics."""

    def test_hit_before_expiry(self, cache_clock):
        cache = TTLCache(ttl_seconds=10, clock=cache_clock)
        cache.set("a", 1)
        cache_clock.advance(9)
        assert cache.get("a") == 1
        assert cache.get_stats()["hits"] == 1

    def test_expired_entry_is_dropped_on_read(self, cache_clock):
        cache = TTLCache(ttl_seconds=10, clock=cache_clock)
        cache.set("a", 1)
        cache_clock.advance(10)
        # Still held until someone reads it
        assert len(cache) == 1
        assert cache.get("a") is None
        assert len(cache) == 0
        stats = cache.get_stats()
        assert stats["expirations"] == 1
        assert stats["misses"] == 1

    def test_lru_eviction(self, cache_clock):
        cache = TTLCache(ttl_seconds=10, maxsize=2, clock=cache_clock)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")
        cache.set("c", 3)
        assert cache.keys() == ["a", "c"]
        assert cache.get_stats()["evictions"] == 1

    def test_none_value_removes_entry(self, cache_clock):
        cache = TTLCache(ttl_seconds=10, clock=cache_clock)
        cache.set("a", 1)
        cache.set("a", None)
        assert len(cache) == 0

    def test_disabled_cache_never_stores(self):
        cache = TTLCache(enabled=False)
        cache.set("a", 1)
        assert cache.get("a") is None
        assert cache.get_stats()["enabled"] is False

    def test_hit_rate(self, cache_clock):
        cache = TTLCache(ttl_seconds=10, clock=cache_clock)
        cache.set("a", 1)
        cache.get("a")
        cache.get("missing")
        assert cache.get_stats()["hit_rate"] == pytest.approx(50.0)


class TestRecommendationCache:
    """Per-plant invalidation."""

    def test_clear_plant_only_touches_that_plant(self, recommendation_cache):
        recommendation_cache.set(recommendation_cache.make_key(1, "aaa"), "p1-a")
        recommendation_cache.set(recommendation_cache.make_key(1, "bbb"), "p1-b")
        recommendation_cache.set(recommendation_cache.make_key(2, "aaa"), "p2-a")

        assert recommendation_cache.clear_plant(1) == 2
        assert recommendation_cache.keys() == [(2, "aaa")]

    def test_make_key_coerces_plant_id(self):
        assert RecommendationCache.make_key("7", "abc") == (7, "abc")

    def test_clear_plant_bumps_generation(self, recommendation_cache):
        assert recommendation_cache.generation(1) == 0
        recommendation_cache.clear_plant(1)
        assert recommendation_cache.generation(1) == 1
        assert recommendation_cache.generation(2) == 0

    def test_write_from_before_a_clear_is_dropped(self, recommendation_cache):
        key = recommendation_cache.make_key(1, "aaa")
        generation = recommendation_cache.generation(1)
        recommendation_cache.clear_plant(1)

        assert recommendation_cache.set_if_generation(key, generation, "stale") is False
        assert recommendation_cache.get(key) is None

    def test_write_with_current_generation_is_stored(self, recommendation_cache):
        key = recommendation_cache.make_key(1, "aaa")
        recommendation_cache.clear_plant(2)

        assert recommendation_cache.set_if_generation(key, recommendation_cache.generation(1), "fresh") is True
        assert recommendation_cache.get(key) == "fresh"


class TestCacheRegistry:
    """Registration and aggregated stats."""

    def test_duplicate_name_rejected(self):
        registry = CacheRegistry()
        registry.register("recommendations", TTLCache())
        with pytest.raises(ValueError):
            registry.register("recommendations", TTLCache())

    def test_stats_keyed_by_name(self):
        registry = CacheRegistry()
        registry.register("recommendations", RecommendationCache())
        stats = registry.get_all_stats()
        assert list(stats) == ["recommendations"]
        assert stats["recommendations"]["ttl_seconds"] == RecommendationCache.DEFAULT_TTL_SECONDS
