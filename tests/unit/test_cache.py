"""Unit tests for the TTL cache and cache keys."""

from datetime import datetime, timezone

import pytest

from eng_stats.models import DateRange
from eng_stats.storage.cache import TTLCache, build_cache_key


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.mark.unit
class TestTTLCache:
    """Test TTLCache expiry and eviction."""

    @pytest.fixture
    def clock(self):
        """Clock starting at zero."""
        return FakeClock()

    @pytest.fixture
    def cache(self, clock):
        """Cache driven by the fake clock."""
        return TTLCache(default_ttl=60, clock=clock)

    def test_get_before_and_after_expiry(self, cache, clock):
        """Test an entry is served through its deadline and dropped after it."""
        cache.set("k", "v", 1)

        clock.advance(1.0)
        assert cache.get("k") == "v"

        clock.advance(0.5)
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_default_ttl(self, cache, clock):
        """Test entries stored without a TTL use the default."""
        cache.set("k", {"total": 1})

        clock.advance(59)
        assert cache.get("k") == {"total": 1}

        clock.advance(2)
        assert cache.get("k") is None

    def test_overwrite_resets_deadline(self, cache, clock):
        """Test a second set replaces the value and expiry."""
        cache.set("k", 1, 10)
        clock.advance(8)
        cache.set("k", 2, 10)
        clock.advance(8)

        assert cache.get("k") == 2

    def test_missing_key(self, cache):
        """Test absent keys."""
        assert cache.get("nope") is None
        assert "nope" not in cache

    def test_non_positive_ttl_rejected(self, cache):
        """Test zero and negative TTLs."""
        with pytest.raises(ValueError):
            cache.set("k", "v", 0)
        with pytest.raises(ValueError):
            cache.set("k", "v", -5)
        with pytest.raises(ValueError):
            TTLCache(default_ttl=0)

    def test_delete_and_clear(self, cache):
        """Test single-key and full eviction."""
        cache.set("a", 1)
        cache.set("b", 2)

        cache.delete("a")
        cache.delete("missing")
        assert "a" not in cache
        assert "b" in cache

        cache.clear()
        assert len(cache) == 0

    def test_delete_by_prefix(self, cache):
        """Test prefix eviction leaves other keys alone."""
        cache.set("github-stats:{\"source\": \"alice\"}", 1)
        cache.set("github-stats:{\"source\": \"bob\"}", 2)
        cache.set("jira-stats:{\"source\": \"alice\"}", 3)

        removed = cache.delete_by_prefix("github-stats:")

        assert removed == 2
        assert cache.get("jira-stats:{\"source\": \"alice\"}") == 3
        assert cache.delete_by_prefix("gitlab-stats:") == 0

    def test_cleanup_sweeps_expired(self, cache, clock):
        """Test eager removal of stale entries."""
        cache.set("short", 1, 5)
        cache.set("long", 2, 50)
        clock.advance(10)

        assert cache.cleanup() == 1
        assert len(cache) == 1
        assert cache.get("long") == 2


@pytest.mark.unit
class TestBuildCacheKey:
    """Test deterministic cache keys."""

    def test_parameter_order_does_not_matter(self):
        """Test keyword order is normalized."""
        first = build_cache_key("jira-stats", source="alice", date_range={"start": "2025-01-01", "end": None})
        second = build_cache_key("jira-stats", date_range={"end": None, "start": "2025-01-01"}, source="alice")

        assert first == second
        assert first.startswith("jira-stats:")

    def test_distinct_queries_distinct_keys(self):
        """Test keys differ when any parameter differs."""
        keys = {
            build_cache_key("jira-stats", source="alice", date_range=None),
            build_cache_key("jira-stats", source="bob", date_range=None),
            build_cache_key("jira-stats", source="alice", date_range={"start": None, "end": None}),
            build_cache_key("jira-velocity", source="alice", date_range=None),
        }
        assert len(keys) == 4

    def test_non_json_parameters(self):
        """Test datetimes and records serialize into the key."""
        when = datetime(2025, 1, 1, tzinfo=timezone.utc)

        key = build_cache_key("op", when=when, date_range=DateRange(start=when))

        assert "2025-01-01T00:00:00+00:00" in key
        assert key == build_cache_key("op", date_range=DateRange(start=when), when=when)
