"""Cache-wrapped facade over the statistics calculators."""

import copy
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from .calculators.item_stats import ItemAdapter, calculate_item_stats
from .calculators.jira_stats import calculate_jira_stats
from .calculators.velocity import calculate_velocity
from .config import EngineConfig
from .dates import DateRangeRequest
from .extractors.story_points import StoryPointResolver
from .logging import get_logger
from .storage.cache import CacheBackend, TTLCache, build_cache_key

logger = get_logger(__name__)


class StatsService:
    """
    Computes dashboard statistics and memoizes them in a TTL cache.

    Results are plain dictionaries, so a cached value is exactly what a fresh
    computation returns. Each call returns its own deep copy, so mutating a
    result never alters the cached entry. ``source`` names the collection the
    caller passed in (for example a user or credential set) and, with the
    range and any explicit ``now``, is part of every cache key. The cache
    is fail-open: if the backend raises, the value is
    computed and returned uncached.
    """

    def __init__(self, cache: Optional[CacheBackend] = None, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()
        self.cache = cache if cache is not None else TTLCache(default_ttl=self.config.computed_stats_ttl)
        self.resolver = StoryPointResolver(hours_per_point=self.config.hours_per_point)

    def _get_or_compute(self, key: str, compute: Callable[[], Any], ttl_seconds: float) -> Any:
        try:
            cached = self.cache.get(key)
        except Exception as e:
            logger.warning(f"Cache read failed for {key}: {e}")
            cached = None

        if cached is not None:
            logger.debug(f"Cache hit: {key}")
            return copy.deepcopy(cached)

        value = compute()

        try:
            self.cache.set(key, value, ttl_seconds)
        except Exception as e:
            logger.warning(f"Cache write failed for {key}: {e}")

        return copy.deepcopy(value)

    def item_stats(
        self,
        provider: str,
        items: List[Any],
        comments: Optional[List[Any]] = None,
        date_range: DateRangeRequest = None,
        source: str = "default",
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """Item statistics for a provider's pull requests, merge requests or issues."""
        adapter = ItemAdapter.for_provider(provider)
        key = build_cache_key(f"{adapter.name}-stats", source=source, date_range=date_range, now=now)

        def compute() -> Dict[str, Any]:
            stats = calculate_item_stats(
                items,
                comments=comments,
                date_range=date_range,
                adapter=adapter,
                now=now,
                default_start=self.config.default_start,
                recent_limit=self.config.recent_items_limit,
                trailing_months=self.config.trailing_months,
            )
            return stats.to_dict()

        return self._get_or_compute(key, compute, self.config.computed_stats_ttl)

    def velocity(
        self,
        issues: List[Any],
        date_range: DateRangeRequest = None,
        source: str = "default",
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """Sprint velocity for a set of Jira issues."""
        key = build_cache_key("jira-velocity", source=source, date_range=date_range, now=now)

        def compute() -> Dict[str, Any]:
            stats = calculate_velocity(
                issues, date_range, resolver=self.resolver, now=now, default_start=self.config.default_start
            )
            return stats.to_dict()

        return self._get_or_compute(key, compute, self.config.computed_stats_ttl)

    def jira_stats(
        self,
        issues: List[Any],
        date_range: DateRangeRequest = None,
        source: str = "default",
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """Full Jira dashboard statistics."""
        key = build_cache_key("jira-stats", source=source, date_range=date_range, now=now)

        def compute() -> Dict[str, Any]:
            stats = calculate_jira_stats(
                issues,
                date_range=date_range,
                resolver=self.resolver,
                now=now,
                default_start=self.config.default_start,
                trailing_months=self.config.trailing_months,
            )
            return stats.to_dict()

        return self._get_or_compute(key, compute, self.config.computed_stats_ttl)

    def remember_collection(
        self,
        name: str,
        fetch: Callable[[], List[Any]],
        source: str = "default",
        **params: Any,
    ) -> List[Any]:
        """
        Return a raw fetched collection, calling ``fetch`` only on a cache miss.

        Raw collections live longer than computed statistics because they are
        expensive to refetch and shared by every range-specific computation.
        """
        key = build_cache_key(f"raw:{name}", source=source, **params)
        return self._get_or_compute(key, fetch, self.config.raw_collection_ttl)

    def invalidate(self, prefix: str = "") -> None:
        """Drop cached entries whose key starts with ``prefix`` (everything when empty)."""
        try:
            if prefix:
                self.cache.delete_by_prefix(prefix)
            else:
                self.cache.clear()
        except Exception as e:
            logger.warning(f"Cache invalidation failed for prefix {prefix!r}: {e}")
