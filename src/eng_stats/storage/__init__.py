"""Storage module for cached engine results."""

from .cache import COMPUTED_STATS_TTL, RAW_COLLECTION_TTL, CacheBackend, TTLCache, build_cache_key

__all__ = ["COMPUTED_STATS_TTL", "RAW_COLLECTION_TTL", "CacheBackend", "TTLCache", "build_cache_key"]
