"""In-memory TTL cache for fetched collections and computed statistics."""

import json
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Dict, Optional

from ..logging import get_logger

logger = get_logger(__name__)

# Raw provider collections are expensive to refetch and change slowly
RAW_COLLECTION_TTL = 300

# Computed statistics are cheap to rebuild and specific to one query
COMPUTED_STATS_TTL = 120


@dataclass
class CacheEntry:
    """A cached value and the clock reading after which it is stale."""

    value: Any
    expires_at: float


class CacheBackend(ABC):
    """Abstract base class for cache backends."""

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None when absent or expired."""
        pass

    @abstractmethod
    def set(self, key: str, value: Any, ttl_seconds: Optional[float] = None) -> None:
        """Store a value for ``ttl_seconds``."""
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a single key."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Remove every entry."""
        pass

    @abstractmethod
    def delete_by_prefix(self, prefix: str) -> int:
        """Remove every key starting with ``prefix``; return how many were removed."""
        pass


class TTLCache(CacheBackend):
    """
    Key/value store whose entries expire after a per-entry TTL.

    Expiry is lazy: an entry past its deadline is dropped when it is next
    read. ``cleanup()`` sweeps all stale entries at once for callers that
    want to bound memory, but nothing depends on it running.
    """

    def __init__(self, default_ttl: float = 60, clock: Callable[[], float] = time.monotonic):
        """
        Initialize the cache.

        Args:
            default_ttl: TTL in seconds used when ``set`` is called without one
            clock: Monotonic time source in seconds; injectable for tests
        """
        if default_ttl <= 0:
            raise ValueError(f"default_ttl must be positive, got {default_ttl}")
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None when absent or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None

        if self._clock() > entry.expires_at:
            self._entries.pop(key, None)
            return None

        return entry.value

    def set(self, key: str, value: Any, ttl_seconds: Optional[float] = None) -> None:
        """Store a value for ``ttl_seconds`` (the default TTL when omitted)."""
        ttl = self.default_ttl if ttl_seconds is None else ttl_seconds
        if ttl <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl}")
        self._entries[key] = CacheEntry(value=value, expires_at=self._clock() + ttl)

    def delete(self, key: str) -> None:
        """Remove a single key."""
        self._entries.pop(key, None)

    def clear(self) -> None:
        """Remove every entry."""
        self._entries.clear()

    def delete_by_prefix(self, prefix: str) -> int:
        """Remove every key starting with ``prefix``."""
        # Snapshot the keys; other requests may be writing concurrently
        matching = [key for key in list(self._entries) if key.startswith(prefix)]
        for key in matching:
            self._entries.pop(key, None)
        if matching:
            logger.debug(f"Evicted {len(matching)} cache entries with prefix {prefix!r}")
        return len(matching)

    def cleanup(self) -> int:
        """Drop all expired entries; return how many were dropped."""
        now = self._clock()
        expired = [key for key, entry in list(self._entries.items()) if now > entry.expires_at]
        for key in expired:
            self._entries.pop(key, None)
        return len(expired)

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        return len(self._entries)


def _serialize_param(value: Any) -> Any:
    """JSON fallback for values json.dumps cannot encode natively."""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if hasattr(value, "to_dict"):
        return value.to_dict()
    return str(value)


def build_cache_key(operation: str, **params: Any) -> str:
    """
    Build a deterministic cache key from an operation name and its parameters.

    Parameters are serialized as sorted JSON so that two logically different
    queries never collide and identical queries always produce the same key.
    """
    serialized = json.dumps(params, sort_keys=True, default=_serialize_param)
    return f"{operation}:{serialized}"
