"""Engine configuration."""

import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Mapping, Optional

from .storage.cache import COMPUTED_STATS_TTL, RAW_COLLECTION_TTL

# Dashboard default window starts here when a request carries no bounds
DEFAULT_START = datetime(2025, 7, 1, tzinfo=timezone.utc)


@dataclass
class EngineConfig:
    """Tunable constants shared by the calculators and the stats service."""

    default_start: datetime = DEFAULT_START
    hours_per_point: float = 8.0
    recent_items_limit: int = 5
    trailing_months: int = 12
    raw_collection_ttl: int = RAW_COLLECTION_TTL
    computed_stats_ttl: int = COMPUTED_STATS_TTL

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "EngineConfig":
        """
        Build a configuration from environment variables.

        Recognised variables:
            ENG_STATS_DEFAULT_START: ISO date the default window starts at
            ENG_STATS_RAW_TTL: seconds raw fetched collections stay cached
            ENG_STATS_STATS_TTL: seconds computed statistics stay cached

        Raises:
            ValueError: If a variable is set to an unusable value; the
                message names the variable
        """
        env = os.environ if environ is None else environ
        config = cls()

        default_start = env.get("ENG_STATS_DEFAULT_START")
        if default_start:
            try:
                config.default_start = parse_config_date(default_start)
            except ValueError:
                raise ValueError(
                    f"ENG_STATS_DEFAULT_START must be an ISO date such as 2025-07-01, got {default_start!r}"
                ) from None

        raw_ttl = env.get("ENG_STATS_RAW_TTL")
        if raw_ttl:
            config.raw_collection_ttl = _parse_ttl("ENG_STATS_RAW_TTL", raw_ttl)

        stats_ttl = env.get("ENG_STATS_STATS_TTL")
        if stats_ttl:
            config.computed_stats_ttl = _parse_ttl("ENG_STATS_STATS_TTL", stats_ttl)

        return config


def _parse_ttl(name: str, value: str) -> int:
    try:
        seconds = int(value)
    except ValueError:
        raise ValueError(f"{name} must be a whole number of seconds, got {value!r}") from None
    if seconds <= 0:
        raise ValueError(f"{name} must be positive, got {seconds}")
    return seconds


def parse_config_date(value: str) -> datetime:
    """Parse a YYYY-MM-DD (or full ISO) configuration value as a UTC datetime."""
    parsed = datetime.fromisoformat(value.strip())
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
