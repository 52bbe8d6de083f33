"""Calendar-month bucketing of timestamped records."""

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable, List, Optional

from ..dates import DateField, DateRangeRequest, get_month_key, normalize_date_range, parse_date, resolve_field, resolve_now
from ..logging import get_logger
from ..models import DateRange, MonthBucket
from ..numeric import mean, round_to_tenth

logger = get_logger(__name__)


@dataclass
class MonthlyStats:
    """Month buckets spanning a range plus the average over active months."""

    buckets: List[MonthBucket] = field(default_factory=list)
    average_per_month: float = 0.0

    @property
    def total(self) -> int:
        return sum(bucket.count for bucket in self.buckets)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "monthly": [bucket.to_dict() for bucket in self.buckets],
            "averagePerMonth": self.average_per_month,
        }


def _month_index(value: datetime) -> int:
    return value.year * 12 + (value.month - 1)


def _months_between(first: int, last: int) -> List[MonthBucket]:
    return [MonthBucket(month=f"{index // 12:04d}-{index % 12 + 1:02d}") for index in range(first, last + 1)]


def generate_month_range(
    date_range: DateRange,
    now: Optional[datetime] = None,
    trailing_months: int = 12,
) -> List[MonthBucket]:
    """
    Generate a zero-count bucket for every UTC calendar month in the range.

    An unrestricted range spans the trailing ``trailing_months`` months
    ending with the current month. An open end runs through ``now``.
    """
    if not date_range.valid:
        return []

    now = resolve_now(now)

    if date_range.is_unrestricted:
        last = _month_index(now)
        return _months_between(last - (trailing_months - 1), last)

    start = date_range.start or now
    end = date_range.end or now
    return _months_between(_month_index(start), _month_index(end))


def calculate_monthly_stats(
    items: Iterable[Any],
    date_field: DateField,
    date_range: DateRangeRequest = None,
    now: Optional[datetime] = None,
    trailing_months: int = 12,
) -> MonthlyStats:
    """
    Count items per calendar month across the range.

    Every month of the range gets a bucket, including empty ones. The
    per-month average only considers months that have at least one item,
    so a quiet month does not drag the average toward zero.
    """
    now = resolve_now(now)
    normalized = normalize_date_range(date_range, now=now)

    counts: Counter = Counter()
    for item in items:
        parsed = parse_date(resolve_field(item, date_field))
        if parsed is None:
            continue
        if not normalized.contains(parsed):
            continue
        counts[get_month_key(parsed)] += 1

    buckets = generate_month_range(normalized, now=now, trailing_months=trailing_months)
    for bucket in buckets:
        bucket.count = counts.get(bucket.month, 0)

    active_counts = [bucket.count for bucket in buckets if bucket.count > 0]
    average = round_to_tenth(mean(active_counts)) if active_counts else 0.0

    return MonthlyStats(buckets=buckets, average_per_month=average)
