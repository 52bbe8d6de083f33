"""Cross-provider statistics for pull requests, merge requests and issues."""

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from ..dates import (
    DateField,
    DateRangeRequest,
    calculate_time_period_stats,
    filter_by_date_range,
    format_date_range_for_response,
    normalize_date_range,
    parse_date,
    resolve_field,
    resolve_now,
)
from ..logging import get_logger
from ..numeric import mean, round_to_tenth
from .buckets import MonthlyStats, calculate_monthly_stats

logger = get_logger(__name__)

SECONDS_PER_DAY = 86400

RECENT_ITEMS_LIMIT = 5


def _github_is_merged(pr: dict) -> bool:
    return pr.get("state") == "closed" and bool((pr.get("pull_request") or {}).get("merged_at"))


def _github_group_key(pr: dict) -> str:
    if pr.get("_repoName"):
        return pr["_repoName"]
    repository_url = pr.get("repository_url") or ""
    parts = repository_url.split("/repos/")
    return parts[1] if len(parts) > 1 and parts[1] else "unknown"


def _jira_group_key(issue: dict) -> str:
    project = ((issue.get("fields") or {}).get("project")) or {}
    return project.get("key") or "unknown"


def _jira_is_resolved(issue: dict) -> bool:
    return bool((issue.get("fields") or {}).get("resolutiondate"))


@dataclass
class ItemAdapter:
    """
    Provider capability set used by the aggregator.

    Each provider shapes its records differently; the adapter tells the
    aggregator where the dates live and how to classify an item's state,
    so the aggregation itself never assumes a schema.
    """

    date_field: DateField = "created_at"
    merged_field: Optional[DateField] = None
    get_state: Callable[[Any], Any] = lambda item: item.get("state")
    is_merged: Callable[[Any], bool] = lambda item: False
    is_open: Callable[[Any], bool] = lambda item: False
    is_closed: Callable[[Any], bool] = lambda item: False
    group_key: Optional[Callable[[Any], str]] = None
    comment_date_field: Optional[DateField] = None
    name: str = "custom"

    @classmethod
    def github(cls) -> "ItemAdapter":
        """Pull requests as returned by the GitHub issue search API."""
        return cls(
            date_field="created_at",
            merged_field="pull_request.merged_at",
            get_state=lambda pr: pr.get("state"),
            is_merged=_github_is_merged,
            is_open=lambda pr: pr.get("state") == "open",
            is_closed=lambda pr: pr.get("state") == "closed" and not _github_is_merged(pr),
            group_key=_github_group_key,
            name="github",
        )

    @classmethod
    def gitlab(cls) -> "ItemAdapter":
        """Merge requests as returned by the GitLab API."""
        return cls(
            date_field="created_at",
            merged_field="merged_at",
            get_state=lambda mr: mr.get("state"),
            is_merged=lambda mr: mr.get("state") == "merged",
            is_open=lambda mr: mr.get("state") == "opened",
            is_closed=lambda mr: mr.get("state") == "closed",
            group_key=lambda mr: mr.get("_projectPath") or mr.get("project_id") or "unknown",
            name="gitlab",
        )

    @classmethod
    def jira(cls) -> "ItemAdapter":
        """Jira issues; a resolved issue counts as merged."""
        return cls(
            date_field="fields.created",
            merged_field="fields.resolutiondate",
            get_state=lambda issue: resolve_field(issue, "fields.status.name"),
            is_merged=_jira_is_resolved,
            is_open=lambda issue: not _jira_is_resolved(issue),
            is_closed=_jira_is_resolved,
            group_key=_jira_group_key,
            name="jira",
        )

    @classmethod
    def for_provider(cls, provider: str) -> "ItemAdapter":
        """Look up a built-in adapter by provider name."""
        factories = {"github": cls.github, "gitlab": cls.gitlab, "jira": cls.jira}
        factory = factories.get(provider.lower())
        if factory is None:
            raise ValueError(f"Unknown provider: {provider!r} (expected one of {sorted(factories)})")
        return factory()


@dataclass
class GroupStats:
    """Per-group (repository or project) rollup."""

    total: int = 0
    merged: int = 0
    open: int = 0

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {"total": self.total, "merged": self.merged, "open": self.open}


@dataclass
class ItemStats:
    """Statistics for one provider's items over a date range."""

    total: int = 0
    merged: int = 0
    open: int = 0
    closed: int = 0
    last_30_days: int = 0
    last_90_days: int = 0
    avg_time_to_merge: float = 0.0
    monthly_items: MonthlyStats = field(default_factory=MonthlyStats)
    total_comments: int = 0
    monthly_comments: MonthlyStats = field(default_factory=MonthlyStats)
    grouped: Dict[str, GroupStats] = field(default_factory=dict)
    items: List[Any] = field(default_factory=list)
    date_range: Dict[str, Optional[str]] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "total": self.total,
            "merged": self.merged,
            "open": self.open,
            "closed": self.closed,
            "last30Days": self.last_30_days,
            "last90Days": self.last_90_days,
            "avgTimeToMerge": self.avg_time_to_merge,
            "monthlyItems": [bucket.to_dict() for bucket in self.monthly_items.buckets],
            "avgPerMonth": self.monthly_items.average_per_month,
            "totalComments": self.total_comments,
            "monthlyComments": [bucket.to_dict() for bucket in self.monthly_comments.buckets],
            "avgCommentsPerMonth": self.monthly_comments.average_per_month,
            "grouped": {key: group.to_dict() for key, group in self.grouped.items()},
            "items": list(self.items),
            "dateRange": dict(self.date_range),
        }

    def to_json(self, indent: Optional[int] = None) -> str:
        """Serialize to a JSON string."""
        return json.dumps(self.to_dict(), indent=indent, default=str)


def calculate_average_time(items: List[Any], created_field: DateField, merged_field: Optional[DateField]) -> float:
    """
    Mean days between creation and merge/resolution, rounded to one decimal.

    Only items with a valid terminal timestamp count; unresolved items are
    left out rather than treated as zero.
    """
    if merged_field is None:
        return 0.0

    durations = []
    for item in items:
        merged = parse_date(resolve_field(item, merged_field))
        if merged is None:
            continue
        created = parse_date(resolve_field(item, created_field))
        if created is None:
            continue
        durations.append((merged - created).total_seconds() / SECONDS_PER_DAY)

    if not durations:
        return 0.0
    return round_to_tenth(mean(durations))


def calculate_basic_stats(items: List[Any], adapter: ItemAdapter) -> Dict[str, int]:
    """Count items by state classification."""
    return {
        "total": len(items),
        "merged": sum(1 for item in items if adapter.is_merged(item)),
        "open": sum(1 for item in items if adapter.is_open(item)),
        "closed": sum(1 for item in items if adapter.is_closed(item)),
    }


def group_items(items: List[Any], adapter: ItemAdapter) -> Dict[str, GroupStats]:
    """Roll items up by the adapter's group key."""
    if adapter.group_key is None:
        return {}

    groups: Dict[str, GroupStats] = {}
    for item in items:
        key = adapter.group_key(item)
        group = groups.setdefault(key, GroupStats())
        group.total += 1
        if adapter.is_merged(item):
            group.merged += 1
        elif adapter.is_open(item):
            group.open += 1
    return groups


def select_recent_items(
    items: List[Any],
    date_field: DateField,
    now: datetime,
    limit: int = RECENT_ITEMS_LIMIT,
) -> List[Any]:
    """
    Pick a small, newest-first sample of items.

    Items from the current UTC month are preferred; when there are none,
    the most recently dated items overall are used. Undated items sort last.
    """
    now = resolve_now(now)
    dated = [(parse_date(resolve_field(item, date_field)), item) for item in items]

    def newest_first(pair):
        parsed = pair[0]
        return (parsed is None, -parsed.timestamp() if parsed else 0.0)

    current_month = [pair for pair in dated if pair[0] and (pair[0].year, pair[0].month) == (now.year, now.month)]
    pool = current_month if current_month else dated
    return [item for _, item in sorted(pool, key=newest_first)[:limit]]


def calculate_item_stats(
    items: List[Any],
    comments: Optional[List[Any]] = None,
    date_range: DateRangeRequest = None,
    adapter: Optional[ItemAdapter] = None,
    now: Optional[datetime] = None,
    default_start: Optional[datetime] = None,
    recent_limit: int = RECENT_ITEMS_LIMIT,
    trailing_months: int = 12,
) -> ItemStats:
    """
    Compute the full statistics record for a provider's items.

    Args:
        items: Provider-shaped records (never mutated)
        comments: Independently supplied comment records
        date_range: Range request; None uses the default window
        adapter: Provider capability set (GitHub semantics when omitted)
        now: Reference time, read once for the whole computation
        default_start: Start of the default window
        recent_limit: Maximum size of the recent-items sample
        trailing_months: Months shown for an all-time range

    Returns:
        ItemStats for the filtered items; the trailing 30/90-day counts ignore the range
    """
    adapter = adapter or ItemAdapter.github()
    now = resolve_now(now)
    comments = comments or []
    comment_field = adapter.comment_date_field or adapter.date_field

    normalized = normalize_date_range(date_range, now=now, default_start=default_start)
    filtered_items = filter_by_date_range(items, adapter.date_field, normalized)
    filtered_comments = filter_by_date_range(comments, comment_field, normalized)

    basic = calculate_basic_stats(filtered_items, adapter)
    periods = calculate_time_period_stats(items, adapter.date_field, now=now)

    stats = ItemStats(
        total=basic["total"],
        merged=basic["merged"],
        open=basic["open"],
        closed=basic["closed"],
        last_30_days=periods["last30Days"],
        last_90_days=periods["last90Days"],
        avg_time_to_merge=calculate_average_time(filtered_items, adapter.date_field, adapter.merged_field),
        monthly_items=calculate_monthly_stats(
            filtered_items, adapter.date_field, normalized, now=now, trailing_months=trailing_months
        ),
        total_comments=len(filtered_comments),
        monthly_comments=calculate_monthly_stats(
            filtered_comments, comment_field, normalized, now=now, trailing_months=trailing_months
        ),
        grouped=group_items(filtered_items, adapter),
        items=select_recent_items(filtered_items, adapter.date_field, now, limit=recent_limit),
        date_range=format_date_range_for_response(date_range, now=now, default_start=default_start),
    )

    logger.info(
        f"Computed {adapter.name} item stats: {stats.total} items "
        f"({stats.merged} merged, {stats.open} open, {stats.closed} closed)"
    )
    return stats
