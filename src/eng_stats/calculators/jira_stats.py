"""Dashboard statistics for a user's Jira issues."""

import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..dates import (
    DateRangeRequest,
    calculate_time_period_stats,
    format_date_range_for_response,
    get_nested_value,
    normalize_date_range,
    parse_date,
    resolve_now,
)
from ..extractors.sprints import get_sprint_name
from ..extractors.story_points import StoryPointResolver
from ..extractors.transitions import get_in_progress_date, get_qa_ready_date
from ..logging import get_logger
from .buckets import MonthlyStats, calculate_monthly_stats
from .resolution import CycleTimeStats, ResolutionTimeStats, calculate_cycle_time_by_priority, calculate_resolution_time_stats
from .velocity import VelocityStats, calculate_velocity

logger = get_logger(__name__)

CLOSED_STATUSES = ("Done", "Closed", "Resolved")

DONE_STATUSES = ("Done", "Closed")

# Containers for other issues rather than units of work
EXCLUDED_ISSUE_TYPES = ("User Story",)

RECENT_ISSUES_LIMIT = 5


@dataclass
class JiraStats:
    """Aggregate statistics over a user's Jira issues."""

    total: int = 0
    last_30_days: int = 0
    last_90_days: int = 0
    resolved: int = 0
    in_progress: int = 0
    done: int = 0
    total_story_points: float = 0.0
    cycle_time: CycleTimeStats = field(default_factory=CycleTimeStats)
    resolution_time: ResolutionTimeStats = field(default_factory=ResolutionTimeStats)
    by_type: Dict[str, Dict[str, int]] = field(default_factory=dict)
    by_project: Dict[str, Dict[str, int]] = field(default_factory=dict)
    velocity: VelocityStats = field(default_factory=VelocityStats)
    monthly_issues: MonthlyStats = field(default_factory=MonthlyStats)
    issues: List[Any] = field(default_factory=list)
    date_range: Dict[str, Optional[str]] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        result = {
            "total": self.total,
            "last30Days": self.last_30_days,
            "last90Days": self.last_90_days,
            "resolved": self.resolved,
            "inProgress": self.in_progress,
            "done": self.done,
            "totalStoryPoints": self.total_story_points,
            "cycleTime": self.cycle_time.to_dict(),
        }
        result.update(self.resolution_time.to_dict())
        result.update(
            {
                "byType": {key: dict(value) for key, value in self.by_type.items()},
                "byProject": {key: dict(value) for key, value in self.by_project.items()},
                "velocity": self.velocity.to_dict(),
                "monthlyIssues": [bucket.to_dict() for bucket in self.monthly_issues.buckets],
                "avgIssuesPerMonth": self.monthly_issues.average_per_month,
                "issues": list(self.issues),
                "dateRange": dict(self.date_range),
            }
        )
        return result

    def to_json(self, indent: Optional[int] = None) -> str:
        """Serialize to a JSON string."""
        return json.dumps(self.to_dict(), indent=indent, default=str)


def _status_name(issue: Any) -> str:
    return get_nested_value(issue, "fields.status.name") or ""


def is_countable_issue(issue: Any) -> bool:
    """Closed issues nobody owns and story containers are not counted as work."""
    fields = issue.get("fields") or {}
    if _status_name(issue) in CLOSED_STATUSES and not fields.get("assignee"):
        return False
    return get_nested_value(issue, "fields.issuetype.name") not in EXCLUDED_ISSUE_TYPES


def _recency(issue: Any) -> Optional[datetime]:
    return parse_date(get_nested_value(issue, "fields.updated")) or parse_date(get_nested_value(issue, "fields.created"))


def select_recent_issues(issues: List[Any], limit: int = RECENT_ISSUES_LIMIT) -> List[Any]:
    """Most recently updated issues, newest first; undated issues are dropped."""
    dated = [(_recency(issue), issue) for issue in issues]
    dated = [pair for pair in dated if pair[0] is not None]
    dated.sort(key=lambda pair: pair[0], reverse=True)
    return [issue for _, issue in dated[:limit]]


def enrich_issue(issue: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of an issue annotated with its sprint name and key transition dates."""
    in_progress = get_in_progress_date(issue)
    qa_ready = get_qa_ready_date(issue)
    enriched = dict(issue)
    enriched["_sprintName"] = get_sprint_name(issue)
    enriched["_inProgressDate"] = in_progress.isoformat() if in_progress else None
    enriched["_qaReadyDate"] = qa_ready.isoformat() if qa_ready else None
    return enriched


def calculate_jira_stats(
    issues: List[Any],
    date_range: DateRangeRequest = None,
    resolver: Optional[StoryPointResolver] = None,
    now: Optional[datetime] = None,
    default_start: Optional[datetime] = None,
    trailing_months: int = 12,
) -> JiraStats:
    """
    Compute the Jira dashboard statistics.

    Issues are taken as already scoped to the user; the range restricts the
    monthly buckets and the sprints considered for velocity.

    Args:
        issues: Jira issues with ``fields`` and optional ``changelog``
        date_range: Range request; None uses the default window
        resolver: Story point resolver
        now: Reference time, read once for the whole computation
        default_start: Start of the default window
        trailing_months: Months shown for an all-time range
    """
    resolver = resolver or StoryPointResolver()
    now = resolve_now(now)
    normalized = normalize_date_range(date_range, now=now, default_start=default_start)

    countable = [issue for issue in issues if is_countable_issue(issue)]
    logger.debug(f"Counting {len(countable)} of {len(issues)} Jira issues")

    periods = calculate_time_period_stats(countable, "fields.updated", now=now)

    by_type: Dict[str, Dict[str, int]] = {}
    by_project: Dict[str, Dict[str, int]] = {}
    resolved = 0
    done = 0
    for issue in countable:
        is_resolved = bool(get_nested_value(issue, "fields.resolutiondate"))
        resolved += is_resolved
        done += _status_name(issue) in DONE_STATUSES

        issue_type = by_type.setdefault(
            get_nested_value(issue, "fields.issuetype.name") or "Unknown", {"total": 0, "resolved": 0}
        )
        issue_type["total"] += 1
        issue_type["resolved"] += is_resolved

        project = by_project.setdefault(
            get_nested_value(issue, "fields.project.key") or "unknown", {"total": 0, "resolved": 0, "open": 0}
        )
        project["total"] += 1
        if is_resolved:
            project["resolved"] += 1
        else:
            project["open"] += 1

    stats = JiraStats(
        total=len(countable),
        last_30_days=periods["last30Days"],
        last_90_days=periods["last90Days"],
        resolved=resolved,
        in_progress=len(countable) - done,
        done=done,
        total_story_points=sum(resolver(issue) for issue in countable),
        cycle_time=calculate_cycle_time_by_priority(countable),
        resolution_time=calculate_resolution_time_stats(countable),
        by_type=by_type,
        by_project=by_project,
        # Without an explicit range, velocity covers every sprint
        velocity=calculate_velocity(
            countable, normalized if date_range is not None else None, resolver=resolver, now=now
        ),
        monthly_issues=calculate_monthly_stats(
            countable, "fields.updated", normalized, now=now, trailing_months=trailing_months
        ),
        issues=[enrich_issue(issue) for issue in select_recent_issues(countable)],
        date_range=format_date_range_for_response(date_range, now=now, default_start=default_start),
    )

    logger.info(f"Computed Jira stats: {stats.total} issues, {stats.resolved} resolved, {stats.done} done")
    return stats
