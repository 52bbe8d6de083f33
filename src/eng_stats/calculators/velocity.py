"""Sprint velocity with overlap grouping of concurrent sprints.

Teams running parallel sprints (one per board) deliver their combined
points over the same calendar window. Sprints are therefore grouped into
connected components of overlapping date intervals: points are summed
within a group and averaged across groups, so each stretch of calendar
time contributes exactly one velocity sample.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from ..dates import DateRangeRequest, normalize_date_range, resolve_now
from ..extractors.sprints import get_best_sprint_for_issue, get_board_name
from ..extractors.story_points import StoryPointResolver
from ..logging import get_logger
from ..models import DateRange, Sprint, SprintGroup
from ..numeric import mean, round_to_tenth

logger = get_logger(__name__)

SECONDS_PER_HOUR = 3600

UNKNOWN_BOARD = "Unknown"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass
class BoardVelocity:
    """Velocity of one board's sprints, averaged per sprint."""

    sprints: List[Sprint] = field(default_factory=list)
    average_velocity: float = 0.0

    @property
    def total_sprints(self) -> int:
        return len(self.sprints)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "sprints": [sprint.to_dict() for sprint in self.sprints],
            "averageVelocity": self.average_velocity,
            "totalSprints": self.total_sprints,
        }


@dataclass
class VelocityStats:
    """Velocity statistics across all boards."""

    by_board: Dict[str, BoardVelocity] = field(default_factory=dict)
    sprints: List[Sprint] = field(default_factory=list)
    groups: List[SprintGroup] = field(default_factory=list)
    average_velocity: float = 0.0
    combined_average_velocity: float = 0.0
    issues_without_sprint: int = 0

    @property
    def total_sprints(self) -> int:
        return len(self.sprints)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "byBoard": {name: board.to_dict() for name, board in self.by_board.items()},
            "sprints": [sprint.to_dict() for sprint in self.sprints],
            "groups": [group.to_dict() for group in self.groups],
            "averageVelocity": self.average_velocity,
            "combinedAverageVelocity": self.combined_average_velocity,
            "totalSprints": self.total_sprints,
            "issuesWithoutSprint": self.issues_without_sprint,
        }

    def to_json(self, indent: Optional[int] = None) -> str:
        """Serialize to a JSON string."""
        return json.dumps(self.to_dict(), indent=indent, default=str)


def sprints_overlap(first: Sprint, second: Sprint) -> bool:
    """Inclusive interval overlap; sprints without both dates never overlap."""
    if not (first.has_dates and second.has_dates):
        return False
    return first.start_date <= second.end_date and first.end_date >= second.start_date


def _groups_overlap(first: List[Sprint], second: List[Sprint]) -> bool:
    return any(sprints_overlap(a, b) for a in first for b in second)


def group_overlapping_sprints(sprints: List[Sprint]) -> List[SprintGroup]:
    """
    Partition dated sprints into connected components by date overlap.

    Each sprint first joins the first group holding a sprint it overlaps,
    or starts a new group. Because that assignment depends on input order,
    groups are then merged pairwise until a full pass finds nothing to
    merge, which yields the transitive closure.
    """
    groups: List[List[Sprint]] = []
    for sprint in sprints:
        if not sprint.has_dates:
            continue
        for group in groups:
            if any(sprints_overlap(sprint, member) for member in group):
                group.append(sprint)
                break
        else:
            groups.append([sprint])

    merged = True
    while merged:
        merged = False
        for i in range(len(groups)):
            for j in range(i + 1, len(groups)):
                if _groups_overlap(groups[i], groups[j]):
                    groups[i].extend(groups.pop(j))
                    merged = True
                    break
            if merged:
                break

    return [SprintGroup(sprints=group) for group in groups]


def sprint_in_date_range(sprint: Sprint, date_range: DateRange) -> bool:
    """
    Check whether a sprint overlaps a normalized range.

    With both bounds the interval overlap test applies; with a single
    bound only the side of the sprint facing that bound is compared.
    """
    if not date_range.valid:
        return False
    if date_range.is_unrestricted:
        return True

    start, end = sprint.start_date, sprint.end_date
    if start is None and end is None:
        return False

    if date_range.start is not None and date_range.end is not None:
        if start is not None and end is not None:
            return start <= date_range.end and end >= date_range.start
        if start is not None:
            return date_range.start <= start <= date_range.end
        return date_range.start <= end <= date_range.end

    if date_range.start is not None:
        return (end or start) >= date_range.start

    return (start or end) <= date_range.end


def _timeline_key(sprint: Sprint) -> datetime:
    return sprint.end_date or sprint.start_date or _EPOCH


def _board_for(sprint: Sprint) -> str:
    return sprint.board_name or get_board_name(sprint.name, sprint.rapid_view_id) or UNKNOWN_BOARD


def _average_of_positive(values: List[float]) -> float:
    positive = [value for value in values if value > 0]
    return round_to_tenth(mean(positive)) if positive else 0.0


def attribute_issues_to_sprints(
    issues: List[Any],
    resolver: Callable[[Any], float],
) -> Dict[str, Any]:
    """
    Attribute each issue's points to its single best sprint.

    Issues with no parseable sprint, or whose sprint lacks a start or end
    date, are tallied rather than attributed.

    Returns:
        Dictionary with ``sprints`` (keyed by sprint id, first-seen order)
        and ``issues_without_sprint``
    """
    sprints: Dict[Any, Sprint] = {}
    without_sprint = 0

    for issue in issues:
        best = get_best_sprint_for_issue(issue)
        if best is None or not best.has_dates:
            without_sprint += 1
            continue

        sprint = sprints.get(best.id)
        if sprint is None:
            sprint = best
            sprint.board_name = _board_for(best)
            sprints[best.id] = sprint

        fields = issue.get("fields") or {}
        sprint.points += resolver(issue)
        sprint.issue_count += 1
        sprint.time_spent_hours += (fields.get("timespent") or 0) / SECONDS_PER_HOUR
        key = issue.get("key")
        if key and key not in sprint.issue_keys:
            sprint.issue_keys.append(key)

    return {"sprints": sprints, "issues_without_sprint": without_sprint}


def calculate_velocity(
    issues: List[Any],
    date_range: DateRangeRequest = None,
    resolver: Optional[Callable[[Any], float]] = None,
    now: Optional[datetime] = None,
    default_start: Optional[datetime] = None,
) -> VelocityStats:
    """
    Compute per-board and combined velocity from Jira issues.

    Args:
        issues: Jira issues (never mutated)
        date_range: Keep only sprints overlapping this range; None keeps all
        resolver: Story point resolver (default probe order when omitted)
        now: Reference time for open-ended ranges
        default_start: Start used when the range gives none

    Returns:
        VelocityStats
    """
    resolver = resolver or StoryPointResolver()
    now = resolve_now(now)

    attributed = attribute_issues_to_sprints(issues, resolver)
    sprints = sorted(attributed["sprints"].values(), key=_timeline_key)

    if date_range is not None:
        normalized = normalize_date_range(date_range, now=now, default_start=default_start)
        sprints = [sprint for sprint in sprints if sprint_in_date_range(sprint, normalized)]

    by_board: Dict[str, BoardVelocity] = {}
    for sprint in sprints:
        by_board.setdefault(sprint.board_name, BoardVelocity()).sprints.append(sprint)
    for board in by_board.values():
        board.average_velocity = _average_of_positive([sprint.points for sprint in board.sprints])

    groups = group_overlapping_sprints(sprints)
    average = _average_of_positive([group.combined_points for group in groups])

    stats = VelocityStats(
        by_board=by_board,
        sprints=sprints,
        groups=groups,
        average_velocity=average,
        combined_average_velocity=average,
        issues_without_sprint=attributed["issues_without_sprint"],
    )

    logger.info(
        f"Velocity: {stats.total_sprints} sprints in {len(groups)} groups across "
        f"{len(by_board)} boards, average {average} ({stats.issues_without_sprint} issues without sprint)"
    )
    return stats
