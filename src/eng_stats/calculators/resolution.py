"""Resolution-time and cycle-time statistics for Jira issues."""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..dates import get_nested_value
from ..extractors.transitions import calculate_created_to_resolved_time, calculate_in_progress_to_qa_ready_time
from ..logging import get_logger
from ..numeric import mean, round_to_tenth

logger = get_logger(__name__)

PRIORITIES = ("P1", "P2", "P3", "P4")

DEFAULT_PRIORITY = "P3"

PRIORITY_NAMES = {
    "highest": "P1",
    "blocker": "P1",
    "critical": "P1",
    "high": "P2",
    "medium": "P3",
    "normal": "P3",
    "low": "P4",
    "lowest": "P4",
    "minor": "P4",
    "trivial": "P4",
}

_PRIORITY_NUMBER = re.compile(r"p([1-4])")
_NON_ALPHANUMERIC = re.compile(r"[^a-z0-9]")


def get_issue_priority(issue: Any) -> str:
    """Map an issue's priority name onto P1-P4 (P3 when unknown)."""
    name = get_nested_value(issue, "fields.priority.name")
    if not isinstance(name, str):
        return DEFAULT_PRIORITY

    normalized = _NON_ALPHANUMERIC.sub("", name.lower())
    match = _PRIORITY_NUMBER.search(normalized)
    if match:
        return f"P{match.group(1)}"
    return PRIORITY_NAMES.get(normalized, DEFAULT_PRIORITY)


@dataclass
class CycleTimeStats:
    """Created-to-resolved cycle time, overall and per priority."""

    by_priority: Dict[str, Optional[float]] = field(default_factory=dict)
    counts: Dict[str, int] = field(default_factory=dict)
    overall: Optional[float] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        result: Dict[str, Any] = {priority: self.by_priority.get(priority) for priority in PRIORITIES}
        result["overall"] = self.overall
        result["counts"] = dict(self.counts)
        return result


@dataclass
class ResolutionTimeStats:
    """Average time from starting work to being ready for QA."""

    avg_resolution_time: float = 0.0
    avg_resolution_time_count: int = 0

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "avgResolutionTime": self.avg_resolution_time,
            "avgResolutionTimeCount": self.avg_resolution_time_count,
        }


def calculate_cycle_time_by_priority(issues: List[Any]) -> CycleTimeStats:
    """Average created-to-resolved days per priority; unresolved issues are skipped."""
    durations: Dict[str, List[float]] = {priority: [] for priority in PRIORITIES}

    for issue in issues:
        days = calculate_created_to_resolved_time(issue)
        if days is None:
            continue
        durations[get_issue_priority(issue)].append(days)

    all_durations = [days for values in durations.values() for days in values]
    counts = {priority: len(values) for priority, values in durations.items()}
    counts["total"] = len(all_durations)

    return CycleTimeStats(
        by_priority={
            priority: round_to_tenth(mean(values)) if values else None for priority, values in durations.items()
        },
        counts=counts,
        overall=round_to_tenth(mean(all_durations)) if all_durations else None,
    )


def calculate_resolution_time_stats(issues: List[Any]) -> ResolutionTimeStats:
    """
    Average in-progress to QA-ready days across issues.

    Issues that never reached QA fall back to their resolution date. Issues
    with no measurable duration are left out of both the average and the count.
    """
    durations = []
    for issue in issues:
        days = calculate_in_progress_to_qa_ready_time(issue)
        if days is not None:
            durations.append(days)

    if not durations:
        return ResolutionTimeStats()

    return ResolutionTimeStats(
        avg_resolution_time=round_to_tenth(mean(durations)),
        avg_resolution_time_count=len(durations),
    )
