"""Data models for the engineering stats engine."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass(frozen=True)
class DateRange:
    """
    A normalized, inclusive date range.

    ``start``/``end`` both ``None`` means unrestricted ("all time"). A range
    built from unparseable bounds is marked ``valid=False`` and contains no
    dates at all.
    """

    start: Optional[datetime] = None
    end: Optional[datetime] = None
    valid: bool = True

    @property
    def is_unrestricted(self) -> bool:
        """True when the range places no bound on dates."""
        return self.valid and self.start is None and self.end is None

    def contains(self, value: Optional[datetime]) -> bool:
        """Check whether an already-parsed date falls inside the range."""
        if not self.valid:
            return False
        if self.is_unrestricted:
            return True
        if value is None:
            return False
        if self.start is not None and value < self.start:
            return False
        if self.end is not None and value > self.end:
            return False
        return True

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "start": _iso(self.start),
            "end": _iso(self.end),
            "valid": self.valid,
        }


@dataclass
class MonthBucket:
    """Count of records falling in one UTC calendar month."""

    month: str  # YYYY-MM
    count: int = 0

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {"month": self.month, "count": self.count}


@dataclass
class Sprint:
    """A sprint parsed from a Jira sprint reference, plus the work attributed to it."""

    id: Any
    name: str
    state: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    complete_date: Optional[datetime] = None
    board_id: Optional[Any] = None
    board_name: Optional[str] = None
    rapid_view_id: Optional[Any] = None

    # Filled in by the velocity calculator
    points: float = 0.0
    issue_count: int = 0
    issue_keys: List[str] = field(default_factory=list)
    time_spent_hours: float = 0.0

    @property
    def has_dates(self) -> bool:
        """Both ends are known, so the sprint can be placed on a timeline."""
        return self.start_date is not None and self.end_date is not None

    @property
    def board_ref(self) -> Optional[Any]:
        """Board identifier, whichever form the reference carried."""
        return self.board_id if self.board_id is not None else self.rapid_view_id

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "state": self.state,
            "startDate": _iso(self.start_date),
            "endDate": _iso(self.end_date),
            "completeDate": _iso(self.complete_date),
            "boardId": self.board_id,
            "boardName": self.board_name,
            "rapidViewId": self.rapid_view_id,
            "points": self.points,
            "issueCount": self.issue_count,
            "issueKeys": list(self.issue_keys),
            "timeSpent": self.time_spent_hours,
        }


@dataclass
class SprintGroup:
    """Sprints connected to each other through overlapping date intervals."""

    sprints: List[Sprint] = field(default_factory=list)

    @property
    def combined_points(self) -> float:
        """Concurrent sprints are parallel work streams, so their points add up."""
        return sum(sprint.points for sprint in self.sprints)

    @property
    def start_date(self) -> Optional[datetime]:
        dates = [s.start_date for s in self.sprints if s.start_date is not None]
        return min(dates) if dates else None

    @property
    def end_date(self) -> Optional[datetime]:
        dates = [s.end_date for s in self.sprints if s.end_date is not None]
        return max(dates) if dates else None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "sprintIds": [sprint.id for sprint in self.sprints],
            "sprintNames": [sprint.name for sprint in self.sprints],
            "startDate": _iso(self.start_date),
            "endDate": _iso(self.end_date),
            "combinedPoints": self.combined_points,
        }
