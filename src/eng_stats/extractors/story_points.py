"""Story point resolution for Jira issues."""

import math
from typing import Any, Callable, List, Mapping, Optional, Sequence

from ..logging import get_logger
from ..numeric import round_to_tenth

logger = get_logger(__name__)

SECONDS_PER_HOUR = 3600

DEFAULT_HOURS_PER_POINT = 8.0

# Order matters: deployments often populate several of these and the
# earlier field is the authoritative one.
STORY_POINT_FIELD_IDS = (
    "customfield_10106",
    "customfield_21766",
    "customfield_10016",
    "customfield_10021",
    "customfield_10002",
    "customfield_10004",
    "customfield_10020",
    "storyPoints",
)

FieldAccessor = Callable[[Mapping[str, Any]], Any]


def field_accessor(field_id: str) -> FieldAccessor:
    """Build an accessor reading one key from an issue's field map."""

    def accessor(fields: Mapping[str, Any]) -> Any:
        return fields.get(field_id)

    accessor.__name__ = f"field_{field_id}"
    return accessor


DEFAULT_ACCESSORS: List[FieldAccessor] = [field_accessor(field_id) for field_id in STORY_POINT_FIELD_IDS]


def to_number(value: Any) -> Optional[float]:
    """Coerce a field value to a finite number, or None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None

    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _issue_fields(issue: Any) -> Mapping[str, Any]:
    if not isinstance(issue, Mapping):
        return {}
    return issue.get("fields") or {}


class StoryPointResolver:
    """
    Resolve an issue's effort estimate through an ordered chain of accessors.

    The first accessor producing a positive number wins. When none do, the
    original time estimate (seconds) is converted at ``hours_per_point``
    hours per point. Anything else resolves to 0.
    """

    def __init__(
        self,
        accessors: Optional[Sequence[FieldAccessor]] = None,
        hours_per_point: float = DEFAULT_HOURS_PER_POINT,
    ):
        self.accessors = list(accessors) if accessors is not None else list(DEFAULT_ACCESSORS)
        self.hours_per_point = hours_per_point

    def resolve(self, fields: Mapping[str, Any]) -> float:
        """Resolve points from an issue's field map."""
        for accessor in self.accessors:
            points = to_number(accessor(fields))
            if points is not None and points > 0:
                return points

        estimate = to_number(fields.get("timeoriginalestimate"))
        if estimate is not None and estimate > 0 and self.hours_per_point > 0:
            estimated_points = estimate / SECONDS_PER_HOUR / self.hours_per_point
            return round_to_tenth(estimated_points)

        return 0.0

    def __call__(self, issue: Any) -> float:
        return self.resolve(_issue_fields(issue))


_default_resolver = StoryPointResolver()


def get_story_points(issue: Any) -> float:
    """Story points for an issue using the default probe order."""
    return _default_resolver(issue)
