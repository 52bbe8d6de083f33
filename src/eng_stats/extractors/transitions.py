"""Status transition lookups over Jira changelog histories."""

import re
from datetime import datetime
from typing import Any, List, Mapping, Optional, Sequence, Tuple, Union

from ..dates import get_nested_value, parse_date
from ..logging import get_logger

logger = get_logger(__name__)

SECONDS_PER_DAY = 86400

IN_PROGRESS_ALIASES = ("in progress", "inprogress", "progress")

QA_READY_ALIASES = (
    "ready for qa release",
    "ready for qa",
    "qa ready",
    "ready for testing",
    "qa release",
)

StatusTarget = Union[str, Sequence[str]]

_WHITESPACE = re.compile(r"\s+")


def normalize_status(name: Any) -> str:
    """Lowercase a status name and collapse its whitespace."""
    if not isinstance(name, str):
        return ""
    return _WHITESPACE.sub(" ", name).strip().lower()


def _aliases(target: StatusTarget) -> Tuple[str, ...]:
    if isinstance(target, str):
        target = (target,)
    return tuple(alias for alias in (normalize_status(t) for t in target) if alias)


def status_matches(status: Any, target: StatusTarget) -> bool:
    """True if the status contains any of the target aliases."""
    normalized = normalize_status(status)
    if not normalized:
        return False
    return any(alias in normalized for alias in _aliases(target))


def get_changelog_histories(issue: Any) -> List[Mapping[str, Any]]:
    """Changelog entries of an issue, whether returned inline or paged."""
    histories = get_nested_value(issue, "changelog.histories")
    if isinstance(histories, Mapping):
        histories = histories.get("values")
    if not isinstance(histories, list):
        return []
    return [history for history in histories if isinstance(history, Mapping)]


def get_status_transition_time(issue: Any, target: StatusTarget) -> Optional[datetime]:
    """
    Date of the first transition into a status matching ``target``.

    ``target`` is a status name or a sequence of acceptable aliases. Matching
    ignores case and surrounding whitespace and accepts any status that
    contains an alias. Returns None when no transition matches.
    """
    dated = []
    for history in get_changelog_histories(issue):
        created = parse_date(history.get("created"))
        if created is None:
            continue
        dated.append((created, history))

    # Stable sort keeps same-timestamp entries in changelog order
    for created, history in sorted(dated, key=lambda pair: pair[0]):
        for item in history.get("items") or []:
            if not isinstance(item, Mapping) or item.get("field") != "status":
                continue
            if status_matches(item.get("toString"), target):
                return created

    return None


def get_resolution_date(issue: Any) -> Optional[datetime]:
    return parse_date(get_nested_value(issue, "fields.resolutiondate"))


def calculate_transition_days(
    issue: Any,
    start_target: StatusTarget,
    end_target: StatusTarget,
) -> Optional[float]:
    """
    Days between entering ``start_target`` and entering ``end_target``.

    Falls back to the resolution date when the end transition never
    happened. Returns None when the start is unknown, when there is no end
    at all, or when the end predates the start.
    """
    started = get_status_transition_time(issue, start_target)
    if started is None:
        return None

    finished = get_status_transition_time(issue, end_target) or get_resolution_date(issue)
    if finished is None:
        return None

    if finished < started:
        logger.debug(f"Out-of-order transitions on {get_nested_value(issue, 'key')}; ignoring")
        return None

    return (finished - started).total_seconds() / SECONDS_PER_DAY


def get_in_progress_date(issue: Any) -> Optional[datetime]:
    return get_status_transition_time(issue, IN_PROGRESS_ALIASES)


def get_qa_ready_date(issue: Any) -> Optional[datetime]:
    return get_status_transition_time(issue, QA_READY_ALIASES)


def calculate_in_progress_to_qa_ready_time(issue: Any) -> Optional[float]:
    """Days from starting work to being ready for QA (or resolved)."""
    return calculate_transition_days(issue, IN_PROGRESS_ALIASES, QA_READY_ALIASES)


def calculate_created_to_resolved_time(issue: Any) -> Optional[float]:
    """Days from creation to resolution; None when unresolved or inconsistent."""
    created = parse_date(get_nested_value(issue, "fields.created"))
    resolved = get_resolution_date(issue)
    if created is None or resolved is None or resolved < created:
        return None
    return (resolved - created).total_seconds() / SECONDS_PER_DAY
