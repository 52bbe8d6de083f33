"""Sprint extraction from Jira sprint reference fields.

Jira exposes an issue's sprints in several physical forms depending on the
deployment and API version:

    (a) a single Greenhopper-encoded string,
        ``com.atlassian.greenhopper.service.sprint.Sprint@1a2b[id=7,name=Team Sprint 3,...]``
    (b) a list of such strings
    (c) a list of structured sprint objects
    (d) a single structured sprint object

Every form is parsed once into a ``Sprint`` here; nothing downstream sees
the raw encoding.
"""

import re
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..dates import parse_date
from ..logging import get_logger
from ..models import Sprint

logger = get_logger(__name__)

# Known sprint field IDs, probed in order before falling back to a scan
SPRINT_FIELD_IDS = (
    "customfield_10105",
    "customfield_10020",
    "customfield_10007",
    "customfield_10000",
    "customfield_10100",
    "customfield_10001",
    "customfield_10005",
    "customfield_10017",
    "customfield_10200",
    "customfield_10201",
    "customfield_10202",
    "customfield_10104",
    "sprint",
)

# Structured fields that can never hold sprint data
NON_SPRINT_FIELDS = frozenset({"resolution", "status", "priority", "issuetype", "project"})

SPRINT_OBJECT_KEYS = ("startDate", "endDate", "sprintId", "boardId", "rapidViewId")

_BRACKET_PATTERN = re.compile(r"\[(.*)\]", re.DOTALL)
_NUMBER_PATTERN = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")

BOARD_NAME_PATTERNS = (
    re.compile(r"^(.+?)\s*-?\s*Sprint\s*\d+$", re.IGNORECASE),
    re.compile(r"^(.+?)\s+Sprint\s*\d+$", re.IGNORECASE),
    re.compile(r"^(.+?)\s*Sprint$", re.IGNORECASE),
)


def _coerce_value(raw: str) -> Any:
    value = raw.strip()
    if value == "<null>":
        return None
    if _NUMBER_PATTERN.match(value):
        if "." in value or "e" in value.lower():
            return float(value)
        return int(value)
    return value


def parse_sprint_string(encoded: str) -> Optional[Dict[str, Any]]:
    """
    Parse the bracketed ``key=value`` list of an encoded sprint string.

    Values of ``<null>`` become None and numeric-looking values become
    numbers. Returns None when the string has no bracketed section.
    """
    match = _BRACKET_PATTERN.search(encoded)
    if not match:
        return None

    data: Dict[str, Any] = {}
    for pair in match.group(1).split(","):
        key, separator, value = pair.partition("=")
        key = key.strip()
        if not key or not separator:
            continue
        data[key] = _coerce_value(value)
    return data


def _sprint_from_mapping(data: Mapping[str, Any]) -> Optional[Sprint]:
    sprint_id = data.get("id")
    if sprint_id is None or sprint_id == "":
        sprint_id = data.get("sprintId")
    if sprint_id is None or sprint_id == "":
        return None

    name = data.get("name") or data.get("value") or f"Sprint {sprint_id}"
    return Sprint(
        id=sprint_id,
        name=str(name),
        state=data.get("state"),
        start_date=parse_date(data.get("startDate")),
        end_date=parse_date(data.get("endDate")),
        complete_date=parse_date(data.get("completeDate")),
        board_id=data.get("boardId"),
        board_name=data.get("boardName"),
        rapid_view_id=data.get("rapidViewId"),
    )


def parse_sprint_reference(reference: Any) -> Optional[Sprint]:
    """Parse one element of a sprint field into a Sprint, or None."""
    if reference is None or isinstance(reference, bool):
        return None

    if isinstance(reference, str):
        data = parse_sprint_string(reference)
        if data is None:
            logger.debug(f"Unparseable sprint reference: {reference[:80]!r}")
            return None
        return _sprint_from_mapping(data)

    if isinstance(reference, Mapping):
        return _sprint_from_mapping(reference)

    if isinstance(reference, int):
        # Bare sprint ID with nothing else known about it
        return Sprint(id=reference, name=f"Sprint {reference}")

    return None


def _as_references(sprint_field: Any) -> List[Any]:
    if sprint_field is None:
        return []
    if isinstance(sprint_field, (list, tuple)):
        return list(sprint_field)
    return [sprint_field]


def extract_all_sprints(sprint_field: Any) -> List[Sprint]:
    """Parse every sprint referenced by a sprint field, skipping bad entries."""
    sprints = []
    for reference in _as_references(sprint_field):
        sprint = parse_sprint_reference(reference)
        if sprint is not None:
            sprints.append(sprint)
    return sprints


def extract_sprint(sprint_field: Any) -> Optional[Sprint]:
    """
    Pick the single sprint an issue's work is attributed to.

    The sprint with the earliest start date wins so an issue carried over
    across sprints is only counted once. When no sprint has a start date,
    the first parseable one is used.
    """
    sprints = extract_all_sprints(sprint_field)
    if not sprints:
        return None

    dated = [sprint for sprint in sprints if sprint.start_date is not None]
    if dated:
        return min(dated, key=lambda sprint: sprint.start_date)
    return sprints[0]


def _is_encoded_sprint(value: str) -> bool:
    return "sprint" in value.lower() and _BRACKET_PATTERN.search(value) is not None


def _looks_like_sprint(value: Any) -> bool:
    if isinstance(value, str):
        return _is_encoded_sprint(value)
    if isinstance(value, Mapping):
        if any(value.get(key) for key in SPRINT_OBJECT_KEYS):
            return True
        name = value.get("name")
        return isinstance(name, str) and "sprint" in name.lower()
    if isinstance(value, (list, tuple)) and value:
        return _looks_like_sprint(value[0])
    return False


def _has_probe_data(value: Any) -> bool:
    if value is None or value == "":
        return False
    if isinstance(value, (list, tuple)):
        return len(value) > 0
    if isinstance(value, Mapping):
        return bool(value.get("id") or value.get("name"))
    if isinstance(value, str):
        return "sprint" in value.lower()
    return False


def find_sprint_field(fields: Optional[Mapping[str, Any]]) -> Optional[Any]:
    """
    Locate the sprint reference within an issue's field map.

    Known field IDs are tried in order first. Failing that, the remaining
    custom fields are scanned for a value shaped like sprint data.
    """
    if not fields:
        return None

    for field_id in SPRINT_FIELD_IDS:
        value = fields.get(field_id)
        if _has_probe_data(value):
            return value

    for field_id, value in fields.items():
        if field_id in SPRINT_FIELD_IDS or field_id in NON_SPRINT_FIELDS:
            continue
        if not field_id.startswith("customfield_"):
            continue
        if _looks_like_sprint(value):
            logger.debug(f"Using {field_id} as sprint field")
            return value

    return None


def _issue_fields(issue: Any) -> Mapping[str, Any]:
    if not isinstance(issue, Mapping):
        return {}
    return issue.get("fields") or {}


def get_best_sprint_for_issue(issue: Any) -> Optional[Sprint]:
    """The sprint an issue's points are attributed to, or None."""
    return extract_sprint(find_sprint_field(_issue_fields(issue)))


def get_all_sprints_for_issue(issue: Any) -> List[Sprint]:
    """Every sprint an issue was part of."""
    return extract_all_sprints(find_sprint_field(_issue_fields(issue)))


def get_sprint_name(issue: Any) -> Optional[str]:
    """Name of the issue's attributed sprint."""
    sprint = get_best_sprint_for_issue(issue)
    return sprint.name if sprint else None


def get_board_name(sprint_name: Optional[str], rapid_view_id: Any = None) -> Optional[str]:
    """
    Infer a board name from a sprint name such as ``"Payments - Sprint 12"``.

    Falls back to ``"Board <rapidViewId>"`` and then None.
    """
    if sprint_name:
        for pattern in BOARD_NAME_PATTERNS:
            match = pattern.match(sprint_name.strip())
            if match and match.group(1).strip(" -"):
                return match.group(1).strip(" -")

    if rapid_view_id:
        return f"Board {rapid_view_id}"

    return None


def get_board_ids_from_issues(issues: Iterable[Any]) -> List[Any]:
    """Unique board IDs referenced by any sprint of any issue, in first-seen order."""
    board_ids: List[Any] = []
    for issue in issues:
        for sprint in get_all_sprints_for_issue(issue):
            for board_id in (sprint.rapid_view_id, sprint.board_id):
                if board_id and board_id not in board_ids:
                    board_ids.append(board_id)
    return board_ids
