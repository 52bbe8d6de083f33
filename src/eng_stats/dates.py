"""Date range normalization and date helpers.

Provider records carry their timestamps as ISO strings (GitHub, GitLab),
Jira-style ``+0000`` offsets, or occasionally epoch milliseconds. Everything
here parses leniently and turns failures into ``None`` so that a malformed
record is excluded from date-bound counts instead of aborting a computation.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from dateutil import parser as date_parser

from .config import DEFAULT_START
from .logging import get_logger
from .models import DateRange

logger = get_logger(__name__)

# A record field, given as a dotted path ("fields.created") or an accessor
DateField = Union[str, Callable[[Any], Any]]

# What callers may hand in as a range: a {"start", "end"} mapping, an
# already-normalized DateRange, or None for "use the default window"
DateRangeRequest = Union[Mapping[str, Any], DateRange, None]


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_date(value: Any) -> Optional[datetime]:
    """
    Parse a date-like value into an aware UTC datetime.

    Accepts datetimes, dates, epoch milliseconds and strings. Naive values
    are taken to be UTC. Returns None for anything that cannot be parsed.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            logger.debug(f"Invalid epoch timestamp: {value!r}")
            return None
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            # Try ISO format first
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            try:
                # Fall back to dateutil parser (handles "+0000" offsets on older Pythons)
                parsed = date_parser.parse(text)
            except (ValueError, OverflowError):
                logger.debug(f"Invalid date found: {value!r}")
                return None
    else:
        return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def resolve_now(now: Any = None) -> datetime:
    """Reference time as an aware UTC datetime; naive values are taken to be UTC."""
    return parse_date(now) or utc_now()


def start_of_day(value: datetime) -> datetime:
    """00:00:00.000 of the value's UTC day."""
    return value.astimezone(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)


def end_of_day(value: datetime) -> datetime:
    """23:59:59.999 of the value's UTC day."""
    return value.astimezone(timezone.utc).replace(hour=23, minute=59, second=59, microsecond=999000)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _is_naive(value: Optional[datetime]) -> bool:
    return value is not None and value.tzinfo is None


def normalize_date_range(
    request: DateRangeRequest = None,
    now: Optional[datetime] = None,
    default_start: Optional[datetime] = None,
) -> DateRange:
    """
    Turn a loosely specified range request into concrete inclusive bounds.

    Rules:
        - ``{"start": None, "end": None}`` -> unrestricted (all time)
        - no request, or neither bound given -> default start through now
        - only ``end`` -> default start through end of that day
        - only ``start`` -> start of that day through now
        - both -> start of the start day through end of the end day

    Unparseable bounds never raise; they produce a range with
    ``valid=False`` that contains no dates.
    Naive ``now``, ``default_start`` and DateRange bounds are taken to be UTC.

    Args:
        request: Mapping with ``start``/``end`` keys, a DateRange, or None
        now: Reference time for open-ended ranges (read once by the caller)
        default_start: Start used when the request gives none
    """
    if isinstance(request, DateRange):
        if _is_naive(request.start) or _is_naive(request.end):
            return DateRange(start=parse_date(request.start), end=parse_date(request.end), valid=request.valid)
        return request

    now = resolve_now(now)
    default_start = parse_date(default_start) or DEFAULT_START

    if request is not None and "start" in request and "end" in request:
        if request["start"] is None and request["end"] is None:
            return DateRange(start=None, end=None)

    start_value = request.get("start") if request else None
    end_value = request.get("end") if request else None

    valid = True
    if _is_blank(start_value):
        start = default_start
    else:
        start = parse_date(start_value)
        if start is None:
            valid = False

    if _is_blank(end_value):
        end = now
    else:
        end = parse_date(end_value)
        if end is None:
            valid = False
        else:
            end = end_of_day(end)

    if not valid:
        logger.debug(f"Date range {request!r} has unparseable bounds; it will match nothing")
        return DateRange(start=start, end=end, valid=False)

    return DateRange(start=start_of_day(start), end=end)


def get_nested_value(obj: Any, path: str) -> Any:
    """Get nested property value using dot notation (e.g. 'fields.created')."""
    current = obj
    for part in path.split("."):
        if current is None:
            return None
        if isinstance(current, Mapping):
            current = current.get(part)
        else:
            current = getattr(current, part, None)
    return current


def resolve_field(item: Any, field: DateField) -> Any:
    """Read a field from a record using a dotted path or an accessor function."""
    if callable(field):
        return field(item)
    return get_nested_value(item, field)


def is_in_date_range(value: Any, date_range: DateRange) -> bool:
    """Check if a raw date value falls within a normalized range."""
    if date_range.is_unrestricted:
        return True
    return date_range.contains(parse_date(value))


def filter_by_date_range(items: Iterable[Any], date_field: DateField, date_range: DateRange) -> List[Any]:
    """Keep the items whose date field falls inside the range."""
    if date_range.is_unrestricted:
        return list(items)
    return [item for item in items if is_in_date_range(resolve_field(item, date_field), date_range)]


def get_month_key(value: Any) -> Optional[str]:
    """Month key in YYYY-MM format, computed in UTC."""
    parsed = parse_date(value)
    if parsed is None:
        return None
    return f"{parsed.year:04d}-{parsed.month:02d}"


def calculate_time_period_stats(
    items: Iterable[Any],
    date_field: DateField,
    now: Optional[datetime] = None,
) -> Dict[str, int]:
    """Count items dated within the trailing 30 and 90 days of ``now``."""
    now = resolve_now(now)
    thirty_days_ago = now - timedelta(days=30)
    ninety_days_ago = now - timedelta(days=90)

    last_30 = 0
    last_90 = 0
    for item in items:
        parsed = parse_date(resolve_field(item, date_field))
        if parsed is None:
            continue
        if parsed >= thirty_days_ago:
            last_30 += 1
        if parsed >= ninety_days_ago:
            last_90 += 1

    return {"last30Days": last_30, "last90Days": last_90}


def _echo_bound(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value or None


def format_date_range_for_response(
    request: DateRangeRequest = None,
    now: Optional[datetime] = None,
    default_start: Optional[datetime] = None,
) -> Dict[str, Optional[str]]:
    """
    Echo the requested range back in a response.

    An absent request is rendered as the default window in YYYY-MM-DD form.
    """
    if request is None:
        now = resolve_now(now)
        default_start = parse_date(default_start) or DEFAULT_START
        return {
            "start": default_start.date().isoformat(),
            "end": now.date().isoformat(),
        }

    if isinstance(request, DateRange):
        return {"start": _echo_bound(request.start), "end": _echo_bound(request.end)}

    return {"start": _echo_bound(request.get("start")), "end": _echo_bound(request.get("end"))}
