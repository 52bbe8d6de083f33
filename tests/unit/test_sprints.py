"""Unit tests for sprint extraction."""

from datetime import datetime, timezone

import pytest

from eng_stats.extractors.sprints import (
    extract_all_sprints,
    extract_sprint,
    find_sprint_field,
    get_best_sprint_for_issue,
    get_board_ids_from_issues,
    get_board_name,
    get_sprint_name,
    parse_sprint_string,
)

ENCODED = (
    "com.atlassian.greenhopper.service.sprint.Sprint@5c1f2a[id=42,rapidViewId=7,state=CLOSED,"
    "name=Payments Sprint 12,startDate=2025-01-06T09:00:00.000Z,endDate=2025-01-20T09:00:00.000Z,"
    "completeDate=<null>,sequence=42]"
)

ENCODED_LATER = (
    "com.atlassian.greenhopper.service.sprint.Sprint@9e0d[id=43,rapidViewId=7,state=ACTIVE,"
    "name=Payments Sprint 13,startDate=2025-01-20T09:00:00.000Z,endDate=2025-02-03T09:00:00.000Z,"
    "completeDate=<null>,sequence=43]"
)


@pytest.mark.unit
class TestParseSprintString:
    """Test decoding of the bracketed key=value sprint encoding."""

    def test_parses_pairs(self):
        """Test values are split, nulls mapped and numbers coerced."""
        data = parse_sprint_string(ENCODED)

        assert data["id"] == 42
        assert data["rapidViewId"] == 7
        assert data["state"] == "CLOSED"
        assert data["name"] == "Payments Sprint 12"
        assert data["startDate"] == "2025-01-06T09:00:00.000Z"
        assert data["completeDate"] is None

    def test_value_split_on_first_equals(self):
        """Test values may themselves contain '='."""
        data = parse_sprint_string("Sprint@1[id=1,goal=a=b]")
        assert data["goal"] == "a=b"

    def test_float_values(self):
        """Test decimal numbers are coerced to floats."""
        assert parse_sprint_string("Sprint@1[id=1,velocity=3.5]")["velocity"] == 3.5

    def test_no_brackets(self):
        """Test strings without an encoded section."""
        assert parse_sprint_string("Payments Sprint 12") is None


@pytest.mark.unit
class TestExtractSprint:
    """Test sprint extraction over every field form."""

    def test_single_encoded_string(self):
        """Test form (a): one encoded string."""
        sprint = extract_sprint(ENCODED)

        assert sprint.id == 42
        assert sprint.name == "Payments Sprint 12"
        assert sprint.start_date == datetime(2025, 1, 6, 9, 0, tzinfo=timezone.utc)
        assert sprint.end_date == datetime(2025, 1, 20, 9, 0, tzinfo=timezone.utc)
        assert sprint.complete_date is None
        assert sprint.rapid_view_id == 7

    def test_encoded_list_picks_earliest(self):
        """Test form (b): the earliest sprint wins regardless of order."""
        assert extract_sprint([ENCODED_LATER, ENCODED]).id == 42

    def test_object_list_picks_earliest(self):
        """Test form (c): structured objects sorted by start date."""
        field = [
            {"id": 2, "name": "S2", "startDate": "2025-02-01T00:00:00.000Z", "endDate": "2025-02-14T00:00:00.000Z"},
            {"id": 1, "name": "S1", "startDate": "2025-01-01T00:00:00.000Z", "endDate": "2025-01-14T00:00:00.000Z"},
        ]
        assert extract_sprint(field).id == 1

    def test_undated_sprints_use_first_element(self):
        """Test the first element is used when no sprint has a start date."""
        assert extract_sprint([{"id": 2, "name": "B"}, {"id": 1, "name": "A"}]).id == 2

    def test_dated_sprint_beats_undated(self):
        """Test that an undated sprint never wins over a dated one."""
        field = [{"id": 2, "name": "B"}, {"id": 1, "name": "A", "startDate": "2025-03-01"}]
        assert extract_sprint(field).id == 1

    def test_single_object(self):
        """Test form (d): a single structured object."""
        sprint = extract_sprint({"id": 5, "name": "Team Sprint 3", "boardId": 9, "state": "closed"})

        assert sprint.id == 5
        assert sprint.board_id == 9
        assert sprint.board_ref == 9
        assert not sprint.has_dates

    def test_object_with_sprint_id(self):
        """Test objects that carry sprintId instead of id."""
        sprint = extract_sprint({"sprintId": 8, "value": "Mobile Sprint 2"})

        assert sprint.id == 8
        assert sprint.name == "Mobile Sprint 2"

    def test_bare_id(self):
        """Test a bare numeric sprint reference."""
        sprint = extract_sprint(17)

        assert sprint.id == 17
        assert sprint.name == "Sprint 17"

    @pytest.mark.parametrize("field", [None, [], "garbage", "", {"name": "no id"}, [None, "junk"], 3.5])
    def test_unparseable_returns_none(self, field):
        """Test malformed fields never raise."""
        assert extract_sprint(field) is None

    def test_mixed_list_skips_bad_entries(self):
        """Test that one bad entry does not hide a good one."""
        assert extract_sprint(["junk", ENCODED]).id == 42

    def test_extract_all_sprints(self):
        """Test every parseable sprint is returned in order."""
        sprints = extract_all_sprints([ENCODED_LATER, "junk", ENCODED])
        assert [sprint.id for sprint in sprints] == [43, 42]


@pytest.mark.unit
class TestFindSprintField:
    """Test locating the sprint field in an issue."""

    def test_known_field(self):
        """Test a common sprint field ID."""
        value = [{"id": 1, "name": "Sprint 1"}]
        assert find_sprint_field({"customfield_10020": value}) is value

    def test_probe_order(self):
        """Test earlier field IDs win."""
        assert find_sprint_field({"customfield_10020": [{"id": 2}], "customfield_10105": ENCODED}) == ENCODED

    def test_empty_values_skipped(self):
        """Test empty lists and nulls fall through."""
        value = [{"id": 3, "name": "Sprint 3"}]
        assert find_sprint_field({"customfield_10105": [], "customfield_10020": None, "customfield_10007": value}) is value

    def test_scan_for_unknown_field(self):
        """Test deployment-specific IDs are found by shape."""
        value = [{"id": 1, "name": "X", "startDate": "2025-01-01"}]
        fields = {"customfield_99999": value, "customfield_12345": "text", "summary": "Sprint planning"}

        assert find_sprint_field(fields) is value

    def test_scan_ignores_plain_text(self):
        """Test that text mentioning sprints is not mistaken for sprint data."""
        fields = {"summary": "Fix sprint board", "customfield_12345": "discussed in sprint review"}
        assert find_sprint_field(fields) is None

    def test_no_fields(self):
        """Test missing field maps."""
        assert find_sprint_field(None) is None
        assert find_sprint_field({}) is None


@pytest.mark.unit
class TestSprintHelpers:
    """Test issue-level sprint helpers."""

    def test_best_sprint_and_name(self):
        """Test resolving an issue's attributed sprint."""
        issue = {"key": "PAY-1", "fields": {"customfield_10105": [ENCODED_LATER, ENCODED]}}

        assert get_best_sprint_for_issue(issue).id == 42
        assert get_sprint_name(issue) == "Payments Sprint 12"
        assert get_sprint_name({"key": "PAY-2", "fields": {}}) is None

    @pytest.mark.parametrize(
        "name,rapid_view_id,expected",
        [
            ("Payments - Sprint 12", None, "Payments"),
            ("Mobile Sprint 4", None, "Mobile"),
            ("Platform Sprint", None, "Platform"),
            ("Sprint 12", 7, "Board 7"),
            ("Q3 Hardening", 3, "Board 3"),
            (None, None, None),
        ],
    )
    def test_get_board_name(self, name, rapid_view_id, expected):
        """Test board inference from sprint names."""
        assert get_board_name(name, rapid_view_id) == expected

    def test_board_ids_from_issues(self):
        """Test unique board IDs across issues."""
        issues = [
            {"fields": {"customfield_10105": ENCODED}},
            {"fields": {"customfield_10020": [{"id": 5, "name": "Team Sprint 1", "boardId": 9}]}},
            {"fields": {"customfield_10105": ENCODED_LATER}},
            {"fields": {}},
        ]

        assert get_board_ids_from_issues(issues) == [7, 9]
