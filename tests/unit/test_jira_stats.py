"""Unit tests for the Jira dashboard statistics."""

from datetime import datetime, timezone

import pytest

from eng_stats.calculators.jira_stats import (
    calculate_jira_stats,
    enrich_issue,
    is_countable_issue,
    select_recent_issues,
)

NOW = datetime(2025, 3, 15, 12, 0, tzinfo=timezone.utc)

Q1 = {"start": "2025-01-01", "end": "2025-03-31"}

SPRINT_1 = {
    "id": 101,
    "name": "Payments Sprint 1",
    "startDate": "2025-02-24T00:00:00.000Z",
    "endDate": "2025-03-09T00:00:00.000Z",
}


def jira_issue(key, issue_type, status, updated, created, resolved=None, assignee="dev", priority="Medium",
               project="PAY", points=None, sprint=None, histories=None):
    fields = {
        "issuetype": {"name": issue_type},
        "status": {"name": status},
        "assignee": {"displayName": assignee} if assignee else None,
        "updated": updated,
        "created": created,
        "resolutiondate": resolved,
        "priority": {"name": priority},
        "project": {"key": project},
    }
    if points is not None:
        fields["customfield_10106"] = points
    if sprint is not None:
        fields["customfield_10020"] = [sprint]
    issue = {"key": key, "fields": fields}
    if histories is not None:
        issue["changelog"] = {"histories": histories}
    return issue


@pytest.mark.unit
class TestJiraStats:
    """Test the aggregate Jira statistics."""

    @pytest.fixture
    def issues(self):
        """A user's issues including ones that are not counted as work."""
        return [
            jira_issue(
                "PAY-1", "Story", "Done", "2025-03-10T10:00:00.000+0000", "2025-03-01T00:00:00.000+0000",
                resolved="2025-03-05T00:00:00.000+0000", priority="High", points=5, sprint=SPRINT_1,
                histories=[
                    {"created": "2025-03-02T00:00:00.000+0000",
                     "items": [{"field": "status", "toString": "In Progress"}]},
                    {"created": "2025-03-04T00:00:00.000+0000",
                     "items": [{"field": "status", "toString": "Ready for QA"}]},
                ],
            ),
            jira_issue(
                "PAY-2", "Bug", "In Progress", "2025-02-01T10:00:00.000+0000", "2025-01-20T00:00:00.000+0000",
                points=3, sprint=dict(SPRINT_1),
            ),
            jira_issue(
                "PAY-3", "Task", "Closed", "2025-03-01T10:00:00.000+0000", "2025-02-01T00:00:00.000+0000",
                resolved="2025-02-02T00:00:00.000+0000", assignee=None, points=8,
            ),
            jira_issue("PAY-4", "User Story", "In Progress", "2025-03-01T10:00:00.000+0000",
                       "2025-02-01T00:00:00.000+0000", points=13),
            jira_issue(
                "MOB-1", "Task", "Resolved", "2024-11-01T10:00:00.000+0000", "2024-10-01T00:00:00.000+0000",
                resolved="2024-10-05T00:00:00.000+0000", priority="Low", project="MOB", points=2,
            ),
        ]

    @pytest.fixture
    def stats(self, issues):
        """Stats for the first quarter."""
        return calculate_jira_stats(issues, date_range=Q1, now=NOW)

    def test_counts(self, stats):
        """Test totals over countable issues."""
        assert stats.total == 3
        assert stats.resolved == 2
        assert stats.done == 1
        assert stats.in_progress == 2
        assert stats.total_story_points == 10

    def test_trailing_windows_use_updated(self, stats):
        """Test last 30/90 day counts by last update."""
        assert stats.last_30_days == 1
        assert stats.last_90_days == 2

    def test_breakdowns(self, stats):
        """Test per-type and per-project rollups."""
        assert stats.by_type == {
            "Story": {"total": 1, "resolved": 1},
            "Bug": {"total": 1, "resolved": 0},
            "Task": {"total": 1, "resolved": 1},
        }
        assert stats.by_project == {
            "PAY": {"total": 2, "resolved": 1, "open": 1},
            "MOB": {"total": 1, "resolved": 1, "open": 0},
        }

    def test_cycle_and_resolution_time(self, stats):
        """Test the time-based statistics."""
        assert stats.cycle_time.by_priority["P2"] == 4.0
        assert stats.cycle_time.by_priority["P4"] == 4.0
        assert stats.cycle_time.overall == 4.0
        assert stats.resolution_time.avg_resolution_time == 2.0
        assert stats.resolution_time.avg_resolution_time_count == 1

    def test_velocity(self, stats):
        """Test velocity over the countable issues."""
        assert stats.velocity.total_sprints == 1
        assert stats.velocity.average_velocity == 8.0
        assert stats.velocity.issues_without_sprint == 1

    def test_monthly_buckets_use_updated(self, stats):
        """Test monthly counts by last update within the range."""
        assert [(bucket.month, bucket.count) for bucket in stats.monthly_issues.buckets] == [
            ("2025-01", 0),
            ("2025-02", 1),
            ("2025-03", 1),
        ]
        assert stats.monthly_issues.average_per_month == 1.0

    def test_recent_issues_enriched(self, stats):
        """Test the recent sample is newest first and annotated."""
        assert [issue["key"] for issue in stats.issues] == ["PAY-1", "PAY-2", "MOB-1"]
        first = stats.issues[0]
        assert first["_sprintName"] == "Payments Sprint 1"
        assert first["_inProgressDate"] == "2025-03-02T00:00:00+00:00"
        assert first["_qaReadyDate"] == "2025-03-04T00:00:00+00:00"
        assert stats.issues[2]["_sprintName"] is None

    def test_to_dict_flattens_resolution_time(self, stats):
        """Test the serialized record layout."""
        result = stats.to_dict()

        assert result["avgResolutionTime"] == 2.0
        assert result["avgResolutionTimeCount"] == 1
        assert result["cycleTime"]["counts"]["total"] == 2
        assert result["velocity"]["averageVelocity"] == 8.0
        assert result["dateRange"] == {"start": "2025-01-01", "end": "2025-03-31"}
        assert result["avgIssuesPerMonth"] == 1.0

    def test_absent_range_keeps_every_sprint(self, issues):
        """Test velocity is unfiltered when no range is requested."""
        old_sprint = {"id": 90, "name": "Payments Sprint 0", "startDate": "2024-06-01", "endDate": "2024-06-14"}
        issues.append(jira_issue("PAY-9", "Task", "Done", "2024-06-20T00:00:00.000+0000",
                                 "2024-06-01T00:00:00.000+0000", points=4, sprint=old_sprint))

        stats = calculate_jira_stats(issues, now=NOW, default_start=datetime(2025, 1, 1, tzinfo=timezone.utc))

        assert stats.velocity.total_sprints == 2
        assert stats.date_range == {"start": "2025-01-01", "end": "2025-03-15"}

    def test_inputs_not_mutated(self, issues):
        """Test enrichment works on copies."""
        calculate_jira_stats(issues, date_range=Q1, now=NOW)
        assert all("_sprintName" not in issue for issue in issues)


@pytest.mark.unit
class TestJiraStatsHelpers:
    """Test the issue filters and sampling helpers."""

    @pytest.mark.parametrize(
        "status,assignee,issue_type,expected",
        [
            ("Done", "dev", "Task", True),
            ("Done", None, "Task", False),
            ("Resolved", None, "Bug", False),
            ("In Progress", None, "Task", True),
            ("In Progress", "dev", "User Story", False),
        ],
    )
    def test_is_countable_issue(self, status, assignee, issue_type, expected):
        """Test the work-item filter."""
        issue = jira_issue("X-1", issue_type, status, None, None, assignee=assignee)
        assert is_countable_issue(issue) is expected

    def test_select_recent_issues(self):
        """Test ordering by update, falling back to creation, dropping undated issues."""
        issues = [
            {"key": "A", "fields": {"updated": "2025-01-01"}},
            {"key": "B", "fields": {"created": "2025-02-01"}},
            {"key": "C", "fields": {}},
        ] + [{"key": f"D{i}", "fields": {"updated": f"2024-12-0{i}"}} for i in range(1, 6)]

        recent = select_recent_issues(issues)

        assert [issue["key"] for issue in recent] == ["B", "A", "D5", "D4", "D3"]

    def test_enrich_issue_without_changelog(self):
        """Test annotation of an issue with nothing to annotate."""
        enriched = enrich_issue({"key": "X-1", "fields": {}})

        assert enriched["_sprintName"] is None
        assert enriched["_inProgressDate"] is None
        assert enriched["_qaReadyDate"] is None
