"""Calculators for engineering statistics."""

from .buckets import MonthlyStats, calculate_monthly_stats, generate_month_range
from .item_stats import ItemAdapter, ItemStats, calculate_item_stats
from .jira_stats import JiraStats, calculate_jira_stats, enrich_issue
from .resolution import calculate_cycle_time_by_priority, calculate_resolution_time_stats
from .velocity import VelocityStats, calculate_velocity, group_overlapping_sprints

__all__ = [
    "ItemAdapter",
    "ItemStats",
    "JiraStats",
    "MonthlyStats",
    "VelocityStats",
    "calculate_cycle_time_by_priority",
    "calculate_item_stats",
    "calculate_jira_stats",
    "calculate_monthly_stats",
    "calculate_resolution_time_stats",
    "calculate_velocity",
    "enrich_issue",
    "generate_month_range",
    "group_overlapping_sprints",
]
