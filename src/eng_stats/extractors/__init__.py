"""Extractors that parse provider-shaped Jira fields into typed values."""

from .sprints import extract_all_sprints, extract_sprint, find_sprint_field, get_best_sprint_for_issue, parse_sprint_string
from .story_points import StoryPointResolver, get_story_points
from .transitions import calculate_transition_days, get_status_transition_time

__all__ = [
    "StoryPointResolver",
    "calculate_transition_days",
    "extract_all_sprints",
    "extract_sprint",
    "find_sprint_field",
    "get_best_sprint_for_issue",
    "get_status_transition_time",
    "get_story_points",
    "parse_sprint_string",
]
