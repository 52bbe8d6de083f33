"""Temporal aggregation and sprint velocity engine for engineering dashboards."""

__version__ = "0.1.0"
