"""Insights aggregation package."""

from tapmoney.insights.engine import AggregationEngine, civil_day

__all__ = ["AggregationEngine", "civil_day"]
