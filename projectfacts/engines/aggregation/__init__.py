"""Aggregation engine — pure statistics over canonical facts."""

from projectfacts.engines.aggregation.engine import AggregateMetrics, aggregate
from projectfacts.engines.aggregation.stats import (
    activity_density,
    business_days_between,
    days_between,
    gini_coefficient,
    growth_rate,
    mean,
    median,
    percentage,
    percentile,
    percentiles,
    ratio,
    standard_deviation,
    variance,
)
from projectfacts.engines.aggregation.window import ActivityWindow

__all__ = [
    "ActivityWindow",
    "AggregateMetrics",
    "activity_density",
    "aggregate",
    "business_days_between",
    "days_between",
    "gini_coefficient",
    "growth_rate",
    "mean",
    "median",
    "percentage",
    "percentile",
    "percentiles",
    "ratio",
    "standard_deviation",
    "variance",
]
