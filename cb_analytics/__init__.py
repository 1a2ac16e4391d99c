"""Result aggregation for cloudbench."""

from cb_analytics.api import (  # noqa: F401
    AggregatedMeasurement,
    AggregationConfig,
    GroupAggregator,
    aggregate,
    aggregate_iterations,
    percentile,
)

__all__ = [
    "AggregatedMeasurement",
    "AggregationConfig",
    "GroupAggregator",
    "aggregate",
    "aggregate_iterations",
    "percentile",
]
