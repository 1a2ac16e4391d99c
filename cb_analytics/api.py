"""Public API surface for cb_analytics."""

from cb_analytics.engine.aggregation import (
    REPORTED_PERCENTILES,
    AggregatedMeasurement,
    aggregate,
    aggregate_iterations,
    percentile,
)
from cb_analytics.engine.grouping import (
    SUPPORTED_DIMENSIONS,
    AggregatedGroup,
    AggregationConfig,
    BenchmarkRecord,
    GroupAggregator,
    QualityAssessment,
    StatisticalConfig,
    validate_aggregation_config,
)

__all__ = [
    "AggregatedGroup",
    "AggregatedMeasurement",
    "AggregationConfig",
    "BenchmarkRecord",
    "GroupAggregator",
    "QualityAssessment",
    "REPORTED_PERCENTILES",
    "SUPPORTED_DIMENSIONS",
    "StatisticalConfig",
    "aggregate",
    "aggregate_iterations",
    "percentile",
    "validate_aggregation_config",
]
