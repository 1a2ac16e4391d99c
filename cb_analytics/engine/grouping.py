"""Aggregate results across jobs that share grouping dimensions."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from statistics import NormalDist
from typing import Any, Dict, List, Mapping, Optional, Tuple

import pandas as pd
from pydantic import BaseModel, Field

from cb_analytics.engine.aggregation import AggregatedMeasurement, aggregate
from cb_common.errors import ConfigurationError, InsufficientSamplesError

logger = logging.getLogger(__name__)

SUPPORTED_DIMENSIONS = ("instance_type", "instance_family", "benchmark_suite", "region")
MIN_GROUP_SAMPLE_SIZE = 3


class StatisticalConfig(BaseModel):
    confidence_level: float = Field(default=0.95, description="Confidence level in (0, 1)")
    min_sample_size: int = Field(default=MIN_GROUP_SAMPLE_SIZE, description="Minimum records per group")


class AggregationConfig(BaseModel):
    """How records are grouped, filtered and summarized."""

    grouping_dimensions: List[str] = Field(default_factory=lambda: ["instance_type"])
    statistical: StatisticalConfig = Field(default_factory=StatisticalConfig)
    quality_threshold: float = Field(
        default=0.0, ge=0.0, le=1.0, description="Minimum record quality score"
    )


def validate_aggregation_config(config: AggregationConfig) -> None:
    """Raise ConfigurationError for settings that would yield misleading summaries."""
    if not config.grouping_dimensions:
        raise ConfigurationError("No grouping dimensions specified")
    unknown = [d for d in config.grouping_dimensions if d not in SUPPORTED_DIMENSIONS]
    if unknown:
        raise ConfigurationError(
            f"Unsupported grouping dimensions: {', '.join(unknown)}",
            context={"unknown": unknown, "supported": list(SUPPORTED_DIMENSIONS)},
        )
    level = config.statistical.confidence_level
    if not 0 < level < 1:
        raise ConfigurationError(
            f"Confidence level must be within (0, 1), got {level}",
            context={"confidence_level": level},
        )
    if config.statistical.min_sample_size < MIN_GROUP_SAMPLE_SIZE:
        raise ConfigurationError(
            f"Minimum sample size must be at least {MIN_GROUP_SAMPLE_SIZE}",
            context={"min_sample_size": config.statistical.min_sample_size},
        )


@dataclass
class BenchmarkRecord:
    """One job's measurements plus the metadata used for grouping."""

    result_id: str
    instance_type: str
    benchmark_suite: str
    region: str
    timestamp: datetime
    measurements: Dict[str, float]
    quality_score: float = 1.0

    @property
    def instance_family(self) -> str:
        return self.instance_type.split(".", 1)[0]

    @classmethod
    def from_result(cls, result: Any, quality_score: float = 1.0) -> "BenchmarkRecord":
        """Build a record from a completed InstanceResult (field means)."""
        return cls(
            result_id=result.job_id,
            instance_type=result.instance_type,
            benchmark_suite=result.benchmark_suite,
            region=result.region,
            timestamp=result.end_time or result.start_time,
            measurements={name: agg.mean for name, agg in result.measurements.items()},
            quality_score=quality_score,
        )


@dataclass
class QualityAssessment:
    overall_score: float = 0.0
    statistical_confidence: float = 0.0
    completeness: float = 0.0
    consistency: float = 0.0


@dataclass
class AggregatedGroup:
    dimensions: Dict[str, str]
    measurements: Dict[str, AggregatedMeasurement]
    confidence_intervals: Dict[str, Tuple[float, float]]
    quality: QualityAssessment
    sample_size: int
    time_range: Tuple[datetime, datetime]


class GroupAggregator:
    """Filter by quality, group by dimensions and summarize each group."""

    def __init__(self, config: Optional[AggregationConfig] = None) -> None:
        self.config = config or AggregationConfig()
        validate_aggregation_config(self.config)
        self._z = NormalDist().inv_cdf(0.5 + self.config.statistical.confidence_level / 2)

    def aggregate(self, records: List[BenchmarkRecord]) -> List[AggregatedGroup]:
        """Return one summary per sufficiently large group, best quality first.

        Raises InsufficientSamplesError when fewer quality-filtered records
        than the minimum sample size are available overall.
        """
        min_size = self.config.statistical.min_sample_size
        kept = [r for r in records if r.quality_score >= self.config.quality_threshold]
        if len(kept) < min_size:
            raise InsufficientSamplesError(
                f"Insufficient quality results ({len(kept)} < {min_size})",
                context={"available": len(kept), "required": min_size},
            )

        frame = self._to_frame(kept)
        dims = list(self.config.grouping_dimensions)
        groups: List[AggregatedGroup] = []
        for key, group in frame.groupby(dims, sort=True, dropna=False):
            if len(group) < min_size:
                logger.debug("Skipping group %s with %d records", key, len(group))
                continue
            groups.append(self._summarize(dims, key, group))
        groups.sort(key=lambda g: g.quality.overall_score, reverse=True)
        return groups

    def _to_frame(self, records: List[BenchmarkRecord]) -> pd.DataFrame:
        rows = []
        for record in records:
            row: Dict[str, Any] = {
                "instance_type": record.instance_type,
                "instance_family": record.instance_family,
                "benchmark_suite": record.benchmark_suite,
                "region": record.region,
                "timestamp": record.timestamp,
                "quality_score": record.quality_score,
            }
            row.update({f"m:{name}": value for name, value in record.measurements.items()})
            rows.append(row)
        return pd.DataFrame(rows)

    def _summarize(self, dims: List[str], key: Any, group: pd.DataFrame) -> AggregatedGroup:
        values = key if isinstance(key, tuple) else (key,)
        dimensions = {dim: str(value) for dim, value in zip(dims, values)}
        metric_columns = [c for c in group.columns if c.startswith("m:")]

        measurements: Dict[str, AggregatedMeasurement] = {}
        intervals: Dict[str, Tuple[float, float]] = {}
        for column in metric_columns:
            series = group[column].dropna()
            if series.empty:
                continue
            name = column[2:]
            summary = aggregate(series.tolist())
            measurements[name] = summary
            intervals[name] = self._confidence_interval(summary)

        return AggregatedGroup(
            dimensions=dimensions,
            measurements=measurements,
            confidence_intervals=intervals,
            quality=self._assess_quality(group, metric_columns, measurements),
            sample_size=len(group),
            time_range=(group["timestamp"].min(), group["timestamp"].max()),
        )

    def _confidence_interval(self, summary: AggregatedMeasurement) -> Tuple[float, float]:
        if summary.count <= 1:
            return (summary.mean, summary.mean)
        margin = self._z * summary.std_dev / math.sqrt(summary.count)
        return (summary.mean - margin, summary.mean + margin)

    @staticmethod
    def _assess_quality(
        group: pd.DataFrame,
        metric_columns: List[str],
        measurements: Mapping[str, AggregatedMeasurement],
    ) -> QualityAssessment:
        avg_quality = float(group["quality_score"].mean())
        if metric_columns:
            completeness = float(group[metric_columns].notna().all(axis=1).mean())
        else:
            completeness = 0.0
        if measurements:
            mean_cv = sum(m.coefficient_of_variation for m in measurements.values()) / len(
                measurements
            )
            consistency = max(0.0, min(1.0, 1.0 - mean_cv))
        else:
            consistency = 0.0
        return QualityAssessment(
            overall_score=(avg_quality + completeness + consistency) / 3.0,
            statistical_confidence=avg_quality,
            completeness=completeness,
            consistency=consistency,
        )
