"""
Statistical reduction of repeated measurements.

Everything here is a pure function of its input: re-running an aggregation
over the same raw values yields identical summaries, so summaries are never
stored as a source of truth.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Sequence

import numpy as np

REPORTED_PERCENTILES = (5, 25, 75, 95)


@dataclass(frozen=True)
class AggregatedMeasurement:
    """Summary statistics of one measured field."""

    mean: float = 0.0
    median: float = 0.0
    std_dev: float = 0.0
    min: float = 0.0
    max: float = 0.0
    count: int = 0
    percentiles: Dict[str, float] = field(default_factory=dict)

    @property
    def coefficient_of_variation(self) -> float:
        if self.mean == 0:
            return 0.0
        return self.std_dev / abs(self.mean)

    def to_dict(self) -> Dict[str, object]:
        return {
            "mean": self.mean,
            "median": self.median,
            "std_dev": self.std_dev,
            "min": self.min,
            "max": self.max,
            "count": self.count,
            "percentiles": dict(self.percentiles),
        }


def percentile(values: Sequence[float], pct: float) -> float:
    """Linear interpolation between order statistics at ``pct/100 * (n - 1)``."""
    if len(values) == 0:
        return 0.0
    if not 0 <= pct <= 100:
        raise ValueError(f"percentile must be within [0, 100], got {pct}")
    return float(np.percentile(np.asarray(values, dtype=float), pct, method="linear"))


def aggregate(values: Iterable[float]) -> AggregatedMeasurement:
    """Reduce raw values to mean/median/sample deviation/min/max/percentiles.

    Empty input yields a zero-valued summary; a single value has zero
    deviation.
    """
    data = np.sort(np.asarray(list(values), dtype=float))
    n = int(data.size)
    if n == 0:
        return AggregatedMeasurement()
    std_dev = float(np.std(data, ddof=1)) if n > 1 else 0.0
    return AggregatedMeasurement(
        mean=float(np.mean(data)),
        median=float(np.median(data)),
        std_dev=std_dev,
        min=float(data[0]),
        max=float(data[-1]),
        count=n,
        percentiles={f"P{p}": percentile(data, p) for p in REPORTED_PERCENTILES},
    )


def aggregate_iterations(
    samples: Sequence[Mapping[str, float]],
) -> Dict[str, AggregatedMeasurement]:
    """Aggregate per-iteration field maps into one summary per field.

    Fields missing from some iterations are aggregated over the iterations
    that reported them.
    """
    columns: Dict[str, List[float]] = {}
    for sample in samples:
        for name, value in sample.items():
            columns.setdefault(name, []).append(float(value))
    return {name: aggregate(values) for name, values in sorted(columns.items())}
