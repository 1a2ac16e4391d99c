"""Priority, duration, cost and window-affinity heuristics."""

from __future__ import annotations

from datetime import timedelta
from typing import Optional

from cb_controller.models.types import BenchmarkJob
from cb_provisioner.models.types import Architecture, detect_architecture, instance_generation

from .models import TimeWindow

BASE_PRIORITY = 50
BASE_DURATION = timedelta(seconds=45)
BASE_HOURLY_COST = 0.10
HOME_REGION = "us-east-1"

# Newest generation first; anything newer than the first entry gets its bonus.
_GENERATION_BONUS = ((7, 30), (6, 20), (5, 10))

# Checked in order; the first size that appears in the instance type wins.
_SIZE_DURATIONS = (
    ("8xlarge", timedelta(seconds=120)),
    ("4xlarge", timedelta(seconds=90)),
    ("2xlarge", timedelta(seconds=75)),
    ("xlarge", timedelta(seconds=60)),
)

_VECTOR_MARKERS = ("vector", "avx", "neon")
_LIBRARY_MARKERS = ("mkl", "blis")

_ARCH_AFFINITY = {
    Architecture.INTEL: ("avx", "mkl"),
    Architecture.AMD: ("blis", "zen"),
    Architecture.GRAVITON: ("neon", "sve"),
}


def _has_any(text: str, markers) -> bool:
    return any(marker in text for marker in markers)


def _generation_bonus(generation: Optional[int]) -> int:
    for minimum, bonus in _GENERATION_BONUS:
        if generation is not None and generation >= minimum:
            return bonus
    return 0


def job_priority(instance_type: str, benchmark: str) -> int:
    priority = BASE_PRIORITY
    priority += _generation_bonus(instance_generation(instance_type))

    if benchmark == "stream":
        priority += 20
    elif benchmark == "hpl":
        priority += 15
    elif "numa" in benchmark:
        priority += 25
    elif "cache" in benchmark:
        priority += 18
    elif _has_any(benchmark, _VECTOR_MARKERS):
        priority += 12
    elif "micro" in benchmark:
        priority += 8
    elif _has_any(benchmark, _LIBRARY_MARKERS):
        priority += 10

    if "xlarge" in instance_type:
        priority += 5
    return priority


def estimate_duration(instance_type: str, benchmark: str) -> timedelta:
    duration = BASE_DURATION
    for size, size_duration in _SIZE_DURATIONS:
        if size in instance_type:
            duration = size_duration
            break

    if benchmark == "hpl":
        return duration * 3 / 2
    if "numa" in benchmark:
        return duration * 2
    if "cache" in benchmark:
        return duration * 4 / 3
    if "micro" in benchmark:
        return duration * 2 / 3
    if _has_any(benchmark, _VECTOR_MARKERS):
        return duration * 5 / 4
    if _has_any(benchmark, _LIBRARY_MARKERS):
        return duration * 3 / 2
    return duration


def estimate_cost(instance_type: str, region: str) -> float:
    """Rough per-job cost: larger sizes and non-home regions cost more.

    Size multipliers compound, so ``2xlarge`` is eight times the base.
    """
    cost = BASE_HOURLY_COST
    if "xlarge" in instance_type:
        cost *= 2
    if "2xlarge" in instance_type:
        cost *= 4
    if region != HOME_REGION:
        cost *= 1.1
    return cost


def window_score(job: BenchmarkJob, window: TimeWindow) -> int:
    """Affinity of a job for a window; higher is better."""
    benchmark = job.benchmark
    instance_type = job.config.instance_type
    score = window.priority * 10

    for preferred in window.preferred_benchmarks:
        if preferred == benchmark:
            score += 25
        if preferred in benchmark or benchmark in preferred:
            score += 15

    if instance_type in window.preferred_instance_types:
        score += 20

    if window.region_preference and window.region_preference == job.config.region:
        score += 12

    markers = _ARCH_AFFINITY.get(detect_architecture(instance_type), ())
    if _has_any(benchmark, markers):
        score += 18
    return score
