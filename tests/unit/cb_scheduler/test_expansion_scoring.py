"""Variant expansion and scoring heuristics."""

from datetime import datetime, timedelta

import pytest

from cb_controller.models.types import BenchmarkJob
from cb_runner.models.config import BenchmarkConfig
from cb_scheduler.expansion import base_suite, expand_benchmarks
from cb_scheduler.models import TimeWindow
from cb_scheduler.scoring import estimate_cost, estimate_duration, job_priority, window_score

pytestmark = pytest.mark.unit_scheduler


def _job(instance_type: str, label: str, region: str = "us-east-1") -> BenchmarkJob:
    suite = base_suite(label)
    return BenchmarkJob(
        job_id=f"{instance_type}-{label}",
        config=BenchmarkConfig(
            instance_type=instance_type,
            benchmark_suite=suite,
            variant=None if label == suite else label,
            region=region,
        ),
    )


def _window(priority: int = 1, preferred=(), instance_types=(), region=None) -> TimeWindow:
    return TimeWindow(
        name="w",
        start_time=datetime(2024, 5, 1, 8),
        duration=timedelta(hours=4),
        max_jobs=5,
        priority=priority,
        preferred_benchmarks=list(preferred),
        preferred_instance_types=list(instance_types),
        region_preference=region,
    )


def test_expansion_per_architecture() -> None:
    assert expand_benchmarks("m7i.large", ["stream"]) == [
        "stream", "stream-numa", "stream-cache", "stream-prefetch", "stream-avx512",
    ]
    assert expand_benchmarks("m7a.large", ["hpl"])[-2:] == ["hpl-blis", "hpl-zen4"]
    assert expand_benchmarks("c7g.large", ["hpl"])[-2:] == ["hpl-sve", "hpl-neoverse"]
    assert expand_benchmarks("c7g.large", ["micro"]) == [
        "micro", "micro-latency", "micro-ipc", "micro-tlb", "micro-cache",
    ]
    assert expand_benchmarks("m7i.large", ["custom"]) == ["custom"]
    assert base_suite("hpl-avx512-fma") == "hpl"


@pytest.mark.parametrize(
    "instance_type, benchmark, expected",
    [
        ("m7i.large", "stream", 50 + 30 + 20),
        ("m6i.xlarge", "hpl", 50 + 20 + 15 + 5),
        ("m5.large", "stream-numa", 50 + 10 + 25),
        ("c7g.large", "micro-cache", 50 + 30 + 18),
        ("c7g.large", "stream-neon", 50 + 30 + 12),
        ("m4.large", "micro-ipc", 50 + 8),
        ("m7i.large", "hpl-mkl", 50 + 30 + 10),
        ("m8g.large", "stream", 50 + 30 + 20),
        ("c8g.large", "hpl-sve", 50 + 30),
    ],
)
def test_job_priority(instance_type, benchmark, expected) -> None:
    assert job_priority(instance_type, benchmark) == expected


@pytest.mark.parametrize(
    "instance_type, benchmark, seconds",
    [
        ("m7i.large", "stream", 45),
        ("m7i.xlarge", "hpl", 90),
        ("m7i.2xlarge", "stream-numa", 150),
        ("m7i.8xlarge", "stream-cache", 160),
        ("m7i.large", "micro-ipc", 30),
        ("m7i.4xlarge", "stream-avx512", 112.5),
        ("m7i.large", "hpl-mkl", 67.5),
    ],
)
def test_estimate_duration(instance_type, benchmark, seconds) -> None:
    assert estimate_duration(instance_type, benchmark) == timedelta(seconds=seconds)


def test_estimate_cost() -> None:
    assert estimate_cost("m7i.large", "us-east-1") == pytest.approx(0.10)
    assert estimate_cost("m7i.xlarge", "us-east-1") == pytest.approx(0.20)
    assert estimate_cost("m7i.2xlarge", "us-east-1") == pytest.approx(0.80)
    assert estimate_cost("m7i.large", "eu-west-1") == pytest.approx(0.11)


def test_window_score_components() -> None:
    job = _job("m7i.large", "stream-avx512", region="us-east-1")
    assert window_score(job, _window(priority=2)) == 20 + 18
    assert window_score(job, _window(priority=2, preferred=["stream-avx512"])) == 20 + 25 + 15 + 18
    assert window_score(job, _window(priority=1, preferred=["stream"])) == 10 + 15 + 18
    assert window_score(job, _window(priority=1, instance_types=["m7i.large"])) == 10 + 20 + 18
    assert window_score(job, _window(priority=1, region="us-east-1")) == 10 + 12 + 18


def test_architecture_affinity_needs_matching_isa() -> None:
    amd = _job("m7a.large", "hpl-blis")
    graviton = _job("c7g.large", "hpl-blis")
    assert window_score(amd, _window()) == 10 + 18
    assert window_score(graviton, _window()) == 10


@pytest.mark.parametrize("instance_type", ["m7i.large", "m7a.large", "c7g.large"])
def test_every_variant_builds_a_distinct_command(instance_type) -> None:
    from cb_runner.plugin_system.registry import SuiteRegistry

    registry = SuiteRegistry(discover_entrypoints=False)
    commands = {}
    for label in expand_benchmarks(instance_type, ["stream", "hpl"]):
        job = _job(instance_type, label)
        commands[label] = registry.get(job.config.benchmark_suite).build_command(job.config)
    assert len(set(commands.values())) == len(commands)
