"""Window generation, placement and estimates."""

from collections import Counter
from datetime import datetime, timedelta, timezone

import pytest

from cb_common.errors import ConfigurationError, UnknownSuiteError
from cb_runner.plugin_system.registry import SuiteRegistry
from cb_scheduler.models import SchedulerConfig, WeeklyPlan
from cb_scheduler.planner import (
    build_jobs,
    calculate_estimates,
    distribute_jobs,
    generate_windows,
    plan_campaign,
)
from cb_scheduler.scheduler import BatchScheduler

pytestmark = pytest.mark.unit_scheduler

START = datetime(2024, 5, 6, 7, 30, tzinfo=timezone.utc)


def test_generate_windows_three_per_day() -> None:
    windows = generate_windows(SchedulerConfig(max_daily_jobs=12), START)

    assert len(windows) == 21
    morning, afternoon, evening = windows[:3]
    assert morning.start_time == datetime(2024, 5, 6, 8, tzinfo=timezone.utc)
    assert morning.duration == timedelta(hours=4)
    assert (morning.max_jobs, afternoon.max_jobs, evening.max_jobs) == (4, 6, 3)
    assert (morning.priority, afternoon.priority, evening.priority) == (1, 2, 3)
    assert afternoon.start_time == datetime(2024, 5, 6, 14, tzinfo=timezone.utc)
    assert "hpl-mkl" in evening.preferred_benchmarks
    assert windows[-1].start_time == datetime(2024, 5, 12, 20, tzinfo=timezone.utc)


def test_build_jobs_per_region_with_tags() -> None:
    config = SchedulerConfig(preferred_regions=["us-east-1", "eu-west-1"], retry_attempts=2)
    jobs = build_jobs(config, ["m7g.large"], ["stream"], {"subnet_id": "subnet-1"})

    assert len(jobs) == 5 * 2
    assert len({job.job_id for job in jobs}) == len(jobs)
    neon = [job for job in jobs if job.benchmark == "stream-neon"]
    assert {job.config.region for job in neon} == {"us-east-1", "eu-west-1"}
    job = neon[0]
    assert job.config.benchmark_suite == "stream"
    assert job.config.subnet_id == "subnet-1"
    assert job.config.max_retries == 2
    assert job.tags == {
        "instance_family": "m7g",
        "benchmark_type": "stream-neon",
        "architecture": "graviton",
        "region": job.config.region,
    }


def test_capacity_is_never_exceeded_and_overflow_dropped() -> None:
    config = SchedulerConfig(max_daily_jobs=4, campaign_days=1)
    plan = plan_campaign(
        config, ["m7i.large", "m7a.large", "c7g.large"], ["stream", "hpl"], start=START
    )

    per_window = Counter(plan.assignments.values())
    for index, window in enumerate(plan.windows):
        assert len(window.jobs) <= window.max_jobs
        assert per_window[index] == len(window.jobs)
    # 1 + 2 + 1 slots for 3 x 10 generated jobs
    assert len(plan.jobs) == 4
    assert len(plan.dropped) == 26
    assert plan.metadata["generated_jobs"] == 30


def test_highest_priority_jobs_are_placed_first() -> None:
    config = SchedulerConfig(max_daily_jobs=4, campaign_days=1)
    plan = plan_campaign(config, ["m7i.large"], ["stream"], start=START)

    placed = {job.benchmark for job in plan.jobs}
    # stream-numa (105) and stream (100) outrank the remaining variants
    assert {"stream-numa", "stream"} <= placed
    dropped_max = max(job.priority for job in plan.dropped)
    assert all(job.priority >= dropped_max for job in plan.jobs)


def test_placement_follows_affinity() -> None:
    plan = plan_campaign(SchedulerConfig(campaign_days=1), ["m7i.large"], ["hpl"], start=START)

    by_label = {job.benchmark: plan.window_for(job.job_id).name for job in plan.jobs}
    assert by_label["hpl-mkl"] == "day1-evening"
    assert by_label["hpl"] == "day1-afternoon"


def test_estimates() -> None:
    plan = plan_campaign(SchedulerConfig(campaign_days=1), ["m7i.xlarge"], ["stream"], start=START)

    assert plan.estimated_cost == pytest.approx(0.2 * len(plan.jobs))
    latest = max(
        plan.window_for(job.job_id).start_time - START + job.estimated_duration
        for job in plan.jobs
    )
    assert plan.estimated_duration == latest


def test_empty_plan_estimates() -> None:
    plan = WeeklyPlan(start_date=START, windows=[])
    distribute_jobs(plan, [])
    calculate_estimates(plan)
    assert plan.estimated_cost == 0.0
    assert plan.estimated_duration == timedelta(0)


def test_plan_to_dict_is_serializable() -> None:
    import json

    plan = plan_campaign(SchedulerConfig(campaign_days=1), ["m7i.large"], ["stream"], start=START)
    payload = json.loads(json.dumps(plan.to_dict()))
    assert len(payload["windows"]) == 3
    assert len(payload["jobs"]) == len(plan.jobs)


def test_scheduler_validates_suites_before_planning() -> None:
    scheduler = BatchScheduler(registry=SuiteRegistry(discover_entrypoints=False))
    with pytest.raises(UnknownSuiteError):
        scheduler.generate_campaign(["m7i.large"], ["stream", "micro"], start=START)
    with pytest.raises(ConfigurationError):
        scheduler.generate_campaign([], ["stream"], start=START)
    plan = scheduler.generate_campaign(["m7i.large"], ["stream-numa"], start=START)
    assert [job.benchmark for job in plan.jobs] == ["stream-numa"]
