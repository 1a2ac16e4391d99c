"""Campaign planning: job-set expansion, windowing and placement."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, List, Mapping, Optional, Sequence

from cb_controller.models.types import BenchmarkJob, new_job_id
from cb_provisioner.models.types import detect_architecture, instance_family
from cb_runner.models.config import BenchmarkConfig

from .expansion import base_suite, expand_benchmarks
from .models import SchedulerConfig, TimeWindow, WeeklyPlan
from .scoring import estimate_cost, estimate_duration, job_priority, window_score

logger = logging.getLogger(__name__)


# name, start hour, duration, capacity divisor, priority, preferred benchmarks
_DAILY_WINDOWS = (
    ("morning", 8, timedelta(hours=4), 3, 1, ("stream", "stream-cache", "stream-numa", "micro-cache")),
    ("afternoon", 14, timedelta(hours=6), 2, 2, ("hpl", "hpl-vector", "stream-avx512", "stream-neon")),
    ("evening", 20, timedelta(hours=4), 4, 3, ("hpl-mkl", "hpl-blis", "micro-latency", "micro-ipc")),
)


def generate_windows(config: SchedulerConfig, start: datetime) -> List[TimeWindow]:
    """Three windows per day, anchored to the campaign's start date."""
    midnight = start.replace(hour=0, minute=0, second=0, microsecond=0)
    windows: List[TimeWindow] = []
    for day in range(config.campaign_days):
        day_start = midnight + timedelta(days=day)
        for name, hour, duration, divisor, priority, preferred in _DAILY_WINDOWS:
            windows.append(
                TimeWindow(
                    name=f"day{day + 1}-{name}",
                    start_time=day_start + timedelta(hours=hour),
                    duration=duration,
                    max_jobs=config.max_daily_jobs // divisor,
                    priority=priority,
                    preferred_benchmarks=list(preferred),
                )
            )
    return windows


def build_jobs(
    config: SchedulerConfig,
    instance_types: Sequence[str],
    benchmark_suites: Sequence[str],
    config_defaults: Optional[Mapping[str, Any]] = None,
) -> List[BenchmarkJob]:
    """One job per instance type x expanded benchmark x preferred region."""
    defaults = dict(config_defaults or {})
    jobs: List[BenchmarkJob] = []
    for instance_type in instance_types:
        architecture = detect_architecture(instance_type)
        for label in expand_benchmarks(instance_type, benchmark_suites):
            suite = base_suite(label)
            for region in config.preferred_regions:
                benchmark_config = BenchmarkConfig(
                    **{
                        **defaults,
                        "instance_type": instance_type,
                        "benchmark_suite": suite,
                        "variant": label if label != suite else None,
                        "region": region,
                        "max_retries": config.retry_attempts,
                    }
                )
                jobs.append(
                    BenchmarkJob(
                        job_id=new_job_id(),
                        config=benchmark_config,
                        priority=job_priority(instance_type, label),
                        estimated_duration=estimate_duration(instance_type, label),
                        estimated_cost=estimate_cost(instance_type, region),
                        tags={
                            "instance_family": instance_family(instance_type),
                            "benchmark_type": label,
                            "architecture": architecture.value,
                            "region": region,
                        },
                    )
                )
    return jobs


def distribute_jobs(plan: WeeklyPlan, jobs: Sequence[BenchmarkJob]) -> None:
    """Greedy placement into the best-scoring window that still has room.

    Jobs are visited by descending priority (stable for ties); a window wins
    only with a strictly higher score, so the earliest window breaks ties.
    Jobs that fit nowhere are recorded in ``plan.dropped``.
    """
    for job in sorted(jobs, key=lambda j: j.priority, reverse=True):
        best_index: Optional[int] = None
        best_score = -1
        for index, window in enumerate(plan.windows):
            if not window.has_capacity:
                continue
            score = window_score(job, window)
            if score > best_score:
                best_index, best_score = index, score

        if best_index is None:
            plan.dropped.append(job)
            continue

        plan.windows[best_index].assign(job)
        plan.assignments[job.job_id] = best_index
        plan.jobs.append(job)

    if plan.dropped:
        logger.warning(
            "%d job(s) did not fit any window and were dropped from the plan",
            len(plan.dropped),
        )


def calculate_estimates(plan: WeeklyPlan) -> None:
    """Sum job costs; duration is the latest job completion offset from the start."""
    plan.estimated_cost = sum(job.estimated_cost for job in plan.jobs)
    latest = timedelta(0)
    for job in plan.jobs:
        window = plan.window_for(job.job_id)
        offset = max(window.start_time - plan.start_date, timedelta(0))
        latest = max(latest, offset + job.estimated_duration)
    plan.estimated_duration = latest


def plan_campaign(
    config: SchedulerConfig,
    instance_types: Sequence[str],
    benchmark_suites: Sequence[str],
    *,
    start: Optional[datetime] = None,
    config_defaults: Optional[Mapping[str, Any]] = None,
) -> WeeklyPlan:
    start = start or datetime.now(timezone.utc)
    plan = WeeklyPlan(start_date=start, windows=generate_windows(config, start))
    jobs = build_jobs(config, instance_types, benchmark_suites, config_defaults)
    distribute_jobs(plan, jobs)
    calculate_estimates(plan)
    plan.metadata = {
        "instance_types": list(instance_types),
        "benchmark_suites": list(benchmark_suites),
        "regions": list(config.preferred_regions),
        "generated_jobs": len(jobs),
        "scheduled_jobs": len(plan.jobs),
        "dropped_jobs": len(plan.dropped),
    }
    logger.info(
        "Planned %d/%d jobs across %d windows (estimated cost $%.2f)",
        len(plan.jobs),
        len(jobs),
        len(plan.windows),
        plan.estimated_cost,
    )
    return plan
