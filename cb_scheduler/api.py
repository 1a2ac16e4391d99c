"""Public API surface for cb_scheduler."""

from cb_scheduler.executor import PlanExecutor
from cb_scheduler.expansion import base_suite, expand_benchmarks
from cb_scheduler.models import (
    CampaignReport,
    JobFailure,
    SchedulerConfig,
    TimeWindow,
    WeeklyPlan,
)
from cb_scheduler.planner import (
    build_jobs,
    calculate_estimates,
    distribute_jobs,
    generate_windows,
    plan_campaign,
)
from cb_scheduler.scheduler import BatchScheduler
from cb_scheduler.scoring import estimate_cost, estimate_duration, job_priority, window_score

__all__ = [
    "BatchScheduler",
    "CampaignReport",
    "JobFailure",
    "PlanExecutor",
    "SchedulerConfig",
    "TimeWindow",
    "WeeklyPlan",
    "base_suite",
    "build_jobs",
    "calculate_estimates",
    "distribute_jobs",
    "estimate_cost",
    "estimate_duration",
    "expand_benchmarks",
    "generate_windows",
    "job_priority",
    "plan_campaign",
    "window_score",
]
