"""Weekly campaign planning and execution for cloudbench."""

from cb_scheduler.api import (  # noqa: F401
    BatchScheduler,
    CampaignReport,
    SchedulerConfig,
    TimeWindow,
    WeeklyPlan,
)

__all__ = [
    "BatchScheduler",
    "CampaignReport",
    "SchedulerConfig",
    "TimeWindow",
    "WeeklyPlan",
]
