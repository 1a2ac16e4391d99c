"""Scheduling artifacts: configuration, time windows and weekly plans."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from cb_controller.models.types import BenchmarkJob, InstanceResult


class SchedulerConfig(BaseModel):
    """Capacity and affinity knobs for campaign generation and execution."""

    max_concurrent_jobs: int = Field(default=5, gt=0, description="Simultaneous instances")
    max_daily_jobs: int = Field(default=30, gt=0, description="Jobs admitted per day")
    preferred_regions: List[str] = Field(
        default_factory=lambda: ["us-east-1"], min_length=1, description="Regions to benchmark"
    )
    retry_attempts: int = Field(default=1, ge=0, description="Retry budget per job")
    campaign_days: int = Field(default=7, gt=0, description="Days covered by a campaign")


@dataclass
class TimeWindow:
    """A bounded slot with its own capacity and affinity preferences."""

    name: str
    start_time: datetime
    duration: timedelta
    max_jobs: int
    priority: int
    preferred_benchmarks: List[str] = field(default_factory=list)
    preferred_instance_types: List[str] = field(default_factory=list)
    region_preference: Optional[str] = None
    jobs: List[BenchmarkJob] = field(default_factory=list)

    @property
    def end_time(self) -> datetime:
        return self.start_time + self.duration

    @property
    def has_capacity(self) -> bool:
        return len(self.jobs) < self.max_jobs

    def assign(self, job: BenchmarkJob) -> None:
        """Add a job; raises ValueError when the window is full."""
        if not self.has_capacity:
            raise ValueError(f"Window {self.name} is full ({self.max_jobs} jobs)")
        self.jobs.append(job)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "start_time": self.start_time.isoformat(),
            "duration_seconds": self.duration.total_seconds(),
            "max_jobs": self.max_jobs,
            "priority": self.priority,
            "preferred_benchmarks": list(self.preferred_benchmarks),
            "preferred_instance_types": list(self.preferred_instance_types),
            "region_preference": self.region_preference,
            "job_ids": [job.job_id for job in self.jobs],
        }


@dataclass
class WeeklyPlan:
    """Ordered windows, their job assignments and campaign estimates."""

    start_date: datetime
    windows: List[TimeWindow]
    jobs: List[BenchmarkJob] = field(default_factory=list)
    assignments: Dict[str, int] = field(default_factory=dict)
    dropped: List[BenchmarkJob] = field(default_factory=list)
    estimated_cost: float = 0.0
    estimated_duration: timedelta = timedelta(0)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def window_for(self, job_id: str) -> TimeWindow:
        return self.windows[self.assignments[job_id]]

    def to_dict(self) -> Dict[str, Any]:
        """Structured plan record for reporting layers."""
        return {
            "start_date": self.start_date.isoformat(),
            "windows": [window.to_dict() for window in self.windows],
            "jobs": [
                {
                    "job_id": job.job_id,
                    "instance_type": job.config.instance_type,
                    "benchmark": job.benchmark,
                    "region": job.config.region,
                    "priority": job.priority,
                    "estimated_duration_seconds": job.estimated_duration.total_seconds(),
                    "estimated_cost": job.estimated_cost,
                    "window": self.assignments[job.job_id],
                }
                for job in self.jobs
            ],
            "dropped_job_ids": [job.job_id for job in self.dropped],
            "estimated_cost": self.estimated_cost,
            "estimated_duration_seconds": self.estimated_duration.total_seconds(),
            "metadata": dict(self.metadata),
        }


@dataclass
class JobFailure:
    job_id: str
    error_type: str
    message: str


@dataclass
class CampaignReport:
    """Per-job outcomes of executing a plan; never a single pass/fail verdict."""

    results: Dict[str, InstanceResult] = field(default_factory=dict)
    failures: List[JobFailure] = field(default_factory=list)
    completed: int = 0
    failed: int = 0
    timed_out: int = 0
    emergency_stopped: int = 0
    skipped: int = 0
    cancelled: bool = False

    @property
    def total(self) -> int:
        return (
            self.completed
            + self.failed
            + self.timed_out
            + self.emergency_stopped
            + self.skipped
        )

    @property
    def success_rate(self) -> float:
        return (self.completed / self.total * 100.0) if self.total else 0.0
