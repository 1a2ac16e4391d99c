"""Job, result and collection records shared by the controller services."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from cb_analytics.engine.aggregation import AggregatedMeasurement
from cb_runner.models.config import BenchmarkConfig


class JobStatus(str, Enum):
    """Durable job states; the last four are terminal."""

    LAUNCHED = "LAUNCHED"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    TIMED_OUT = "TIMED_OUT"
    EMERGENCY_STOP = "EMERGENCY_STOP"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {
        JobStatus.COMPLETED,
        JobStatus.FAILED,
        JobStatus.TIMED_OUT,
        JobStatus.EMERGENCY_STOP,
    }
)

# Terminal beats running beats launched.
STATUS_PRECEDENCE = (
    JobStatus.COMPLETED,
    JobStatus.FAILED,
    JobStatus.EMERGENCY_STOP,
    JobStatus.TIMED_OUT,
    JobStatus.RUNNING,
    JobStatus.LAUNCHED,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_job_id(now: Optional[datetime] = None) -> str:
    """Return ``bench-<YYYYMMDDHHMMSS>-<8 hex>``."""
    stamp = (now or _utcnow()).strftime("%Y%m%d%H%M%S")
    return f"bench-{stamp}-{uuid.uuid4().hex[:8]}"


@dataclass
class BenchmarkJob:
    """Scheduling unit: one config plus its placement estimates."""

    job_id: str
    config: BenchmarkConfig
    priority: int = 0
    estimated_duration: timedelta = timedelta(0)
    estimated_cost: float = 0.0
    retry_count: int = 0
    dependencies: List[str] = field(default_factory=list)
    tags: Dict[str, str] = field(default_factory=dict)

    @property
    def benchmark(self) -> str:
        return self.config.label


@dataclass
class JobRecord:
    """Durable metadata for an asynchronously launched job."""

    job_id: str
    config: BenchmarkConfig
    namespace: str
    launched_at: datetime = field(default_factory=_utcnow)
    max_runtime: timedelta = timedelta(hours=2)
    instance_id: Optional[str] = None
    estimated_cost: float = 0.0
    status: JobStatus = JobStatus.LAUNCHED

    def expires_at(self, buffer: timedelta = timedelta(0)) -> datetime:
        return self.launched_at + self.max_runtime + buffer

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "config": self.config.model_dump(mode="json"),
            "namespace": self.namespace,
            "launched_at": self.launched_at.isoformat(),
            "max_runtime_seconds": int(self.max_runtime.total_seconds()),
            "instance_id": self.instance_id,
            "estimated_cost": self.estimated_cost,
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JobRecord":
        launched_at = datetime.fromisoformat(data["launched_at"])
        if launched_at.tzinfo is None:
            launched_at = launched_at.replace(tzinfo=timezone.utc)
        return cls(
            job_id=data["job_id"],
            config=BenchmarkConfig.from_dict(data["config"]),
            namespace=data["namespace"],
            launched_at=launched_at,
            max_runtime=timedelta(seconds=int(data.get("max_runtime_seconds", 7200))),
            instance_id=data.get("instance_id"),
            estimated_cost=float(data.get("estimated_cost", 0.0)),
            status=JobStatus(data.get("status", JobStatus.LAUNCHED.value)),
        )


@dataclass
class JobProgress:
    """Progress record written by the remote side while a job runs."""

    current_iteration: int = 0
    total_iterations: int = 0
    last_update: datetime = field(default_factory=_utcnow)
    message: str = ""
    percent_complete: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current_iteration": self.current_iteration,
            "total_iterations": self.total_iterations,
            "last_update": self.last_update.isoformat(),
            "message": self.message,
            "percent_complete": self.percent_complete,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JobProgress":
        raw_update = data.get("last_update")
        last_update = datetime.fromisoformat(raw_update) if raw_update else _utcnow()
        return cls(
            current_iteration=int(data.get("current_iteration", 0)),
            total_iterations=int(data.get("total_iterations", 0)),
            last_update=last_update,
            message=str(data.get("message", "")),
            percent_complete=float(data.get("percent_complete", 0.0)),
        )


@dataclass
class InstanceResult:
    """Outcome of one job execution."""

    job_id: str
    instance_type: str
    benchmark_suite: str
    region: str
    status: JobStatus
    instance_id: Optional[str] = None
    public_ip: Optional[str] = None
    private_ip: Optional[str] = None
    start_time: datetime = field(default_factory=_utcnow)
    end_time: Optional[datetime] = None
    samples: List[Dict[str, float]] = field(default_factory=list)
    measurements: Dict[str, AggregatedMeasurement] = field(default_factory=dict)
    raw_payload: Dict[str, Any] = field(default_factory=dict)
    system_info: Dict[str, Any] = field(default_factory=dict)
    error: Optional[Dict[str, Any]] = None
    teardown_error: Optional[Dict[str, Any]] = None
    exception: Optional[BaseException] = field(default=None, repr=False, compare=False)

    @property
    def succeeded(self) -> bool:
        return self.status is JobStatus.COMPLETED and self.error is None

    @property
    def error_type(self) -> Optional[str]:
        return self.error["error_type"] if self.error else None

    def benchmark_data(self) -> Dict[str, Any]:
        """JSON payload of the measurements (mean and deviation per field)."""
        if self.raw_payload:
            return dict(self.raw_payload)
        return {
            name: {
                "mean": agg.mean,
                "std_dev": agg.std_dev,
                "count": agg.count,
            }
            for name, agg in self.measurements.items()
        }


@dataclass
class FailedJob:
    """Failed job plus whatever benchmark log could be read."""

    record: JobRecord
    status: JobStatus
    error_log: str = ""


@dataclass
class CollectionSummary:
    total: int = 0
    completed: int = 0
    failed: int = 0
    in_progress: int = 0
    timed_out: int = 0
    emergency_stopped: int = 0
    total_cost: float = 0.0
    success_rate: float = 0.0


@dataclass
class CollectionResult:
    """One sweep over durable job state, bucketed for reporting."""

    completed: List[InstanceResult] = field(default_factory=list)
    failed: List[FailedJob] = field(default_factory=list)
    in_progress: List[JobRecord] = field(default_factory=list)
    timed_out: List[JobRecord] = field(default_factory=list)
    statuses: Dict[str, JobStatus] = field(default_factory=dict)
    errors: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    summary: CollectionSummary = field(default_factory=CollectionSummary)
