"""Public API surface for cb_controller."""

from cb_controller.engine.lifecycle import (
    MIN_ITERATIONS,
    MIN_SUCCESSFUL_ITERATIONS,
    JobLifecycleController,
)
from cb_controller.engine.progress import ProgressSnapshot, ProgressTally
from cb_controller.models.settings import CampaignSettings
from cb_controller.models.state import JobStateMachine, resolve_status
from cb_controller.models.types import (
    STATUS_PRECEDENCE,
    BenchmarkJob,
    CollectionResult,
    CollectionSummary,
    FailedJob,
    InstanceResult,
    JobProgress,
    JobRecord,
    JobStatus,
    new_job_id,
)
from cb_controller.services.collector import AsyncCollector
from cb_controller.services.context import ControllerContext
from cb_controller.services.job_state import JobStateTracker
from cb_controller.services.launcher import AsyncLauncher, LaunchResponse, estimate_job_cost
from cb_controller.services.storage import LocalObjectStore, ObjectStore, S3ObjectStore

__all__ = [
    "AsyncCollector",
    "AsyncLauncher",
    "BenchmarkJob",
    "CampaignSettings",
    "CollectionResult",
    "CollectionSummary",
    "ControllerContext",
    "FailedJob",
    "InstanceResult",
    "JobLifecycleController",
    "JobProgress",
    "JobRecord",
    "JobStateMachine",
    "JobStateTracker",
    "JobStatus",
    "LaunchResponse",
    "LocalObjectStore",
    "MIN_ITERATIONS",
    "MIN_SUCCESSFUL_ITERATIONS",
    "ObjectStore",
    "ProgressSnapshot",
    "ProgressTally",
    "S3ObjectStore",
    "STATUS_PRECEDENCE",
    "estimate_job_cost",
    "new_job_id",
    "resolve_status",
]
