"""Job lifecycle control and durable job state for cloudbench."""

from cb_controller.api import (  # noqa: F401
    AsyncCollector,
    AsyncLauncher,
    BenchmarkJob,
    CampaignSettings,
    InstanceResult,
    JobLifecycleController,
    JobStateTracker,
    JobStatus,
)

__all__ = [
    "AsyncCollector",
    "AsyncLauncher",
    "BenchmarkJob",
    "CampaignSettings",
    "InstanceResult",
    "JobLifecycleController",
    "JobStateTracker",
    "JobStatus",
]
