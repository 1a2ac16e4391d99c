"""Fire-and-forget launches whose results are collected later."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from cb_common.errors import CBError, error_to_payload
from cb_controller.engine.lifecycle import (
    MIN_ITERATIONS,
    MIN_SUCCESSFUL_ITERATIONS,
    launch_tags,
)
from cb_controller.models.types import JobRecord, JobStatus, new_job_id
from cb_controller.services.job_state import (
    LOG_KEY,
    MARKER_KEYS,
    PROGRESS_KEY,
    RESULTS_KEY,
    SYSTEM_INFO_KEY,
    JobStateTracker,
)
from cb_provisioner.engine.service import ProvisioningService
from cb_provisioner.models.types import LaunchRequest
from cb_runner.models.config import BenchmarkConfig
from cb_runner.plugin_system.registry import SuiteRegistry

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"
BOOTSTRAP_TEMPLATE = "bootstrap.sh.j2"

# On-demand USD per hour for commonly benchmarked types.
HOURLY_PRICES: Dict[str, float] = {
    "c7g.large": 0.0725,
    "c7i.large": 0.0864,
    "c7a.large": 0.0864,
    "m7i.large": 0.1008,
    "r7i.large": 0.2016,
}
DEFAULT_HOURLY_PRICE = 0.10


def estimate_job_cost(instance_type: str, max_runtime: timedelta) -> float:
    """Worst-case cost of a job running until its runtime limit."""
    hourly = HOURLY_PRICES.get(instance_type, DEFAULT_HOURLY_PRICE)
    return hourly * max_runtime.total_seconds() / 3600.0


@dataclass
class LaunchResponse:
    """Outcome of a batch launch."""

    jobs: List[JobRecord] = field(default_factory=list)
    launched_count: int = 0
    failed_count: int = 0
    errors: List[Dict[str, object]] = field(default_factory=list)


class AsyncLauncher:
    """Provision self-reporting instances and record their launch durably."""

    def __init__(
        self,
        tracker: JobStateTracker,
        provisioning: ProvisioningService,
        bucket: str,
        registry: Optional[SuiteRegistry] = None,
        *,
        failsafe_buffer: timedelta = timedelta(hours=1),
        iterations: int = MIN_ITERATIONS,
    ) -> None:
        self.tracker = tracker
        self.provisioning = provisioning
        self.bucket = bucket
        self.registry = registry or SuiteRegistry()
        self.failsafe_buffer = failsafe_buffer
        self.iterations = iterations
        self._env = Environment(
            loader=FileSystemLoader(str(TEMPLATE_DIR)),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
        )

    def render_bootstrap(self, record: JobRecord) -> str:
        """Render the user-data script that runs the job and reports its state."""
        config = record.config
        suite = self.registry.get(config.benchmark_suite)
        template = self._env.get_template(BOOTSTRAP_TEMPLATE)
        max_runtime_seconds = int(record.max_runtime.total_seconds())
        return template.render(
            job_id=record.job_id,
            instance_type=config.instance_type,
            suite=config.benchmark_suite,
            label=config.label,
            bucket=self.bucket,
            namespace=record.namespace,
            region=config.region,
            iterations=self.iterations,
            min_successful=MIN_SUCCESSFUL_ITERATIONS,
            command=suite.build_command(config),
            max_runtime_seconds=max_runtime_seconds,
            failsafe_seconds=max_runtime_seconds + int(self.failsafe_buffer.total_seconds()),
            log_key=LOG_KEY,
            progress_key=PROGRESS_KEY,
            results_key=RESULTS_KEY,
            system_info_key=SYSTEM_INFO_KEY,
            running_marker=MARKER_KEYS[JobStatus.RUNNING],
            completed_marker=MARKER_KEYS[JobStatus.COMPLETED],
            failed_marker=MARKER_KEYS[JobStatus.FAILED],
            timed_out_marker=MARKER_KEYS[JobStatus.TIMED_OUT],
            emergency_marker=MARKER_KEYS[JobStatus.EMERGENCY_STOP],
        )

    def launch(self, config: BenchmarkConfig, max_runtime: timedelta) -> JobRecord:
        """Launch one job; raises CBError subclasses on failure."""
        self.registry.validate([config.benchmark_suite])
        now = datetime.now(timezone.utc)
        job_id = new_job_id(now)
        record = JobRecord(
            job_id=job_id,
            config=config,
            namespace=self.tracker.namespace_for(
                job_id, config.instance_type, config.benchmark_suite
            ),
            launched_at=now,
            max_runtime=max_runtime,
            estimated_cost=estimate_job_cost(config.instance_type, max_runtime),
        )
        if not config.skip_quota_check:
            self.provisioning.admit(config.instance_type, config.region)

        # Metadata before the instance exists so an orphan can still be traced.
        self.tracker.write_metadata(record)

        request = LaunchRequest(
            instance_type=config.instance_type,
            region=config.region,
            subnet_id=config.subnet_id,
            security_group_id=config.security_group_id,
            key_name=config.key_pair_name,
            instance_profile=config.instance_profile,
            user_data=self.render_bootstrap(record),
            terminate_on_shutdown=True,
            tags=launch_tags(config, job_id),
        )
        try:
            instance = self.provisioning.provision(request)
        except CBError as exc:
            self._record_provision_failure(record, exc)
            raise
        record.instance_id = instance.instance_id

        try:
            self.tracker.record_launch(record)
        except CBError:
            logger.error(
                "Could not record launch of %s; terminating %s",
                job_id,
                instance.instance_id,
            )
            try:
                instance.teardown()
            except Exception as teardown_exc:
                logger.warning("Teardown of %s failed: %s", instance.instance_id, teardown_exc)
            raise
        return record

    def _record_provision_failure(self, record: JobRecord, exc: CBError) -> None:
        # No instance was started, so nothing was spent.
        record.estimated_cost = 0.0
        try:
            self.tracker.write_metadata(record)
            self.tracker.mark(
                record, JobStatus.FAILED, json.dumps(error_to_payload(exc)).encode()
            )
        except (CBError, ValueError) as marker_exc:
            logger.warning(
                "Could not mark %s as failed after provisioning error: %s",
                record.job_id,
                marker_exc,
            )

    def launch_batch(
        self, configs: Iterable[BenchmarkConfig], max_runtime: timedelta
    ) -> LaunchResponse:
        """Launch every config, isolating per-job failures."""
        configs = list(configs)
        self.registry.validate(config.benchmark_suite for config in configs)
        response = LaunchResponse()
        for config in configs:
            try:
                record = self.launch(config, max_runtime)
            except CBError as exc:
                logger.warning(
                    "Launch of %s/%s failed: %s",
                    config.instance_type,
                    config.label,
                    exc,
                )
                response.failed_count += 1
                response.errors.append(
                    {
                        "instance_type": config.instance_type,
                        "benchmark_suite": config.benchmark_suite,
                        **error_to_payload(exc),
                    }
                )
                continue
            response.jobs.append(record)
            response.launched_count += 1
        logger.info(
            "Launched %d jobs (%d failed)", response.launched_count, response.failed_count
        )
        return response

