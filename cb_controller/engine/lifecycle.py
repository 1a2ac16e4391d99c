"""Drive one benchmark job from admission to teardown."""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from cb_analytics.engine.aggregation import aggregate_iterations
from cb_common.errors import (
    CBError,
    ExecutionTimeoutError,
    InsufficientSamplesError,
    RemoteExecutionError,
    error_to_payload,
)
from cb_common.stop_token import StopToken
from cb_controller.models.types import BenchmarkJob, InstanceResult, JobStatus, new_job_id
from cb_provisioner.engine.service import ProvisioningService
from cb_provisioner.models.types import LaunchRequest, ProvisionedInstance
from cb_runner.models.config import BenchmarkConfig
from cb_runner.plugin_system.interface import BenchmarkSuite
from cb_runner.plugin_system.registry import SuiteRegistry
from cb_runner.remote.ssm import RemoteExecutor, SsmRemoteExecutor

logger = logging.getLogger(__name__)

MIN_ITERATIONS = 5
MIN_SUCCESSFUL_ITERATIONS = 3


class JobLifecycleController:
    """Admission -> provision -> ready -> execute -> aggregate -> terminate.

    The order is never changed and teardown is attempted on every path once
    an instance exists. Teardown failures are stored on the result next to,
    never instead of, the job's primary outcome.
    """

    def __init__(
        self,
        provisioning: ProvisioningService,
        executor_factory: Callable[[str], RemoteExecutor] = SsmRemoteExecutor,
        registry: Optional[SuiteRegistry] = None,
        *,
        iterations: int = MIN_ITERATIONS,
        ready_timeout: float = 600.0,
        ready_poll_interval: float = 15.0,
        settle_delay: float = 60.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if iterations < MIN_ITERATIONS:
            raise ValueError(f"iterations must be at least {MIN_ITERATIONS}")
        self.provisioning = provisioning
        self.executor_factory = executor_factory
        self.registry = registry or SuiteRegistry()
        self.iterations = iterations
        self.ready_timeout = ready_timeout
        self.ready_poll_interval = ready_poll_interval
        self.settle_delay = settle_delay
        self._sleep = sleep
        self._executors: Dict[str, RemoteExecutor] = {}
        self._executors_lock = threading.Lock()

    def execute(
        self,
        config: BenchmarkConfig,
        stop_token: Optional[StopToken] = None,
        job_id: Optional[str] = None,
    ) -> InstanceResult:
        """Run one job and return its result; job failures are reported, not raised."""
        result = InstanceResult(
            job_id=job_id or new_job_id(),
            instance_type=config.instance_type,
            benchmark_suite=config.label,
            region=config.region,
            status=JobStatus.FAILED,
        )
        instance: Optional[ProvisionedInstance] = None
        try:
            suite = self.registry.get(config.benchmark_suite)
            if not config.skip_quota_check:
                self.provisioning.admit(config.instance_type, config.region)
            _check_stop(stop_token, "provision")

            instance = self.provisioning.provision(self._launch_request(config, result.job_id))
            result.instance_id = instance.instance_id

            details = self.provisioning.wait_until_running(
                instance,
                timeout=self.ready_timeout,
                poll_interval=self.ready_poll_interval,
                stop_token=stop_token,
            )
            result.public_ip = details.public_ip
            result.private_ip = details.private_ip
            self._settle(stop_token)

            samples = self._run_iterations(suite, config, instance.instance_id, stop_token)
            result.samples = samples
            result.measurements = aggregate_iterations(samples)
            result.status = JobStatus.COMPLETED
            logger.info(
                "Job %s completed with %d/%d iterations",
                result.job_id,
                len(samples),
                self.iterations,
            )
        except CBError as exc:
            result.status = (
                JobStatus.TIMED_OUT if isinstance(exc, ExecutionTimeoutError) else JobStatus.FAILED
            )
            result.error = error_to_payload(exc)
            result.exception = exc
            if isinstance(exc, InsufficientSamplesError):
                result.samples = exc.samples
            logger.warning("Job %s failed: %s: %s", result.job_id, exc.error_type, exc)
        finally:
            if instance is not None:
                self._teardown(instance, result)
            result.end_time = datetime.now(timezone.utc)
        return result

    def execute_job(
        self, job: BenchmarkJob, stop_token: Optional[StopToken] = None
    ) -> InstanceResult:
        """Execute a scheduled job, retrying transient failures within its budget."""
        while True:
            result = self.execute(job.config, stop_token, job_id=job.job_id)
            exc = result.exception
            if result.succeeded or not isinstance(exc, CBError) or not exc.retryable:
                return result
            if job.retry_count >= job.config.max_retries:
                return result
            if stop_token is not None and stop_token.should_stop():
                return result
            job.retry_count += 1
            logger.info(
                "Retrying %s (%d/%d) after %s",
                job.job_id,
                job.retry_count,
                job.config.max_retries,
                exc.error_type,
            )

    def _launch_request(self, config: BenchmarkConfig, job_id: str) -> LaunchRequest:
        return LaunchRequest(
            instance_type=config.instance_type,
            region=config.region,
            subnet_id=config.subnet_id,
            security_group_id=config.security_group_id,
            key_name=config.key_pair_name,
            instance_profile=config.instance_profile,
            tags=launch_tags(config, job_id),
        )

    def _settle(self, stop_token: Optional[StopToken]) -> None:
        """Give the instance agent time to register before the first command."""
        if self.settle_delay <= 0:
            return
        if stop_token is not None:
            if stop_token.wait(self.settle_delay):
                stop_token.raise_if_stopped("settle")
        else:
            self._sleep(self.settle_delay)

    def _executor(self, region: str) -> RemoteExecutor:
        with self._executors_lock:
            if region not in self._executors:
                self._executors[region] = self.executor_factory(region)
            return self._executors[region]

    def _run_iterations(
        self,
        suite: BenchmarkSuite,
        config: BenchmarkConfig,
        instance_id: str,
        stop_token: Optional[StopToken],
    ) -> List[Dict[str, float]]:
        executor = self._executor(config.region)
        command = suite.build_command(config)
        samples: List[Dict[str, float]] = []
        for attempt in range(1, self.iterations + 1):
            _check_stop(stop_token, "iterations")
            logger.info("Iteration %d/%d on %s", attempt, self.iterations, instance_id)
            try:
                output = executor.execute(
                    instance_id, command, stop_token, timeout=config.timeout_seconds
                )
            except ExecutionTimeoutError:
                raise
            except RemoteExecutionError as exc:
                logger.warning("Discarding iteration %d on %s: %s", attempt, instance_id, exc)
                continue
            try:
                samples.append(suite.parse_output(output))
            except Exception as exc:
                logger.warning(
                    "Discarding unparseable iteration %d on %s: %s", attempt, instance_id, exc
                )
        if len(samples) < MIN_SUCCESSFUL_ITERATIONS:
            raise InsufficientSamplesError(
                f"Only {len(samples)} of {self.iterations} iterations succeeded "
                f"(need {MIN_SUCCESSFUL_ITERATIONS})",
                samples=samples,
                context={
                    "instance_id": instance_id,
                    "successful": len(samples),
                    "attempted": self.iterations,
                },
            )
        return samples

    def _teardown(self, instance: ProvisionedInstance, result: InstanceResult) -> None:
        try:
            instance.teardown()
        except Exception as exc:
            result.teardown_error = error_to_payload(exc)
            logger.warning("Teardown of %s failed: %s", instance.instance_id, exc)


def _check_stop(stop_token: Optional[StopToken], what: str) -> None:
    if stop_token is not None:
        stop_token.raise_if_stopped(what)


def launch_tags(config: BenchmarkConfig, job_id: str) -> Dict[str, str]:
    """Instance tags used for traceability and automatic cleanup."""
    tags = {
        "Name": f"cloudbench-{config.instance_type}-{config.label}",
        "Purpose": "benchmark",
        "BenchmarkSuite": config.benchmark_suite,
        "InstanceType": config.instance_type,
        "JobId": job_id,
        "AutoTerminate": "true",
    }
    tags.update(config.tags)
    return tags
