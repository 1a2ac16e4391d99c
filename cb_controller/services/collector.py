"""Sweep durable job state and gather results of finished jobs."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Iterable, List, Optional

from cb_analytics.engine.aggregation import aggregate_iterations
from cb_common.errors import (
    CBError,
    EmergencyStopError,
    ExecutionTimeoutError,
    OutputParseError,
    StorageError,
    UnknownSuiteError,
    error_to_payload,
)
from cb_common.stop_token import StopToken
from cb_controller.models.types import (
    CollectionResult,
    CollectionSummary,
    FailedJob,
    InstanceResult,
    JobRecord,
    JobStatus,
)
from cb_controller.services.job_state import JobStateTracker
from cb_runner.plugin_system.registry import SuiteRegistry

logger = logging.getLogger(__name__)


class AsyncCollector:
    """Classify launched jobs and pull results for the completed ones.

    Jobs still LAUNCHED or RUNNING after ``launched_at + max_runtime +
    lifetime_buffer`` are reported as TIMED_OUT: the remote side may have died
    before it could write a terminal marker.
    """

    def __init__(
        self,
        tracker: JobStateTracker,
        registry: Optional[SuiteRegistry] = None,
        *,
        lifetime_buffer: timedelta = timedelta(hours=1),
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.tracker = tracker
        self.registry = registry or SuiteRegistry()
        self.lifetime_buffer = lifetime_buffer
        self._clock = clock

    def effective_status(self, record: JobRecord) -> JobStatus:
        """Marker status with the lifetime policy applied."""
        status = self.tracker.check_status(record)
        if status.is_terminal:
            return status
        if self._clock() > record.expires_at(self.lifetime_buffer):
            logger.warning(
                "Job %s still %s past its lifetime; treating as timed out",
                record.job_id,
                status.value,
            )
            return JobStatus.TIMED_OUT
        return status

    def check_all(self, root: Optional[str] = None) -> CollectionResult:
        """Classify every job recorded under ``root``."""
        return self.check_jobs(self.tracker.scan(root))

    def check_jobs(self, records: Iterable[JobRecord]) -> CollectionResult:
        result = CollectionResult()
        finished_cost = 0.0
        for record in records:
            status = self.effective_status(record)
            record.status = status
            result.statuses[record.job_id] = status
            if status is JobStatus.COMPLETED:
                finished_cost += record.estimated_cost
                try:
                    result.completed.append(self.collect_completed(record))
                except (StorageError, UnknownSuiteError, OutputParseError) as exc:
                    logger.warning("Job %s completed without usable results: %s", record.job_id, exc)
                    result.failed.append(FailedJob(record=record, status=status, error_log=str(exc)))
            elif status is JobStatus.FAILED:
                finished_cost += record.estimated_cost
                result.failed.append(
                    FailedJob(record=record, status=status, error_log=self._read_log(record))
                )
            elif status in (JobStatus.TIMED_OUT, JobStatus.EMERGENCY_STOP):
                result.timed_out.append(record)
                result.errors[record.job_id] = error_to_payload(_stop_error(record, status))
            else:
                result.in_progress.append(record)
        result.summary = self._summarize(result, finished_cost)
        return result

    def collect_completed(self, record: JobRecord) -> InstanceResult:
        """Build an InstanceResult from a COMPLETED job's results record."""
        payload = self.tracker.read_results(record)
        config = record.config
        samples: List[Dict[str, float]] = []
        outputs = payload.get("outputs")
        if isinstance(outputs, list):
            suite = self.registry.get(config.benchmark_suite)
            for index, output in enumerate(outputs, start=1):
                try:
                    samples.append(suite.parse_output(str(output)))
                except OutputParseError as exc:
                    logger.warning("Job %s output %d unparseable: %s", record.job_id, index, exc)
            if not samples:
                raise OutputParseError(
                    f"None of the {len(outputs)} outputs of {record.job_id} could be parsed",
                    context={"job_id": record.job_id, "outputs": len(outputs)},
                )
        try:
            system_info = self.tracker.read_system_info(record)
        except StorageError as exc:
            logger.warning("System info for %s unavailable: %s", record.job_id, exc)
            system_info = {}
        return InstanceResult(
            job_id=record.job_id,
            instance_type=config.instance_type,
            benchmark_suite=config.label,
            region=config.region,
            status=JobStatus.COMPLETED,
            instance_id=record.instance_id,
            start_time=record.launched_at,
            end_time=self._clock(),
            samples=samples,
            measurements=aggregate_iterations(samples) if samples else {},
            raw_payload={} if isinstance(outputs, list) else payload,
            system_info=system_info,
        )

    def wait_for_completion(
        self,
        records: Iterable[JobRecord],
        check_interval: float = 300.0,
        stop_token: Optional[StopToken] = None,
    ) -> CollectionResult:
        """Poll until no job is in progress; raises CancelledError on stop."""
        records = list(records)
        token = stop_token or StopToken()
        while True:
            result = self.check_jobs(records)
            summary = result.summary
            logger.info(
                "Jobs: %d completed, %d failed, %d timed out, %d in progress",
                summary.completed,
                summary.failed,
                summary.timed_out,
                summary.in_progress,
            )
            if not result.in_progress:
                return result
            for record in result.in_progress:
                progress = self.tracker.read_progress(record)
                if progress is not None:
                    logger.info(
                        "  %s %s: %.0f%% %s",
                        record.job_id,
                        record.config.instance_type,
                        progress.percent_complete,
                        progress.message,
                    )
            if token.wait(check_interval):
                token.raise_if_stopped("wait for completion")

    def _read_log(self, record: JobRecord) -> str:
        try:
            return self.tracker.read_log(record)
        except StorageError as exc:
            logger.warning("Log for %s unavailable: %s", record.job_id, exc)
            return ""

    @staticmethod
    def _summarize(result: CollectionResult, total_cost: float) -> CollectionSummary:
        completed = len(result.completed)
        failed = len(result.failed)
        timed_out = len(result.timed_out)
        in_progress = len(result.in_progress)
        total = completed + failed + timed_out + in_progress
        emergency = sum(1 for r in result.timed_out if r.status is JobStatus.EMERGENCY_STOP)
        return CollectionSummary(
            total=total,
            completed=completed,
            failed=failed,
            in_progress=in_progress,
            timed_out=timed_out,
            emergency_stopped=emergency,
            total_cost=total_cost,
            success_rate=(completed / total * 100.0) if total else 0.0,
        )


def _stop_error(record: JobRecord, status: JobStatus) -> CBError:
    context = {"job_id": record.job_id, "instance_id": record.instance_id}
    if status is JobStatus.EMERGENCY_STOP:
        return EmergencyStopError(
            f"Job {record.job_id} was terminated by its failsafe timer", context=context
        )
    return ExecutionTimeoutError(f"Job {record.job_id} exceeded its runtime", context=context)
