"""Window-by-window plan execution with bounded concurrency."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from cb_common.errors import CapacityExhaustedError, error_to_payload
from cb_common.logging import job_log_context
from cb_common.stop_token import StopToken
from cb_controller.engine.lifecycle import JobLifecycleController
from cb_controller.engine.progress import ProgressTally
from cb_controller.models.types import BenchmarkJob, InstanceResult, JobStatus

from .models import CampaignReport, JobFailure, TimeWindow, WeeklyPlan

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PlanExecutor:
    """Drive a plan through the lifecycle controller.

    Each window is started no earlier than its start time; its jobs run on a
    pool capped at ``max_concurrent_jobs`` simultaneous instances. A job's
    failure is recorded and never aborts the window or the campaign.
    """

    def __init__(
        self,
        controller: JobLifecycleController,
        *,
        max_concurrent_jobs: int = 5,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if max_concurrent_jobs < 1:
            raise ValueError("max_concurrent_jobs must be at least 1")
        self.controller = controller
        self.max_concurrent_jobs = max_concurrent_jobs
        self._clock = clock
        self._report_lock = threading.Lock()
        self.tally = ProgressTally()

    def execute(self, plan: WeeklyPlan, stop_token: Optional[StopToken] = None) -> CampaignReport:
        stop_token = stop_token or StopToken()
        report = CampaignReport()
        self.tally = ProgressTally()

        for window in plan.windows:
            if not window.jobs:
                continue
            if not self._wait_for_window(window, stop_token):
                logger.warning("Campaign cancelled before window %s", window.name)
                report.cancelled = True
                break
            self._run_window(window, stop_token, report)
            if stop_token.should_stop():
                report.cancelled = True
                break

        logger.info(
            "Campaign finished: %d completed, %d failed, %d timed out, %d emergency-stopped, "
            "%d skipped (%.1f%% success)%s",
            report.completed,
            report.failed,
            report.timed_out,
            report.emergency_stopped,
            report.skipped,
            report.success_rate,
            " [cancelled]" if report.cancelled else "",
        )
        return report

    def _wait_for_window(self, window: TimeWindow, stop_token: StopToken) -> bool:
        """Block until the window opens; False if cancelled while waiting."""
        if stop_token.should_stop():
            return False
        delay = (window.start_time - self._clock()).total_seconds()
        if delay > 0:
            logger.info("Waiting %.0fs for window %s", delay, window.name)
            if stop_token.wait(delay):
                return False
        return True

    def _run_window(
        self, window: TimeWindow, stop_token: StopToken, report: CampaignReport
    ) -> None:
        logger.info(
            "Executing window %s: %d job(s), concurrency %d",
            window.name,
            len(window.jobs),
            self.max_concurrent_jobs,
        )
        with ThreadPoolExecutor(max_workers=self.max_concurrent_jobs) as pool:
            futures = {
                pool.submit(self._run_job, job, window, stop_token, report): job
                for job in window.jobs
            }
            for future in as_completed(futures):
                job = futures[future]
                try:
                    future.result()
                except Exception as exc:
                    logger.exception("Dispatcher failure for job %s", job.job_id)
                    self._record_failure(report, job, exc, None)

        snapshot = self.tally.snapshot()
        logger.info(
            "Window %s done: completed=%d failed=%d skipped=%d",
            window.name,
            snapshot.completed,
            snapshot.failed,
            snapshot.skipped,
        )

    def _run_job(
        self,
        job: BenchmarkJob,
        window: TimeWindow,
        stop_token: StopToken,
        report: CampaignReport,
    ) -> None:
        if stop_token.should_stop():
            self.tally.skipped()
            with self._report_lock:
                report.skipped += 1
            return

        self.tally.started()
        with job_log_context(
            job_id=job.job_id,
            instance_type=job.config.instance_type,
            benchmark=job.benchmark,
            window=window.name,
        ):
            try:
                result = self.controller.execute_job(job, stop_token)
            except Exception:
                self.tally.finished(success=False)
                raise

        if isinstance(result.exception, CapacityExhaustedError):
            logger.warning("Skipping %s: %s", job.job_id, result.exception)
            self.tally.skipped(was_running=True)
            with self._report_lock:
                report.results[job.job_id] = result
                report.skipped += 1
            return

        self.tally.finished(success=result.succeeded)
        if result.succeeded:
            with self._report_lock:
                report.results[job.job_id] = result
                report.completed += 1
            return

        logger.error(
            "Job %s (%s on %s) ended %s: %s",
            job.job_id,
            job.benchmark,
            job.config.instance_type,
            result.status.value,
            (result.error or {}).get("error", "unknown error"),
        )
        self._record_failure(report, job, result.exception, result)

    def _record_failure(
        self,
        report: CampaignReport,
        job: BenchmarkJob,
        exc: Optional[BaseException],
        result: Optional[InstanceResult],
    ) -> None:
        payload: Dict[str, object] = (
            result.error if result is not None and result.error else {}
        )
        if not payload and exc is not None:
            payload = error_to_payload(exc)
        with self._report_lock:
            if result is not None:
                report.results[job.job_id] = result
            report.failures.append(
                JobFailure(
                    job_id=job.job_id,
                    error_type=str(payload.get("error_type", "UnknownError")),
                    message=str(payload.get("error", "")),
                )
            )
            if result is not None and result.status is JobStatus.TIMED_OUT:
                report.timed_out += 1
            elif result is not None and result.status is JobStatus.EMERGENCY_STOP:
                report.emergency_stopped += 1
            else:
                report.failed += 1
