"""Marker-based job state persisted in durable storage.

Each job owns a disjoint namespace ``<root>/<job_id>/<instance_type>/<suite>/``
holding one marker per status plus metadata, progress, results, log and
system-info records. The launcher and the collector share nothing else, so
they can run in different processes days apart.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterator, Optional

from cb_common.errors import StorageError
from cb_controller.models.state import JobStateMachine
from cb_controller.models.types import (
    STATUS_PRECEDENCE,
    JobProgress,
    JobRecord,
    JobStatus,
)
from cb_controller.services.storage import ObjectStore

logger = logging.getLogger(__name__)

DEFAULT_ROOT = "benchmarks"

METADATA_KEY = "job-metadata.json"
PROGRESS_KEY = "status-progress.json"
RESULTS_KEY = "results.json"
LOG_KEY = "benchmark.log"
SYSTEM_INFO_KEY = "system-info.json"

MARKER_KEYS: Dict[JobStatus, str] = {
    JobStatus.LAUNCHED: "status-launched.sentinel",
    JobStatus.RUNNING: "status-running.sentinel",
    JobStatus.COMPLETED: "status-completed.sentinel",
    JobStatus.FAILED: "status-failed.sentinel",
    JobStatus.EMERGENCY_STOP: "status-emergency.sentinel",
    JobStatus.TIMED_OUT: "status-timed-out.sentinel",
}


def job_namespace(root: str, job_id: str, instance_type: str, suite: str) -> str:
    return f"{root.rstrip('/')}/{job_id}/{instance_type}/{suite}/"


class JobStateTracker:
    """Read and write one job's markers through an ObjectStore."""

    def __init__(self, store: ObjectStore, root: str = DEFAULT_ROOT) -> None:
        self.store = store
        self.root = root.rstrip("/")

    def namespace_for(self, job_id: str, instance_type: str, suite: str) -> str:
        return job_namespace(self.root, job_id, instance_type, suite)

    # --- writes ------------------------------------------------------------

    def write_metadata(self, record: JobRecord) -> None:
        body = json.dumps(record.to_dict(), indent=2).encode()
        self.store.put(record.namespace + METADATA_KEY, body, "application/json")

    def record_launch(self, record: JobRecord) -> None:
        """Persist metadata then the LAUNCHED marker.

        Raises StorageError; a job whose launch was not recorded cannot be
        collected later.
        """
        self.write_metadata(record)
        self.store.put(record.namespace + MARKER_KEYS[JobStatus.LAUNCHED], b"", "text/plain")
        logger.info("Recorded launch of %s under %s", record.job_id, record.namespace)

    def mark(self, record: JobRecord, status: JobStatus, body: bytes = b"") -> JobStatus:
        """Write a status marker unless it would regress or replace a terminal state."""
        machine = JobStateMachine(self.check_status(record))
        machine.transition(status)
        self.store.put(record.namespace + MARKER_KEYS[status], body, "text/plain")
        record.status = status
        return status

    def write_progress(self, record: JobRecord, progress: JobProgress) -> None:
        body = json.dumps(progress.to_dict()).encode()
        self.store.put(record.namespace + PROGRESS_KEY, body, "application/json")

    # --- reads -------------------------------------------------------------

    def check_status(self, record: JobRecord) -> JobStatus:
        """Return the first marker present in terminal-first precedence order."""
        for status in STATUS_PRECEDENCE:
            if self.store.exists(record.namespace + MARKER_KEYS[status]):
                return status
        return JobStatus.LAUNCHED

    def read_metadata(self, namespace: str) -> JobRecord:
        payload = self._read_json(namespace + METADATA_KEY)
        if payload is None:
            raise StorageError(
                f"No job metadata under {namespace}", context={"namespace": namespace}
            )
        try:
            return JobRecord.from_dict(payload)
        except (KeyError, TypeError, ValueError) as exc:
            raise StorageError(
                f"Malformed job metadata under {namespace}",
                context={"namespace": namespace},
                cause=exc,
            )

    def read_progress(self, record: JobRecord) -> Optional[JobProgress]:
        payload = self._read_json(record.namespace + PROGRESS_KEY, required=False)
        if payload is None:
            return None
        return JobProgress.from_dict(payload)

    def read_results(self, record: JobRecord) -> Dict[str, Any]:
        """Return the raw result payload; only valid for COMPLETED jobs."""
        status = self.check_status(record)
        if status is not JobStatus.COMPLETED:
            raise StorageError(
                f"Job {record.job_id} is {status.value}, results are not available",
                context={"job_id": record.job_id, "status": status.value},
            )
        payload = self._read_json(record.namespace + RESULTS_KEY)
        if payload is None:
            raise StorageError(
                f"Job {record.job_id} completed without a results record",
                context={"job_id": record.job_id, "namespace": record.namespace},
            )
        return payload

    def read_system_info(self, record: JobRecord) -> Dict[str, Any]:
        """Best-effort read of the system-info record."""
        payload = self._read_json(record.namespace + SYSTEM_INFO_KEY, required=False)
        return payload or {}

    def read_log(self, record: JobRecord) -> str:
        body = self.store.get(record.namespace + LOG_KEY)
        return body.decode(errors="replace") if body else ""

    def scan(self, root: Optional[str] = None) -> Iterator[JobRecord]:
        """Yield every job with metadata under ``root``.

        Unreadable metadata is logged and skipped so one corrupt job does not
        block a campaign-wide sweep.
        """
        prefix = (root or self.root).rstrip("/") + "/"
        for key in self.store.list_keys(prefix):
            if not key.endswith("/" + METADATA_KEY):
                continue
            namespace = key[: -len(METADATA_KEY)]
            try:
                yield self.read_metadata(namespace)
            except StorageError as exc:
                logger.warning("Skipping %s: %s", namespace, exc)

    def _read_json(self, key: str, required: bool = True) -> Optional[Dict[str, Any]]:
        body = self.store.get(key)
        if body is None:
            return None
        try:
            return json.loads(body)
        except ValueError as exc:
            if required:
                raise StorageError(f"Invalid JSON in {key}", context={"key": key}, cause=exc)
            logger.warning("Ignoring invalid JSON in %s", key)
            return None
