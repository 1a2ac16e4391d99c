"""Durable job state machine primitives."""

from __future__ import annotations

import threading
from typing import Callable, Iterable, Optional

from cb_controller.models.types import STATUS_PRECEDENCE, TERMINAL_STATUSES, JobStatus

_ALLOWED_TRANSITIONS = {
    JobStatus.LAUNCHED: {
        JobStatus.RUNNING,
        JobStatus.COMPLETED,
        JobStatus.FAILED,
        JobStatus.TIMED_OUT,
        JobStatus.EMERGENCY_STOP,
    },
    JobStatus.RUNNING: {
        JobStatus.COMPLETED,
        JobStatus.FAILED,
        JobStatus.TIMED_OUT,
        JobStatus.EMERGENCY_STOP,
    },
    JobStatus.COMPLETED: set(),
    JobStatus.FAILED: set(),
    JobStatus.TIMED_OUT: set(),
    JobStatus.EMERGENCY_STOP: set(),
}


def resolve_status(present: Iterable[JobStatus]) -> JobStatus:
    """Return the authoritative status among the markers that exist.

    Markers are checked in precedence order so a stale RUNNING marker never
    hides a terminal one. With no markers the job is considered LAUNCHED.
    """
    found = set(present)
    for status in STATUS_PRECEDENCE:
        if status in found:
            return status
    return JobStatus.LAUNCHED


class JobStateMachine:
    """Thread-safe, monotonic tracker for one job's status."""

    def __init__(self, initial: JobStatus = JobStatus.LAUNCHED) -> None:
        self._state = initial
        self._lock = threading.RLock()
        self._reason: Optional[str] = None
        self._callbacks: list[Callable[[JobStatus, Optional[str]], None]] = []

    @classmethod
    def from_markers(cls, present: Iterable[JobStatus]) -> "JobStateMachine":
        return cls(resolve_status(present))

    @property
    def state(self) -> JobStatus:
        with self._lock:
            return self._state

    @property
    def reason(self) -> Optional[str]:
        with self._lock:
            return self._reason

    def is_terminal(self) -> bool:
        with self._lock:
            return self._state in TERMINAL_STATUSES

    def register_callback(self, callback: Callable[[JobStatus, Optional[str]], None]) -> None:
        """Register a callback invoked on every transition."""
        self._callbacks.append(callback)

    def can_transition(self, new_state: JobStatus) -> bool:
        with self._lock:
            return new_state in _ALLOWED_TRANSITIONS[self._state]

    def transition(self, new_state: JobStatus, reason: Optional[str] = None) -> JobStatus:
        """Attempt a state transition; raise ValueError if invalid.

        Re-recording the current state is a no-op so repeated observations of
        the same marker are harmless.
        """
        with self._lock:
            if new_state is self._state:
                return self._state
            if new_state not in _ALLOWED_TRANSITIONS[self._state]:
                raise ValueError(f"Invalid transition {self._state.value} -> {new_state.value}")
            self._state = new_state
            self._reason = reason
            callbacks = list(self._callbacks)
        for cb in callbacks:
            cb(new_state, reason)
        return new_state

    def snapshot(self) -> tuple[JobStatus, Optional[str]]:
        with self._lock:
            return self._state, self._reason
