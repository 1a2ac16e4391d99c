"""Campaign progress counters shared by dispatcher workers."""

from __future__ import annotations

import threading
from dataclasses import dataclass


@dataclass(frozen=True)
class ProgressSnapshot:
    running: int = 0
    completed: int = 0
    failed: int = 0
    skipped: int = 0

    @property
    def finished(self) -> int:
        return self.completed + self.failed + self.skipped


class ProgressTally:
    """Running/completed/failed/skipped counts guarded by a single lock.

    Only the dispatcher mutates the tally; job execution code never sees it.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._running = 0
        self._completed = 0
        self._failed = 0
        self._skipped = 0

    def started(self) -> None:
        with self._lock:
            self._running += 1

    def finished(self, success: bool) -> None:
        with self._lock:
            self._running -= 1
            if success:
                self._completed += 1
            else:
                self._failed += 1

    def skipped(self, was_running: bool = False) -> None:
        with self._lock:
            if was_running:
                self._running -= 1
            self._skipped += 1

    def snapshot(self) -> ProgressSnapshot:
        with self._lock:
            return ProgressSnapshot(
                running=self._running,
                completed=self._completed,
                failed=self._failed,
                skipped=self._skipped,
            )
