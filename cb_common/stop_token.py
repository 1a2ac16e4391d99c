"""Cooperative cancellation token threaded through every blocking wait."""

from __future__ import annotations

import threading
from typing import Callable, Optional

from cb_common.errors import CancelledError


class StopToken:
    """
    Lightweight cooperative stop controller.

    It is tripped programmatically through `request_stop()`. Poll loops call
    `wait()` instead of `time.sleep()` so that a stop request interrupts the
    pause immediately.
    """

    def __init__(self, on_stop: Optional[Callable[[], None]] = None) -> None:
        self._on_stop = on_stop
        self._event = threading.Event()
        self._lock = threading.Lock()

    def request_stop(self) -> None:
        """Mark the token as stopped and trigger the callback once."""
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
        if self._on_stop:
            self._on_stop()

    def should_stop(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds; return True if stop was requested."""
        return self._event.wait(max(0.0, timeout))

    def raise_if_stopped(self, what: str = "operation") -> None:
        """Raise CancelledError when a stop has been requested."""
        if self.should_stop():
            raise CancelledError(f"{what} cancelled", context={"operation": what})
