"""Single-shot timers used for debouncing and reconnect backoff."""

from __future__ import annotations

import threading
from typing import Callable, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None:
        """Prevent the callback from running if it has not started."""


class Scheduler(Protocol):
    """Schedules callbacks after a delay in seconds."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Run ``callback`` once after ``delay`` seconds."""


class ThreadingScheduler:
    """Scheduler backed by daemon ``threading.Timer`` instances."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()
        return timer


__all__ = ["TimerHandle", "Scheduler", "ThreadingScheduler"]
