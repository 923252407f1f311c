"""
Clock and timer abstractions.

The idle session never touches time.time() or threading.Timer directly.
It asks a Clock for "now" and a Scheduler for delayed callbacks, so tests
can drive hours of idle time without sleeping.

Production uses SystemClock + ThreadingScheduler. A manual clock for tests
lives in tests/conftest.py.
"""

from __future__ import annotations

import threading
import time
from typing import Callable, Protocol


class Clock(Protocol):
    """Source of wall-clock time in seconds."""

    def now(self) -> float:
        ...


class TimerHandle(Protocol):
    """A scheduled callback that can be cancelled."""

    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    """Runs a callback once after a delay."""

    def call_later(self, delay_seconds: float, callback: Callable[[], None]) -> TimerHandle:
        ...


class SystemClock:
    """
    Wall-clock time.

    Wall time (not monotonic) because the idle session has to account for
    time spent with the app in the background or the device asleep.
    """

    def now(self) -> float:
        return time.time()


class _ThreadingTimerHandle:
    def __init__(self, timer: threading.Timer):
        self._timer = timer

    def cancel(self) -> None:
        self._timer.cancel()


class ThreadingScheduler:
    """
    Scheduler backed by threading.Timer.

    Cancelling a handle only prevents callbacks that have not started yet.
    Callers that need "cancelled means never fires" must re-check their own
    state inside the callback (IdleSession does this with a generation counter).
    """

    def __init__(self, thread_name_prefix: str = "Timer"):
        self._prefix = thread_name_prefix

    def call_later(self, delay_seconds: float, callback: Callable[[], None]) -> TimerHandle:
        timer = threading.Timer(max(0.0, delay_seconds), callback)
        timer.name = f"{self._prefix}-{delay_seconds:.0f}s"
        timer.daemon = True
        timer.start()
        return _ThreadingTimerHandle(timer)
