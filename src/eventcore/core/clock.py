"""Clock abstraction for injectable delays.

WallClock: real wall-clock time, ``sleep`` blocks the calling thread.
SimClock: deterministic simulated time, ``sleep`` advances instantly.

Simulated latency (e.g. per-item load delay) always goes through a clock
so tests can run without real waits.
"""

from __future__ import annotations

import threading
import time
from typing import Protocol


class IClock(Protocol):
    """Clock interface used by all delay-dependent code."""

    def monotonic(self) -> float:
        """Seconds on a monotonic timeline."""
        ...

    def sleep(self, seconds: float) -> None:
        """Pause the calling thread for *seconds*."""
        ...


class WallClock:
    """Real time. ``sleep`` blocks."""

    def monotonic(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float) -> None:
        if seconds > 0:
            time.sleep(seconds)


class SimClock:
    """Simulated clock for deterministic tests.

    ``sleep`` returns immediately after advancing virtual time; every
    requested delay is recorded in ``sleeps``.
    """

    def __init__(self, start: float = 0.0) -> None:
        self._lock = threading.Lock()
        self._time = start
        self.sleeps: list[float] = []

    def monotonic(self) -> float:
        return self._time

    def sleep(self, seconds: float) -> None:
        if seconds < 0:
            raise ValueError(f"SimClock cannot sleep a negative interval: {seconds}")
        with self._lock:
            self.sleeps.append(seconds)
            self._time += seconds

    def advance(self, seconds: float) -> None:
        """Advance time without recording a sleep."""
        if seconds < 0:
            raise ValueError(
                f"SimClock cannot go backwards: {seconds}"
            )
        with self._lock:
            self._time += seconds

    @property
    def total_slept(self) -> float:
        return sum(self.sleeps)
