"""
Time sources for the engines.

Engines read "now" through a zero-argument callable returning integer
seconds. Production code uses wall-clock time; tests and the simulator use a
ManualClock they advance explicitly.
"""

import time
from typing import Callable

Clock = Callable[[], int]


def system_clock() -> int:
    return int(time.time())


class ManualClock:
    """Settable clock for deterministic runs."""

    def __init__(self, start: int = 1_700_000_000):
        if start < 0:
            raise ValueError("Clock cannot start before the epoch")
        self._now = int(start)

    def __call__(self) -> int:
        return self._now

    @property
    def now(self) -> int:
        return self._now

    def advance(self, seconds: int) -> int:
        if seconds < 0:
            raise ValueError("Time cannot move backwards")
        self._now += int(seconds)
        return self._now

    def set(self, timestamp: int) -> None:
        if timestamp < self._now:
            raise ValueError("Time cannot move backwards")
        self._now = int(timestamp)

    def __repr__(self) -> str:
        return f"<ManualClock now={self._now}>"
