"""Time source used by the lock and the decision poll loop."""

from __future__ import annotations

import time
from typing import Protocol


class Clock(Protocol):
    """Wall-clock time and blocking sleep, injectable for tests."""

    def now(self) -> float:
        """Seconds since the epoch; comparable with file modification times."""
        ...

    def sleep(self, seconds: float) -> None:
        ...


class SystemClock:
    """Clock backed by the real wall clock."""

    def now(self) -> float:
        return time.time()

    def sleep(self, seconds: float) -> None:
        if seconds > 0:
            time.sleep(seconds)


SYSTEM_CLOCK = SystemClock()
