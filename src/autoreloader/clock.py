"""Monotonic time source used for delay arithmetic."""

import time
from typing import Protocol


class Clock(Protocol):
    def now(self) -> float: ...


class MonotonicClock:
    """Seconds from the monotonic clock; unaffected by wall-clock changes."""

    def now(self) -> float:
        return time.monotonic()
