from __future__ import annotations

import time
from typing import Protocol


class Clock(Protocol):
    """Monotonic clock abstraction.

    Game engines depend on this interface for trial pacing (stimulus display,
    inter-stimulus gaps, answer windows) rather than calling real time directly.
    """

    def now(self) -> float:
        """Return monotonic seconds."""


class RealClock:
    """Production clock backed by time.monotonic()."""

    def now(self) -> float:
        return time.monotonic()


def seconds_to_ms(seconds: float) -> int:
    """Convert a clock interval to whole milliseconds (never negative)."""

    return max(0, int(round(float(seconds) * 1000.0)))


def ms_to_seconds(ms: float) -> float:
    return float(ms) / 1000.0
