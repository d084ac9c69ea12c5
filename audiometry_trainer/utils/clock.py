"""Presentation clocks.

The engine stamps every tone presentation with ``clock.now()`` and rejects
outcomes whose stamp is not newer than the last one processed, so a clock
must never go backwards.
"""
# Standard library imports
import itertools
import time
from typing import Protocol


class Clock(Protocol):
    """Monotonic clock abstraction."""

    def now(self) -> float:
        """Return a value strictly greater than any previously returned."""


class SequenceClock:
    """Presentation counter: 1.0, 2.0, 3.0, ...

    Default clock; deterministic and immune to coarse timer resolution.
    """

    def __init__(self, start=1):
        self._counter = itertools.count(start)

    def now(self) -> float:
        return float(next(self._counter))


class RealClock:
    """Seconds from time.monotonic(), nudged forward when the timer has not ticked."""

    def __init__(self, resolution=1e-6):
        self.resolution = resolution
        self._last = float("-inf")

    def now(self) -> float:
        self._last = max(time.monotonic(), self._last + self.resolution)
        return self._last
