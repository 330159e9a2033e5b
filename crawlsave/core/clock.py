"""
Clock abstraction.

All time-dependent save logic (timestamps, auto-save interval, trigger
cooldowns) reads time through a Clock so tests can drive it by hand.

Usage:
    clock = ManualClock(start=1_000.0)
    clock.advance(30.0)
    clock.now()  # 1030.0
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod


class Clock(ABC):
    """Source of wall-clock time in seconds since the epoch."""

    @abstractmethod
    def now(self) -> float:
        """Current time in seconds."""


class SystemClock(Clock):
    """Real wall clock."""

    def now(self) -> float:
        return time.time()


class ManualClock(Clock):
    """
    Clock that only moves when told to.

    Attributes:
        start: Initial time in seconds
    """

    def __init__(self, start: float = 1_700_000_000.0):
        self._now = float(start)

    def now(self) -> float:
        return self._now

    def advance(self, seconds: float) -> float:
        """Move time forward and return the new time."""
        if seconds < 0:
            raise ValueError("ManualClock cannot move backwards")
        self._now += seconds
        return self._now

    def set(self, value: float) -> None:
        self._now = float(value)
