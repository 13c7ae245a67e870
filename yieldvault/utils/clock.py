"""Time sources for the settlement engine.

Venues checkpoint interest and the router gates batches on elapsed
seconds, so every component reads time through a shared clock object.
"""

import time


class SystemClock:
    """Wall-clock time in whole seconds."""

    def now(self) -> int:
        return int(time.time())


class ManualClock:
    """Clock that only moves when told to.

    Used by simulations and tests to jump across batch windows and
    interest periods.

    Example:
        >>> clock = ManualClock(start=1_700_000_000)
        >>> clock.warp(3600)
        >>> clock.now()
        1700003600
    """

    def __init__(self, start: int = 0):
        self._now = int(start)

    def now(self) -> int:
        return self._now

    def warp(self, seconds: int) -> int:
        """Advance the clock and return the new time."""
        if seconds < 0:
            raise ValueError(f"cannot warp backwards, got {seconds}")
        self._now += int(seconds)
        return self._now

    def set(self, timestamp: int) -> None:
        if timestamp < self._now:
            raise ValueError(f"timestamp {timestamp} is before current time {self._now}")
        self._now = int(timestamp)
