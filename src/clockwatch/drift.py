from __future__ import annotations
from dataclasses import dataclass
from typing import Optional


@dataclass
class DriftParams:
    # samples between two estimates
    window: int = 100
    # EMA weight of each new estimate
    k: float = 0.001


class DriftEstimator:
    """Long-run rate between the device and host time bases, in µs/s.

    The device reports, per sample, its own microsecond counter and the
    offset of the host clock from it. Host time is therefore ts + drift;
    over a window the ratio of host to device elapsed time, minus one, is the
    relative rate. Estimates are smoothed with an exponential moving average
    seeded by the first one.
    """

    def __init__(self, p: Optional[DriftParams] = None):
        self.p = p or DriftParams()
        self.reset()

    def reset(self):
        self._start: Optional[tuple] = None
        self._count = 0
        self.instant: Optional[float] = None
        self.smoothed: Optional[float] = None

    def update(self, ts_us: float, drift_us: float) -> Optional[float]:
        """Feed one (device micros, drift micros) pair; returns a new smoothed rate or None."""
        if self._start is None:
            self._start = (ts_us, drift_us)
            self._count = 0
            return None
        self._count += 1
        if self._count < self.p.window:
            return None

        ts0, d0 = self._start
        self._start = (ts_us, drift_us)
        self._count = 0
        span = ts_us - ts0
        if span <= 0:
            return None
        instant = (((drift_us + ts_us) - (d0 + ts0)) / span - 1.0) * 1e6
        self.instant = instant
        if self.smoothed is None:
            self.smoothed = instant
        else:
            self.smoothed = self.p.k * instant + (1.0 - self.p.k) * self.smoothed
        return self.smoothed
