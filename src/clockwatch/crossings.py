from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

POSITIVE = "positive"
NEGATIVE = "negative"


@dataclass
class Crossing:
    time: float
    direction: str  # POSITIVE or NEGATIVE going
    # Time since the previous accepted crossing; None for the first one
    half_period: Optional[float] = None


class ZeroCrossingDetector:
    """Times half-periods from sign changes of the tared position.

    Feed one position per sample. A positive-going crossing (prev <= 0 < cur)
    closes a positive half-period, a negative-going one (prev >= 0 > cur) a
    negative half-period. ``min_interval_s`` rejects crossings that follow
    the previous accepted one too closely (encoder chatter around zero).
    """

    def __init__(self, min_interval_s: float = 0.0):
        self.min_interval_s = float(min_interval_s)
        self.reset()

    def reset(self):
        # The rest level is the reference before the first sample
        self.prev: Optional[float] = 0.0
        self.last_crossing: Optional[float] = None
        self.positive_halfperiod: Optional[float] = None
        self.negative_halfperiod: Optional[float] = None

    def clear_memory(self, prev: Optional[float] = 0.0):
        """Forget crossings and half-periods but keep tracking the signal."""
        self.prev = prev
        self.last_crossing = None
        self.positive_halfperiod = None
        self.negative_halfperiod = None

    def update(self, t: float, pos: Optional[float]) -> Optional[Crossing]:
        prev, self.prev = self.prev, pos
        if prev is None or pos is None:
            return None
        if prev <= 0 and pos > 0:
            direction = POSITIVE
        elif prev >= 0 and pos < 0:
            direction = NEGATIVE
        else:
            return None

        half = None
        if self.last_crossing is not None:
            elapsed = t - self.last_crossing
            if elapsed < self.min_interval_s:
                return None
            half = elapsed
            if direction == POSITIVE:
                self.positive_halfperiod = half
            else:
                self.negative_halfperiod = half
        self.last_crossing = t
        return Crossing(time=t, direction=direction, half_period=half)

    @property
    def period(self) -> Optional[float]:
        if self.positive_halfperiod is None or self.negative_halfperiod is None:
            return None
        return self.positive_halfperiod + self.negative_halfperiod
