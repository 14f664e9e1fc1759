from __future__ import annotations
import math
from dataclasses import dataclass
from typing import Optional

from .crossings import POSITIVE, NEGATIVE

# Degrees per encoder count
QUANT_STEP = 2.0
# Largest accepted distance between the interpolated and the sampled peak
MAX_CORRECTION = 4.0


@dataclass
class Peak:
    time: float
    value: float
    polarity: str  # POSITIVE or NEGATIVE
    interpolated: bool = True


def interpolate_peak(p1: float, p2: float, p3: float,
                     t1: float, t2: float, t3: float,
                     max_correction: float = MAX_CORRECTION,
                     ref: Optional[float] = None) -> Optional[tuple]:
    """Vertex of the parabola through three points.

    Times are shifted so that t2 is the origin. Returns ``(t, value)`` or
    None when the fit is degenerate, the vertex falls outside [t1, t3], or
    it moves more than ``max_correction`` away from ``ref`` (default p2).
    """
    x1 = t1 - t2
    x3 = t3 - t2
    # x2 == 0 in the shifted frame
    denom = x1 * (x1 - x3) * -x3
    if denom == 0 or not math.isfinite(denom):
        return None
    a = (x3 * (p2 - p1) + x1 * (p3 - p2)) / denom
    b = (x3 * x3 * (p1 - p2) + x1 * x1 * (p2 - p3)) / denom
    if a == 0 or not (math.isfinite(a) and math.isfinite(b)):
        return None
    x = -b / (2 * a)
    value = a * x * x + b * x + p2
    t = x + t2
    if not (math.isfinite(t) and math.isfinite(value)):
        return None
    if ref is None:
        ref = p2
    if t < t1 or t > t3 or abs(value - ref) > max_correction:
        return None
    return t, value


class PeakDetector:
    """Local extrema of the position signal with sub-sample refinement.

    The encoder reports whole steps, so the samples next to a true extremum
    sit up to one step short of it. One ``quant_step`` is added to the outer
    points before fitting: to p3 for a positive peak, to p1 and p2 for a
    negative one. When the fit is rejected the sampled middle point is used.
    """

    def __init__(self, quant_step: float = QUANT_STEP, max_correction: float = MAX_CORRECTION):
        self.quant_step = float(quant_step)
        self.max_correction = float(max_correction)
        self.reset()

    def reset(self):
        self.positive: Optional[Peak] = None
        self.negative: Optional[Peak] = None

    def update(self, p1: float, p2: float, p3: float,
               t1: float, t2: float, t3: float) -> Optional[Peak]:
        q = self.quant_step
        if p2 > p1 and p2 > p3 and p2 > 0:
            fit = interpolate_peak(p1, p2, p3 + q, t1, t2, t3, self.max_correction, ref=p2)
            peak = self._make(fit, p2, t2, POSITIVE)
            self.positive = peak
            return peak
        if p2 < p1 and p2 < p3 and p2 < 0:
            fit = interpolate_peak(p1 + q, p2 + q, p3, t1, t2, t3, self.max_correction, ref=p2)
            peak = self._make(fit, p2, t2, NEGATIVE)
            self.negative = peak
            return peak
        return None

    @staticmethod
    def _make(fit: Optional[tuple], p2: float, t2: float, polarity: str) -> Peak:
        if fit is None:
            return Peak(time=t2, value=p2, polarity=polarity, interpolated=False)
        t, v = fit
        return Peak(time=t, value=v, polarity=polarity)
