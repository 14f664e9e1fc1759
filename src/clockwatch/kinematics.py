from __future__ import annotations
import math
from typing import Sequence

from .series import Series

# Lag (in samples) between the two points of the difference. Larger values
# smooth encoder quantization at the cost of responsiveness.
DEFAULT_STEP = 10


def finite_difference(times: Sequence[float], values: Sequence[float], step: int = DEFAULT_STEP) -> float:
    """Backward difference between the newest point and the one ``step`` back.

    Returns 0.0 until ``step + 1`` points exist, and for degenerate spans
    (equal, reversed or non-finite timestamps).
    """
    if step < 1 or len(values) <= step or len(times) <= step:
        return 0.0
    dt = times[-1] - times[-1 - step]
    if not dt > 0 or not math.isfinite(dt):
        return 0.0
    d = (values[-1] - values[-1 - step]) / dt
    return d if math.isfinite(d) else 0.0


def series_rate(s: Series, step: int = DEFAULT_STEP) -> float:
    """Finite difference over the tail of a bounded series."""
    ts, vs = s.tail(step + 1)
    return finite_difference(ts, vs, step)
