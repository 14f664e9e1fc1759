from __future__ import annotations
import math
from typing import Optional, Tuple

from .series import Series

# Peak-to-peak readings at or below this many degrees are treated as noise
MIN_AMPLITUDE = 10.0


class Aggregator:
    """Combines half-periods into periods and peaks into amplitudes.

    Owns the period, amplitude and amplitude-rate series. The caller decides
    when a half-period or a peak was produced; this class only applies the
    pairing rules and timestamps each result with the current sample time.
    """

    def __init__(self, capacity: int = 2000, min_amplitude: float = MIN_AMPLITUDE):
        self.min_amplitude = float(min_amplitude)
        self.period = Series(capacity)
        self.amplitude = Series(capacity)
        self.amplitude_rate = Series(capacity)

    def add_period(self, t: float, positive_half: Optional[float], negative_half: Optional[float]) -> Optional[float]:
        if positive_half is None or negative_half is None:
            return None
        p = positive_half + negative_half
        self.period.append(t, p)
        return p

    def add_amplitude(self, t: float, positive_peak: Optional[float],
                      negative_peak: Optional[float]) -> Tuple[Optional[float], Optional[float]]:
        """Record an amplitude after a peak fired; returns (amplitude, rate)."""
        if positive_peak is None or negative_peak is None:
            return None, None
        amp = positive_peak - negative_peak
        if self.min_amplitude > 0 and abs(amp) <= self.min_amplitude:
            return None, None
        return amp, self.append_amplitude(t, amp)

    def append_amplitude(self, t: float, amp: float) -> Optional[float]:
        """Append one amplitude point and derive the rate against the previous one."""
        rate = None
        if len(self.amplitude):
            prev_t, prev_amp = self.amplitude.at(-1)
            dt = t - prev_t
            rate = (amp - prev_amp) / dt if dt > 0 else 0.0
            if not math.isfinite(rate):
                rate = 0.0
        self.amplitude.append(t, amp)
        if rate is not None:
            self.amplitude_rate.append(t, rate)
        return rate
