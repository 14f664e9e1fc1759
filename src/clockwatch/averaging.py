from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from .series import Series


def moving_average(values: Sequence[float], window: int) -> List[float]:
    """Trailing-window means; the first ``window - 1`` points have none."""
    if window <= 1:
        return list(values)
    out: List[float] = []
    for i in range(window - 1, len(values)):
        out.append(sum(values[i - window + 1:i + 1]) / window)
    return out


@dataclass
class MovingAverageCursor:
    """Incremental trailing mean over one bounded series.

    ``output[j]`` is the mean of the ``window`` source points ending at
    retained index ``j + window - 1``. Between calls only the points appended
    since the last update are folded in; anything that invalidates that
    (source cleared or rewritten, fewer points than before, more evicted
    than can be matched, or a new window) forces a full recompute.
    """
    window: int = 1
    folded: int = 0
    generation: int = -1
    output: List[float] = field(default_factory=list)
    recomputes: int = 0

    def update(self, src: Series, window: int) -> List[float]:
        window = max(1, int(window))
        grown = src.appended - self.folded
        if (window != self.window or src.generation != self.generation
                or grown < 0 or grown > len(src)):
            self._recompute(src, window)
            return self.output
        if grown == 0:
            return self.output

        if window <= 1:
            _, new = src.tail(grown)
            self.output.extend(new)
        else:
            # new points plus the window-1 points before them
            _, vals = src.tail(grown + window - 1)
            first = len(vals) - grown
            for i in range(first, len(vals)):
                if i < window - 1:
                    continue
                self.output.append(sum(vals[i - window + 1:i + 1]) / window)
        self._trim(len(src))
        self.folded = src.appended
        return self.output

    def _recompute(self, src: Series, window: int):
        self.window = window
        self.output = moving_average(src.values, window)
        self.folded = src.appended
        self.generation = src.generation
        self.recomputes += 1

    def _trim(self, n: int):
        # drop means whose window reaches into evicted points
        keep = max(0, n - self.window + 1) if self.window > 1 else n
        if len(self.output) > keep:
            del self.output[:len(self.output) - keep]


class AveragingEngine:
    """Smoothed views of the recorder's series, refreshed on the UI cadence.

    Velocity and acceleration use a fixed smoothing window; period, amplitude
    and amplitude rate use the user-selected window, or none when averaging
    is disabled. Safe to call any number of times between ingests.
    """

    KINEMATIC = ("velocity", "acceleration")
    MEASURED = ("period", "amplitude", "amplitude_rate")

    def __init__(self, smoothing_window: int = 20):
        self.smoothing_window = int(smoothing_window)
        self.cursors: Dict[str, MovingAverageCursor] = {
            name: MovingAverageCursor() for name in self.KINEMATIC + self.MEASURED
        }

    def update(self, series: Dict[str, Series], window: int, enabled: bool = True) -> Dict[str, List[float]]:
        w = int(window) if enabled else 1
        out: Dict[str, List[float]] = {}
        for name, cur in self.cursors.items():
            src = series.get(name)
            if src is None:
                continue
            size = self.smoothing_window if name in self.KINEMATIC else w
            out[name] = cur.update(src, size)
        return out
