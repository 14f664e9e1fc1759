from __future__ import annotations
import itertools
from collections import deque
from typing import Callable, Deque, List, Tuple

# Shared across instances so a replaced series never matches an old one
_generations = itertools.count()


class Series:
    """Bounded pair of parallel (timestamps, values) sequences.

    Points are kept in arrival order; once ``capacity`` is exceeded the oldest
    point is evicted from the front. ``appended`` counts every point added in
    the current generation and ``generation`` changes whenever existing
    points are cleared or rewritten, so incremental readers can tell plain
    growth from a reset.
    """

    def __init__(self, capacity: int = 2000):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = int(capacity)
        self._t: Deque[float] = deque(maxlen=self.capacity)
        self._v: Deque[float] = deque(maxlen=self.capacity)
        self.appended = 0
        self.generation = next(_generations)

    def __len__(self) -> int:
        return len(self._v)

    def append(self, t: float, v: float):
        self._t.append(float(t))
        self._v.append(float(v))
        self.appended += 1

    def clear(self):
        self._t.clear()
        self._v.clear()
        self.appended = 0
        self.generation = next(_generations)

    def rewrite(self, fn: Callable[[float], float]):
        vals = [fn(v) for v in self._v]
        self._v.clear()
        self._v.extend(vals)
        self.generation = next(_generations)

    @property
    def timestamps(self) -> List[float]:
        return list(self._t)

    @property
    def values(self) -> List[float]:
        return list(self._v)

    def latest(self, default: float = 0.0) -> float:
        return self._v[-1] if self._v else default

    def at(self, i: int) -> Tuple[float, float]:
        return self._t[i], self._v[i]

    def tail(self, n: int) -> Tuple[List[float], List[float]]:
        """Return the last ``n`` points (fewer if the series is shorter)."""
        n = min(n, len(self._v))
        if n <= 0:
            return [], []
        ts = [self._t[-k] for k in range(n, 0, -1)]
        vs = [self._v[-k] for k in range(n, 0, -1)]
        return ts, vs
