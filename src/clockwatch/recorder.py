from __future__ import annotations
import bisect
import math
from dataclasses import dataclass
from typing import Dict, Iterable, Optional

from .aggregator import Aggregator
from .config import RecorderCfg, DriftCfg
from .crossings import Crossing, ZeroCrossingDetector
from .drift import DriftEstimator, DriftParams
from .kinematics import series_rate
from .messages import ChannelSample, EncoderSample, HistoricalRecord
from .peaks import Peak, PeakDetector
from .series import Series


@dataclass
class DerivedPoint:
    time: float
    position: float
    velocity: float = 0.0
    acceleration: float = 0.0
    crossing: Optional[Crossing] = None
    period: Optional[float] = None
    peak: Optional[Peak] = None
    amplitude: Optional[float] = None
    amplitude_rate: Optional[float] = None
    drift_rate: Optional[float] = None


class ChannelState:
    """Bounded series for one auxiliary sensor, one per named field."""

    def __init__(self, capacity: int):
        self.capacity = capacity
        self.origin_us: Optional[int] = None
        self.fields: Dict[str, Series] = {}

    def add(self, device_micros: int, values: Dict[str, Optional[float]]) -> float:
        if self.origin_us is None:
            self.origin_us = device_micros
        t = (device_micros - self.origin_us) / 1e6
        for name, v in values.items():
            if v is None:
                continue
            s = self.fields.get(name)
            if s is None:
                s = self.fields[name] = Series(self.capacity)
            s.append(t, v)
        return t


class SessionState:
    """Everything derived since the last reset. Replaced wholesale on reset."""

    def __init__(self, cfg: RecorderCfg, drift: DriftCfg):
        cap = cfg.max_points
        self.time_origin: Optional[float] = None
        self.last_device_micros: Optional[int] = None
        self.last_drift_micros: Optional[int] = None
        self.samples = 0
        self.position = Series(cap)
        self.velocity = Series(cap)
        self.acceleration = Series(cap)
        self.drift = Series(cap)
        self.drift_rate = Series(cap)
        self.crossings = ZeroCrossingDetector(cfg.crossing_debounce_s)
        self.peaks = PeakDetector(cfg.degrees_per_count, cfg.max_peak_correction)
        self.agg = Aggregator(cap, cfg.min_amplitude)
        self.drift_est = DriftEstimator(DriftParams(window=drift.window, k=drift.k))
        self.channels: Dict[str, ChannelState] = {}


class DataRecorder:
    """Single-writer owner of the derived measurement state.

    ``ingest`` turns one encoder sample into position, velocity and
    acceleration and, when the signal allows, a half-period, period, peak,
    amplitude and drift-rate reading. ``tare`` moves the zero reference to the
    current position; ``reset`` discards the session.
    """

    def __init__(self, cfg: Optional[RecorderCfg] = None, drift: Optional[DriftCfg] = None):
        self.cfg = cfg or RecorderCfg()
        self.drift_cfg = drift or DriftCfg()
        self.tare_offset = 0.0
        self.state = SessionState(self.cfg, self.drift_cfg)

    # --- lifecycle ---
    def reset(self):
        if not self.cfg.keep_tare_on_reset:
            self.tare_offset = 0.0
        # swap in one step so a reader never sees a half-cleared session
        self.state = SessionState(self.cfg, self.drift_cfg)

    def tare(self) -> float:
        """Zero the current position; returns the applied delta (0 if empty)."""
        s = self.state
        if not len(s.position):
            return 0.0
        delta = s.position.latest()
        self.tare_offset += delta
        s.position.rewrite(lambda v: v - delta)
        # periods and peaks measured against the old zero are meaningless now
        s.crossings.clear_memory(prev=s.position.latest())
        s.peaks.reset()
        return delta

    # --- ingest ---
    def ingest(self, sample: EncoderSample) -> DerivedPoint:
        s = self.state
        secs = sample.device_micros / 1e6
        if s.time_origin is None:
            s.time_origin = secs
        t = secs - s.time_origin
        pos = sample.raw_count * self.cfg.degrees_per_count - self.tare_offset
        if not math.isfinite(pos):
            pos = 0.0

        window_t, window_p = s.position.tail(2)
        s.position.append(t, pos)
        s.last_device_micros = sample.device_micros
        s.samples += 1
        pt = DerivedPoint(time=t, position=pos)

        crossing = s.crossings.update(t, pos)
        if crossing is not None:
            pt.crossing = crossing
            if crossing.half_period is not None:
                pt.period = s.agg.add_period(
                    t, s.crossings.positive_halfperiod, s.crossings.negative_halfperiod)

        if len(window_p) == 2:
            peak = s.peaks.update(window_p[0], window_p[1], pos, window_t[0], window_t[1], t)
            if peak is not None:
                pt.peak = peak
                pt.amplitude, pt.amplitude_rate = s.agg.add_amplitude(
                    t, self.positive_peak_or_none, self.negative_peak_or_none)

        step = self.cfg.velocity_step
        pt.velocity = series_rate(s.position, step)
        s.velocity.append(t, pt.velocity)
        pt.acceleration = series_rate(s.velocity, step)
        s.acceleration.append(t, pt.acceleration)

        if sample.drift_micros is not None:
            pt.drift_rate = self._add_drift(t, sample.device_micros, sample.drift_micros)
        return pt

    def _add_drift(self, t: float, device_micros: int, drift_micros: int) -> Optional[float]:
        s = self.state
        s.last_drift_micros = drift_micros
        s.drift.append(t, drift_micros)
        rate = s.drift_est.update(device_micros, drift_micros)
        if rate is not None:
            s.drift_rate.append(t, rate)
        return rate

    def ingest_channel(self, sample: ChannelSample) -> float:
        ch = self._channel(sample.channel_type)
        return ch.add(sample.device_micros, dict(sample.values))

    def _channel(self, name: str) -> ChannelState:
        chans = self.state.channels
        ch = chans.get(name)
        if ch is None:
            ch = chans[name] = ChannelState(self.cfg.max_points)
        return ch

    def load_history(self, records: Iterable[HistoricalRecord]) -> int:
        """Replace the session with stored readings; returns rows applied.

        Only non-null fields extend their series. Rows without a device
        timestamp cannot be placed in time and are skipped.
        """
        self.reset()
        s = self.state
        n = 0
        for r in records:
            if r.total_micros is None:
                continue
            secs = r.total_micros / 1e6
            if s.time_origin is None:
                s.time_origin = secs
            t = secs - s.time_origin
            s.last_device_micros = r.total_micros
            if r.period is not None:
                s.agg.period.append(t, r.period)
            if r.amplitude is not None:
                s.agg.append_amplitude(t, r.amplitude)
            if r.drift_micros is not None:
                self._add_drift(t, r.total_micros, r.drift_micros)
            for name, values in r.channels.items():
                self._channel(name).add(r.total_micros, values)
            n += 1
        return n

    def snapshot(self) -> HistoricalRecord:
        """Latest period, amplitude, drift and channel readings as one row."""
        s = self.state
        pos, neg = self.positive_peak_or_none, self.negative_peak_or_none
        channels = {
            name: {f: ser.latest(None) for f, ser in ch.fields.items()}
            for name, ch in s.channels.items()
        }
        return HistoricalRecord(
            total_micros=s.last_device_micros,
            drift_micros=s.last_drift_micros,
            amplitude=None if pos is None or neg is None else pos - neg,
            period=s.crossings.period,
            channels=channels,
        )

    # --- read surface ---
    @property
    def series(self) -> Dict[str, Series]:
        s = self.state
        return {
            "position": s.position,
            "velocity": s.velocity,
            "acceleration": s.acceleration,
            "period": s.agg.period,
            "amplitude": s.agg.amplitude,
            "amplitude_rate": s.agg.amplitude_rate,
            "drift": s.drift,
            "drift_rate": s.drift_rate,
        }

    def channel_series(self, channel: str, field: str) -> Optional[Series]:
        ch = self.state.channels.get(channel)
        return None if ch is None else ch.fields.get(field)

    @property
    def positive_peak_or_none(self) -> Optional[float]:
        p = self.state.peaks.positive
        return None if p is None else p.value

    @property
    def negative_peak_or_none(self) -> Optional[float]:
        p = self.state.peaks.negative
        return None if p is None else p.value

    def current_position(self) -> float:
        return self.state.position.latest()

    def current_velocity(self) -> float:
        return self.state.velocity.latest()

    def current_acceleration(self) -> float:
        return self.state.acceleration.latest()

    def current_period(self) -> float:
        return self.state.agg.period.latest()

    def positive_halfperiod(self) -> float:
        return self.state.crossings.positive_halfperiod or 0.0

    def negative_halfperiod(self) -> float:
        return self.state.crossings.negative_halfperiod or 0.0

    def current_amplitude(self) -> float:
        pos, neg = self.positive_peak_or_none, self.negative_peak_or_none
        if pos is None or neg is None:
            # no peaks yet, e.g. right after a history replay
            return self.state.agg.amplitude.latest()
        return pos - neg

    def positive_peak(self) -> float:
        return self.positive_peak_or_none or 0.0

    def negative_peak(self) -> float:
        return self.negative_peak_or_none or 0.0

    def current_drift(self) -> float:
        return self.state.drift.latest()

    def current_drift_rate(self) -> float:
        return self.state.drift_rate.latest()

    def channel_latest(self, channel: str, field: str, default: float = 0.0) -> float:
        s = self.channel_series(channel, field)
        return default if s is None else s.latest(default)

    def channel_value_at(self, channel: str, field: str, device_micros: int) -> Optional[float]:
        """Nearest recorded value of a channel field to a device timestamp."""
        ch = self.state.channels.get(channel)
        if ch is None or ch.origin_us is None:
            return None
        s = ch.fields.get(field)
        if s is None or not len(s):
            return None
        ts = s.timestamps
        t = (device_micros - ch.origin_us) / 1e6
        i = bisect.bisect_left(ts, t)
        if i == 0:
            return s.at(0)[1]
        if i >= len(ts):
            return s.at(-1)[1]
        before, after = ts[i - 1], ts[i]
        return s.at(i)[1] if (after - t) < (t - before) else s.at(i - 1)[1]
