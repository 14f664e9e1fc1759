from __future__ import annotations
import yaml
from dataclasses import dataclass, field, fields
from typing import Optional, List, Any, Dict

@dataclass
class SerialCfg:
    port: Optional[str] = None
    baud_rate: int = 115200
    # read timeout for one packet, seconds
    timeout_s: float = 0.2
    # Reconnect/backoff tuning (used by the bridge serial loop)
    reconnect_initial_sec: float = 1.0
    reconnect_max_sec: float = 10.0
    max_consecutive_errors: int = 10

@dataclass
class RecorderCfg:
    # points kept per series
    max_points: int = 2000
    # lag of the velocity/acceleration finite difference, in samples
    velocity_step: int = 10
    # degrees per encoder count; also the peak quantization correction
    degrees_per_count: float = 2.0
    # largest accepted move of an interpolated peak away from the sample
    max_peak_correction: float = 4.0
    # amplitudes at or below this are dropped as noise (0 disables)
    min_amplitude: float = 10.0
    # minimum seconds between two accepted zero crossings (0 disables)
    crossing_debounce_s: float = 0.0
    # whether reset() keeps the accumulated tare offset
    keep_tare_on_reset: bool = True

@dataclass
class DriftCfg:
    window: int = 100
    k: float = 0.001

@dataclass
class AveragingCfg:
    enabled: bool = True
    window: int = 10
    # fixed window for the velocity/acceleration views
    smoothing_window: int = 20
    # cadence of the averaging/status pass, independent of ingest rate
    refresh_ms: int = 100

@dataclass
class StoreCfg:
    # SQLite file for period/amplitude readings; None disables persistence
    path: Optional[str] = "logs/readings.db"

@dataclass
class LoggingCfg:
    dir: str = "./logs"
    file_prefix: str = "clockwatch"
    # 'regular' drops debug events from the main file unless whitelisted;
    # 'verbose' emits everything.
    mode: str = "regular"
    # Message names emitted even in regular mode, e.g. ["sample","packet_rejected"]
    verbose_whitelist: Optional[List[str]] = None
    # Dual-file logging: compact main log in `dir`, full debug log in
    # `dir/debug_subdir`.
    dual_file: bool = True
    debug_subdir: Optional[str] = "debug"
    status_interval_sec: float = 5.0

@dataclass
class AppCfg:
    serial: SerialCfg = field(default_factory=SerialCfg)
    recorder: RecorderCfg = field(default_factory=RecorderCfg)
    drift: DriftCfg = field(default_factory=DriftCfg)
    averaging: AveragingCfg = field(default_factory=AveragingCfg)
    store: StoreCfg = field(default_factory=StoreCfg)
    logging: LoggingCfg = field(default_factory=LoggingCfg)


def _as_float(d, key, default):
    v = d.get(key, default)
    try:
        return float(v)
    except (TypeError, ValueError):
        return default

def _as_int(d, key, default):
    v = d.get(key, default)
    try:
        return int(v)
    except (TypeError, ValueError):
        return default

def _as_bool(d, key, default):
    v = d.get(key, default)
    if isinstance(v, str):
        return v.strip().lower() not in ("", "0", "false", "no", "off")
    return bool(v)

def _coerce(cls, raw: Optional[Dict[str, Any]]):
    """Build a config section, coercing YAML/ENV strings to the field types.

    Unknown keys are ignored so older config files keep loading.
    """
    raw = dict(raw or {})
    defaults = cls()
    kw: Dict[str, Any] = {}
    for f in fields(cls):
        if f.name not in raw:
            continue
        default = getattr(defaults, f.name)
        if isinstance(default, bool):
            kw[f.name] = _as_bool(raw, f.name, default)
        elif isinstance(default, int):
            kw[f.name] = _as_int(raw, f.name, default)
        elif isinstance(default, float):
            kw[f.name] = _as_float(raw, f.name, default)
        else:
            kw[f.name] = raw[f.name]
    return cls(**kw)

def load_config(path: str) -> AppCfg:
    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}
    return AppCfg(
        serial=_coerce(SerialCfg, raw.get("serial")),
        recorder=_coerce(RecorderCfg, raw.get("recorder")),
        drift=_coerce(DriftCfg, raw.get("drift")),
        averaging=_coerce(AveragingCfg, raw.get("averaging")),
        store=_coerce(StoreCfg, raw.get("store")),
        logging=_coerce(LoggingCfg, raw.get("logging")),
    )
