from __future__ import annotations
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

# Field spellings seen on the wire (receiver JSON uses Go-style names)
_TOTAL_MICROS = ("total_micros", "TotalMicros", "totalMicros", "device_micros", "deviceMicros")
_COUNT = ("count", "Count", "raw_count", "rawCount")
_DRIFT = ("drift_micros", "driftMicros", "TimestampDrift", "timestamp_drift", "DriftMicros")
_CHANNEL_TAG = ("channel", "channel_type", "channelType", "type")
# Raw u32 device time; only used when no extended timestamp is present
_TIMESTAMP = ("timestamp", "Timestamp")


@dataclass(frozen=True)
class EncoderSample:
    device_micros: int
    raw_count: int
    drift_micros: Optional[int] = None


@dataclass(frozen=True)
class ChannelSample:
    """Reading from an auxiliary sensor, e.g. temperature + pressure."""
    channel_type: str
    device_micros: int
    values: Dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class StatusMessage:
    device: str
    status: str
    error: Optional[str] = None


@dataclass(frozen=True)
class HistoricalRecord:
    """One stored row; None means no observation at that tick."""
    total_micros: Optional[int] = None
    drift_micros: Optional[int] = None
    amplitude: Optional[float] = None
    period: Optional[float] = None
    channels: Dict[str, Dict[str, Optional[float]]] = field(default_factory=dict)


Message = Union[EncoderSample, ChannelSample, StatusMessage]


def _pick(obj: Dict[str, Any], keys) -> Any:
    for k in keys:
        if obj.get(k) is not None:
            return obj[k]
    return None


def _as_int(v: Any, default: int = 0) -> int:
    try:
        f = float(v)
    except (TypeError, ValueError):
        return default
    return int(f) if math.isfinite(f) else default


def _as_float(v: Any, default: float = 0.0) -> float:
    try:
        f = float(v)
    except (TypeError, ValueError):
        return default
    return f if math.isfinite(f) else default


def _opt_float(v: Any) -> Optional[float]:
    if v is None:
        return None
    try:
        f = float(v)
    except (TypeError, ValueError):
        return None
    return f if math.isfinite(f) else None


def parse_message(obj: Any) -> Optional[Message]:
    """Classify a decoded JSON object into one message variant.

    Status frames carry ``Device``. Auxiliary channels carry a ``channel``
    (or ``channelType``/``type``) tag, either with a ``values`` mapping or
    with their readings as flat numeric fields next to ``timestamp``.
    Anything with a device timestamp or a count is an encoder sample; a
    missing or null numeric field becomes 0 rather than dropping the sample.
    Returns None for anything else.
    """
    if not isinstance(obj, dict):
        return None
    if "Device" in obj or "device" in obj:
        return StatusMessage(
            device=str(obj.get("Device", obj.get("device", ""))),
            status=str(obj.get("Status", obj.get("status", ""))),
            error=obj.get("Error", obj.get("error")) or None,
        )
    tag = _pick(obj, _CHANNEL_TAG)
    if tag and isinstance(obj.get("values"), dict):
        return ChannelSample(
            channel_type=str(tag),
            device_micros=_as_int(_pick(obj, _TOTAL_MICROS + _TIMESTAMP)),
            values={str(k): _as_float(v) for k, v in obj["values"].items()},
        )
    if tag and _pick(obj, _COUNT) is None:
        return _flat_channel(str(tag), obj)
    ts = _pick(obj, _TOTAL_MICROS + _TIMESTAMP)
    count = _pick(obj, _COUNT)
    if ts is None and count is None:
        return None
    drift = _pick(obj, _DRIFT)
    return EncoderSample(
        device_micros=_as_int(ts),
        raw_count=_as_int(count),
        drift_micros=None if drift is None else _as_int(drift),
    )


def _flat_channel(tag: str, obj: Dict[str, Any]) -> ChannelSample:
    skip = set(_CHANNEL_TAG + _TOTAL_MICROS + _TIMESTAMP)
    vals = {}
    for k, v in obj.items():
        if k in skip or isinstance(v, bool) or not isinstance(v, (int, float)):
            continue
        vals[str(k)] = _as_float(v)
    return ChannelSample(
        channel_type=tag,
        device_micros=_as_int(_pick(obj, _TOTAL_MICROS + _TIMESTAMP)),
        values=vals,
    )


def parse_historical(obj: Dict[str, Any]) -> HistoricalRecord:
    ts = _pick(obj, _TOTAL_MICROS)
    drift = _pick(obj, _DRIFT)
    channels: Dict[str, Dict[str, Optional[float]]] = {}
    for name, fields in (obj.get("channels") or {}).items():
        if isinstance(fields, dict):
            channels[str(name)] = {str(k): _opt_float(v) for k, v in fields.items()}
    return HistoricalRecord(
        total_micros=None if ts is None else _as_int(ts),
        drift_micros=None if drift is None else _as_int(drift),
        amplitude=_opt_float(obj.get("amplitude")),
        period=_opt_float(obj.get("period")),
        channels=channels,
    )
