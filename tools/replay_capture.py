#!/usr/bin/env python3
"""Replay a raw encoder capture through the recorder offline.

Input is the receiver's CSV capture (`Timestamp_us,Count` per step). Every
period and amplitude reading produced during the replay is written to an
output CSV, and a short summary is printed.
"""
from __future__ import annotations
import argparse
import csv
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from clockwatch.config import RecorderCfg
from clockwatch.messages import EncoderSample
from clockwatch.recorder import DataRecorder


@dataclass
class Reading:
    t: float
    kind: str  # 'period' or 'amplitude'
    value: float


def read_capture(path: Path) -> Iterable[EncoderSample]:
    with path.open("r", newline="", encoding="utf-8") as f:
        for r in csv.DictReader(f):
            try:
                ts = int(float(r.get("Timestamp_us") or 0))
                count = int(float(r.get("Count") or 0))
            except ValueError:
                continue
            yield EncoderSample(device_micros=ts, raw_count=count)


def replay(samples: Iterable[EncoderSample], cfg: Optional[RecorderCfg] = None) -> Tuple[DataRecorder, List[Reading]]:
    rec = DataRecorder(cfg)
    out: List[Reading] = []
    for s in samples:
        pt = rec.ingest(s)
        if pt.period is not None:
            out.append(Reading(pt.time, "period", pt.period))
        if pt.amplitude is not None:
            out.append(Reading(pt.time, "amplitude", pt.amplitude))
    return rec, out


def summarize(readings: List[Reading], kind: str) -> Tuple[int, float, float]:
    vals = [r.value for r in readings if r.kind == kind]
    if not vals:
        return 0, 0.0, 0.0
    mean = sum(vals) / len(vals)
    std = math.sqrt(sum((v - mean) ** 2 for v in vals) / len(vals))
    return len(vals), mean, std


def write_csv(readings: List[Reading], out: Path) -> None:
    out.parent.mkdir(parents=True, exist_ok=True)
    with out.open("w", newline="", encoding="utf-8") as f:
        w = csv.writer(f)
        w.writerow(["t_s", "kind", "value"])
        for r in readings:
            w.writerow([f"{r.t:.6f}", r.kind, f"{r.value:.6f}"])


def main(argv: Optional[List[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Replay an encoder CSV capture and report period/amplitude")
    ap.add_argument("capture", type=Path)
    ap.add_argument("--out", type=Path, default=Path("reports/replay.csv"))
    ap.add_argument("--min-amplitude", type=float, default=RecorderCfg.min_amplitude)
    ap.add_argument("--debounce-s", type=float, default=RecorderCfg.crossing_debounce_s)
    args = ap.parse_args(argv)

    cfg = RecorderCfg(min_amplitude=args.min_amplitude, crossing_debounce_s=args.debounce_s)
    rec, readings = replay(read_capture(args.capture), cfg)
    write_csv(readings, args.out)
    print(f"Replayed {rec.state.samples} samples, wrote {len(readings)} readings to {args.out}")
    for kind, unit in (("period", "s"), ("amplitude", "deg")):
        n, mean, std = summarize(readings, kind)
        if n:
            print(f"{kind}: n={n} mean={mean:.6f} {unit} (std {std:.6f})")
        else:
            print(f"{kind}: no readings")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
