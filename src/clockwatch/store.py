"""SQLite store of period/amplitude readings for historical replay.

One row is written per completed zero crossing once both a period and an
amplitude are known. Rows carry the host wall-clock time in microseconds,
which is what historical range queries are bounded by.
"""
from __future__ import annotations
import json
import sqlite3
import time
from pathlib import Path
from typing import List, Optional

from .messages import HistoricalRecord, parse_historical

_SCHEMA = """
CREATE TABLE IF NOT EXISTS readings (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    host_micros INTEGER NOT NULL,
    total_micros INTEGER,
    drift_micros INTEGER,
    amplitude REAL,
    period REAL,
    channels_json TEXT
)
"""


def connect(db_path) -> sqlite3.Connection:
    con = sqlite3.connect(str(db_path))
    con.row_factory = sqlite3.Row
    return con


class ReadingStore:
    def __init__(self, db_path):
        p = Path(db_path)
        p.parent.mkdir(parents=True, exist_ok=True)
        self.path = p
        self.con = connect(p)
        self.con.execute(_SCHEMA)
        self.con.execute("CREATE INDEX IF NOT EXISTS readings_host ON readings(host_micros)")
        self.con.commit()

    def append(self, rec: HistoricalRecord, host_micros: Optional[int] = None) -> int:
        if host_micros is None:
            host_micros = int(time.time() * 1e6)
        cur = self.con.execute(
            "INSERT INTO readings (host_micros, total_micros, drift_micros, amplitude, period, channels_json)"
            " VALUES (?,?,?,?,?,?)",
            (
                int(host_micros),
                rec.total_micros,
                rec.drift_micros,
                rec.amplitude,
                rec.period,
                json.dumps(rec.channels) if rec.channels else None,
            ),
        )
        self.con.commit()
        return int(cur.lastrowid)

    def query(self, start_us: int, end_us: int) -> List[HistoricalRecord]:
        """Rows with start_us <= host_micros <= end_us, oldest first."""
        rows = self.con.execute(
            "SELECT total_micros, drift_micros, amplitude, period, channels_json FROM readings"
            " WHERE host_micros >= ? AND host_micros <= ? ORDER BY host_micros, id",
            (int(start_us), int(end_us)),
        ).fetchall()
        out: List[HistoricalRecord] = []
        for r in rows:
            try:
                channels = json.loads(r["channels_json"]) if r["channels_json"] else {}
            except ValueError:
                channels = {}
            out.append(parse_historical({
                "total_micros": r["total_micros"],
                "drift_micros": r["drift_micros"],
                "amplitude": r["amplitude"],
                "period": r["period"],
                "channels": channels,
            }))
        return out

    def close(self):
        self.con.close()
