import json
from pathlib import Path

from clockwatch.logs import NdjsonLogger
from clockwatch.packets import build_packet


def _read_ndjson_lines(d: Path, pattern: str = "*.ndjson"):
    contents = []
    for f in d.glob(pattern):
        with f.open("r", encoding="utf-8") as fh:
            for line in fh:
                line = line.strip()
                if line:
                    contents.append(json.loads(line))
    return contents


def test_drops_machine_timestamps(tmp_path: Path):
    d = tmp_path / "logs"
    logger = NdjsonLogger(str(d), "clock_smoke")
    logger.write({"type": "info", "msg": "test", "data": {"a": 1},
                  "ts_ms": 123456789, "t_iso": "2025-09-05T16:11:25.413Z"})
    logger.close()
    lines = _read_ndjson_lines(d, "clock_smoke_*.ndjson")
    assert lines, "no lines written"
    entry = lines[0]
    assert "ts_ms" not in entry and "t_iso" not in entry
    assert "hms" in entry and entry["seq"] == 1 and entry["schema"] == "v1"


def test_suppresses_heartbeat_before_first_sample(tmp_path: Path):
    d = tmp_path / "logs"
    logger = NdjsonLogger(str(d), "clockwatch")
    logger.mode = "regular"
    logger.write({"type": "status", "msg": "alive", "data": {"samples": 0}})
    assert _read_ndjson_lines(d) == []
    logger.write({"type": "status", "msg": "alive", "data": {"samples": 12}})
    assert any(l["data"]["samples"] == 12 for l in _read_ndjson_lines(d))


def test_debug_whitelist_and_verbose_mode(tmp_path: Path):
    d = tmp_path / "logs"
    logger = NdjsonLogger(str(d), "clockwatch")
    logger.mode = "regular"
    logger.verbose_whitelist = set()
    logger.write({"type": "debug", "msg": "period", "data": {"period": 2.0}})
    assert _read_ndjson_lines(d) == []

    d2 = tmp_path / "logs2"
    logger2 = NdjsonLogger(str(d2), "clockwatch")
    logger2.mode = "regular"
    logger2.verbose_whitelist = {"period"}
    logger2.write({"type": "debug", "msg": "period", "data": {"period": 2.0}})
    assert any(l.get("msg") == "period" for l in _read_ndjson_lines(d2))

    d3 = tmp_path / "logs3"
    logger3 = NdjsonLogger(str(d3), "clockwatch")
    logger3.mode = "verbose"
    logger3.write({"type": "debug", "msg": "amplitude", "data": {}})
    assert any(l.get("msg") == "amplitude" for l in _read_ndjson_lines(d3))


def test_dual_file_keeps_full_record_in_debug_file(tmp_path: Path):
    base = tmp_path / "logs"
    logger = NdjsonLogger(str(base), "clock_test", dual_file=True, debug_subdir="debug")
    logger.mode = "regular"
    logger.write({"type": "info", "msg": "op_info", "data": {"a": 1}})
    logger.write({"type": "debug", "msg": "op_debug", "data": {"a": 2}})

    main = [l["msg"] for l in _read_ndjson_lines(base, "clock_test_*.ndjson")]
    assert "op_info" in main and "op_debug" not in main

    dbg = [l["msg"] for l in _read_ndjson_lines(base / "debug", "clock_test_debug_*.ndjson")]
    assert "op_info" in dbg and "op_debug" in dbg


def test_rejected_packet_hex_is_decoded(tmp_path: Path):
    d = tmp_path / "logs"
    logger = NdjsonLogger(str(d), "clockwatch")
    logger.mode = "verbose"
    good = build_packet(0x00012345, 1).hex()
    logger.write({"type": "debug", "msg": "packet", "data": {"packet": good}})
    logger.write({"type": "debug", "msg": "packet", "data": {"packet": "zz"}})
    lines = [l for l in _read_ndjson_lines(d) if l.get("msg") == "packet"]
    decoded = [l["data"].get("decoded") for l in lines]
    assert {"ts_us": 0x12345, "direction": 1} in decoded
    assert None in decoded
