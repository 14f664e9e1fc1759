from __future__ import annotations
import os, json, time, pathlib, uuid
from typing import Optional, IO

from .packets import parse_packet

class NdjsonLogger:
    def __init__(self, directory: str, file_prefix: str, *, dual_file: bool = False, debug_subdir: Optional[str] = None):
        self.dir = pathlib.Path(directory)
        self.dir.mkdir(parents=True, exist_ok=True)
        self.prefix = file_prefix
        # Dual-file config
        self.dual_file = bool(dual_file)
        self.debug_subdir = debug_subdir or "debug"
        self._debug_dir: Optional[pathlib.Path] = None
        self.seq = 0
        self._fh: Optional[IO[str]] = None
        self._rot_day: Optional[str] = None
        self._path: Optional[pathlib.Path] = None
        self._debug_fh: Optional[IO[str]] = None
        self._debug_path: Optional[pathlib.Path] = None
        # Logging mode: 'regular' or 'verbose'. In regular mode debug-level
        # events are dropped from the main file unless whitelisted. Set via
        # env or by assigning after construction (bridge passes config).
        self.mode: str = os.getenv("LOG_MODE", "regular")
        # Message names (obj['msg']) emitted even in regular mode.
        wl = os.getenv("LOG_VERBOSE_WHITELIST", "")
        self.verbose_whitelist = set([s.strip() for s in wl.split(",") if s.strip()])
        # Observability: per-run identifiers
        self.session_id: str = os.getenv("SESSION_ID") or uuid.uuid4().hex[:12]
        self.pid: int = os.getpid()
        self.rotate()

    @property
    def path(self) -> Optional[pathlib.Path]:
        return self._path

    def rotate(self):
        self.close()

        # Time-coded filename, e.g. clockwatch_YYYYMMDD_HHMMSS.ndjson
        now = time.time()
        stamp = time.strftime("%Y%m%d_%H%M%S", time.localtime(now))
        day = stamp[:8]
        path = self.dir / f"{self.prefix}_{stamp}.ndjson"
        self._fh = open(path, "a", buffering=1, encoding="utf-8")
        self._path = path
        if self.dual_file:
            self._debug_dir = self.dir / self.debug_subdir
            try:
                self._debug_dir.mkdir(parents=True, exist_ok=True)
            except OSError:
                self._debug_dir = self.dir
            dpath = self._debug_dir / f"{self.prefix}_debug_{stamp}.ndjson"
            try:
                self._debug_fh = open(dpath, "a", buffering=1, encoding="utf-8")
                self._debug_path = dpath
            except OSError:
                self._debug_fh = None
        self._rot_day = day

        # Daily alias so tools expecting prefix_YYYYMMDD.ndjson keep working
        self._alias(path, self.dir / f"{self.prefix}_{day}.ndjson")
        if self.dual_file and self._debug_path and self._debug_dir:
            self._alias(self._debug_path, self._debug_dir / f"{self.prefix}_debug_{day}.ndjson")

    @staticmethod
    def _alias(target: pathlib.Path, alias: pathlib.Path):
        try:
            if alias.exists() or alias.is_symlink():
                alias.unlink()
        except OSError:
            return
        # Prefer hardlink (same filesystem); fall back to symlink
        try:
            os.link(target, alias)
        except OSError:
            try:
                os.symlink(str(target), alias)
            except OSError:
                # Non-fatal if alias creation fails
                pass

    def _suppressed(self, obj: dict) -> bool:
        """Main-file filter applied in regular mode."""
        if self.mode != "regular":
            return False
        typ = obj.get("type")
        msg = obj.get("msg")
        data = obj.get("data") if isinstance(obj.get("data"), dict) else {}
        # Heartbeats before the first sample carry nothing useful
        if typ == "status" and msg == "alive" and not data.get("samples"):
            return True
        if typ == "debug":
            return not (msg and msg in self.verbose_whitelist)
        return False

    def write(self, obj: dict):
        suppressed = self._suppressed(obj)

        # Decode an attached raw encoder packet so logs are easier to read
        data = obj.get("data") if isinstance(obj.get("data"), dict) else None
        if data is not None and isinstance(data.get("packet"), str):
            try:
                pkt = parse_packet(bytes.fromhex(data["packet"].replace(" ", "")))
            except ValueError:
                pkt = None
            if pkt:
                data["decoded"] = {"ts_us": pkt[0], "direction": pkt[1]}

        self.seq += 1
        now = time.time()
        lt = time.localtime(now)
        msec = int((now % 1.0) * 1000)
        # Human-friendly local time only; no machine timestamps
        obj.setdefault("hms", time.strftime("%H:%M:%S", lt) + f".{msec:03d}")
        obj.pop("ts_ms", None)
        obj.pop("t_iso", None)
        obj.setdefault("seq", self.seq)
        obj.setdefault("schema", "v1")
        obj.setdefault("session_id", self.session_id)
        obj.setdefault("pid", self.pid)
        if time.strftime("%Y%m%d", lt) != self._rot_day:
            self.rotate()

        line = json.dumps(obj) + "\n"
        # Full record always goes to the debug file when enabled
        if self.dual_file and self._debug_fh:
            try:
                self._debug_fh.write(line)
            except OSError:
                pass
        if suppressed:
            return
        if self._fh:
            try:
                self._fh.write(line)
            except OSError:
                pass

    def close(self):
        for fh in (self._fh, self._debug_fh):
            if fh:
                try:
                    fh.close()
                except OSError:
                    pass
        self._fh = None
        self._debug_fh = None
