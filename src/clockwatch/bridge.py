from __future__ import annotations
import asyncio, logging, sqlite3
from typing import Dict, List, Optional

import serial

from .averaging import AveragingEngine
from .config import AppCfg, load_config
from .logs import NdjsonLogger
from .messages import ChannelSample, EncoderSample, Message, StatusMessage, parse_message
from .packets import PacketDecoder
from .recorder import DataRecorder, DerivedPoint
from .store import ReadingStore

log = logging.getLogger(__name__)

_PACKET_LEN = 5


class Bridge:
    """Runs the recorder against the encoder serial link.

    Samples from the reader and tare/reset requests are all applied on the
    event loop, one at a time, so the recorder has a single writer. The
    averaging pass runs on its own timer and only reads.
    """

    def __init__(self, cfg: AppCfg, logger: Optional[NdjsonLogger] = None, store: Optional[ReadingStore] = None):
        self.cfg = cfg
        lc = cfg.logging
        self.logger = logger or NdjsonLogger(lc.dir, lc.file_prefix, dual_file=lc.dual_file, debug_subdir=lc.debug_subdir)
        self.logger.mode = lc.mode
        if lc.verbose_whitelist:
            self.logger.verbose_whitelist = set(lc.verbose_whitelist)
        self.recorder = DataRecorder(cfg.recorder, cfg.drift)
        self.averager = AveragingEngine(cfg.averaging.smoothing_window)
        self.averaged: Dict[str, List[float]] = {}
        if store is None and cfg.store.path:
            store = ReadingStore(cfg.store.path)
        self.store = store
        self.decoder = PacketDecoder()
        self.queue: Optional[asyncio.Queue] = None
        self.serial_connected = False
        self._tasks: List[asyncio.Task] = []
        self._running = False

    # --- single-writer operations ---
    def handle(self, msg: Message) -> Optional[DerivedPoint]:
        if isinstance(msg, EncoderSample):
            pt = self.recorder.ingest(msg)
            if pt.crossing is not None and pt.crossing.half_period is not None:
                self._persist()
            if pt.period is not None:
                self.logger.write({"type": "debug", "msg": "period", "data": {"t": pt.time, "period": pt.period}})
            if pt.amplitude is not None:
                self.logger.write({"type": "debug", "msg": "amplitude",
                                   "data": {"t": pt.time, "amplitude": pt.amplitude, "rate": pt.amplitude_rate}})
            return pt
        if isinstance(msg, ChannelSample):
            self.recorder.ingest_channel(msg)
            return None
        if isinstance(msg, StatusMessage):
            self._on_status(msg)
        return None

    def handle_json(self, obj) -> Optional[DerivedPoint]:
        msg = parse_message(obj)
        if msg is None:
            self.logger.write({"type": "debug", "msg": "unknown_message", "data": {"raw": repr(obj)[:200]}})
            return None
        return self.handle(msg)

    def tare(self) -> float:
        delta = self.recorder.tare()
        self.logger.write({"type": "event", "msg": "TARE",
                           "data": {"delta": delta, "tare_offset": self.recorder.tare_offset}})
        return delta

    def reset(self):
        self.recorder.reset()
        self.averaged = {}
        self.logger.write({"type": "event", "msg": "RESET",
                           "data": {"tare_offset": self.recorder.tare_offset}})

    def refresh(self) -> Dict[str, List[float]]:
        av = self.cfg.averaging
        self.averaged = self.averager.update(self.recorder.series, av.window, av.enabled)
        return self.averaged

    def load_history(self, start_us: int, end_us: int) -> int:
        if self.store is None:
            self.logger.write({"type": "info", "msg": "history_unavailable", "data": {}})
            return 0
        records = self.store.query(start_us, end_us)
        if not records:
            self.logger.write({"type": "info", "msg": "history_empty",
                               "data": {"start_us": start_us, "end_us": end_us}})
        n = self.recorder.load_history(records)
        self.logger.write({"type": "event", "msg": "HISTORY_LOADED", "data": {"records": n}})
        return n

    def _persist(self):
        if self.store is None:
            return
        rec = self.recorder.snapshot()
        if rec.period is None or rec.amplitude is None:
            return
        try:
            self.store.append(rec)
        except sqlite3.Error as e:
            log.warning("failed to store reading: %s", e)
            self.logger.write({"type": "error", "msg": "store_failed", "data": {"error": str(e)}})

    def _on_status(self, msg: StatusMessage):
        if msg.device.upper() == "SERIAL":
            st = msg.status.upper()
            if st == "CONNECTED":
                self.serial_connected = True
            elif st == "DISCONNECTED":
                self.serial_connected = False
        self.logger.write({"type": "status", "msg": msg.status,
                           "data": {"device": msg.device, "error": msg.error}})

    # --- async wiring ---
    async def start(self):
        self.queue = asyncio.Queue()
        self._running = True
        self._tasks = [
            asyncio.create_task(self._consume()),
            asyncio.create_task(self._refresh_task()),
            asyncio.create_task(self._status_task()),
        ]
        if self.cfg.serial.port:
            self._tasks.append(asyncio.create_task(self._serial_task()))
        else:
            log.warning("no serial port configured; waiting for pushed samples")

    async def push(self, msg: Message):
        """Queue a message from any producer coroutine."""
        if self.queue is None:
            raise RuntimeError("bridge not started")
        await self.queue.put(msg)

    async def _consume(self):
        assert self.queue is not None
        while True:
            msg = await self.queue.get()
            try:
                self.handle(msg)
            except Exception as e:
                log.exception("failed to apply message")
                self.logger.write({"type": "error", "msg": "ingest_failed", "data": {"error": str(e)}})
            finally:
                self.queue.task_done()

    async def _refresh_task(self):
        period = max(0.01, self.cfg.averaging.refresh_ms / 1000.0)
        while True:
            self.refresh()
            await asyncio.sleep(period)

    async def _status_task(self):
        while True:
            r = self.recorder
            self.logger.write({
                "type": "status",
                "msg": "alive",
                "data": {
                    "samples": r.state.samples,
                    "serial": self.serial_connected,
                    "position": r.current_position(),
                    "period": r.current_period(),
                    "amplitude": r.current_amplitude(),
                    "drift_rate": r.current_drift_rate(),
                    "rejected": self.decoder.rejected,
                },
            })
            await asyncio.sleep(self.cfg.logging.status_interval_sec)

    async def _serial_task(self):
        sc = self.cfg.serial
        backoff = sc.reconnect_initial_sec
        while self._running:
            try:
                ser = await asyncio.to_thread(serial.Serial, sc.port, sc.baud_rate, timeout=sc.timeout_s)
            except serial.SerialException as e:
                log.warning("serial open failed on %s: %s", sc.port, e)
                self.handle(StatusMessage(device="SERIAL", status="Error", error=str(e)))
                await asyncio.sleep(backoff)
                backoff = min(sc.reconnect_max_sec, backoff * 2)
                continue
            backoff = sc.reconnect_initial_sec
            self.handle(StatusMessage(device="SERIAL", status="Connected"))
            try:
                await self._read_packets(ser)
            except serial.SerialException as e:
                log.warning("serial read failed: %s", e)
                self.handle(StatusMessage(device="SERIAL", status="Error", error=str(e)))
            finally:
                try:
                    ser.close()
                except serial.SerialException:
                    pass
                self.handle(StatusMessage(device="SERIAL", status="Disconnected"))
            await asyncio.sleep(backoff)

    async def _read_packets(self, ser):
        # bytes of a frame split across reads are kept until it completes
        buf = bytearray()
        errors = 0
        while self._running:
            chunk = await asyncio.to_thread(ser.read, _PACKET_LEN - len(buf))
            if not chunk:
                # read timeout; the wheel may simply be at rest
                continue
            buf.extend(chunk)
            if len(buf) < _PACKET_LEN:
                continue
            payload = bytes(buf[:_PACKET_LEN])
            del buf[:_PACKET_LEN]
            sample = self.decoder.feed(payload)
            if sample is None:
                errors += 1
                self.logger.write({"type": "debug", "msg": "packet_rejected", "data": {"packet": payload.hex()}})
                if errors >= self.cfg.serial.max_consecutive_errors:
                    self.handle(StatusMessage(device="SERIAL", status="Error",
                                              error=f"Too many consecutive bad packets ({errors})"))
                    errors = 0
                    # slide one byte to regain packet alignment
                    buf[:0] = payload[1:]
                continue
            errors = 0
            await self.push(sample)

    async def stop(self):
        self._running = False
        for t in self._tasks:
            t.cancel()
        for t in self._tasks:
            try:
                await t
            except asyncio.CancelledError:
                pass
        self._tasks = []
        if self.store is not None:
            self.store.close()
        self.logger.close()


async def run(config_path: str):
    cfg = load_config(config_path)
    br = Bridge(cfg)
    await br.start()
    try:
        while True:
            await asyncio.sleep(1)
    except asyncio.CancelledError:
        pass
    finally:
        await br.stop()
