from __future__ import annotations
import struct
from typing import Optional, Tuple

from .messages import EncoderSample

# Encoder packets are 5 bytes: u32 big-endian microsecond timestamp, then a
# byte whose high bit is the step direction and low 7 bits a checksum.
_PACKET_LEN = 5
_OVERFLOW = b"\xff" * _PACKET_LEN
# Device timestamps are u32 and wrap; each wrap adds this many micros
_WRAP = 0xFFFFFFFF


def checksum(b: bytes) -> int:
    c = 0
    for x in b[:4]:
        c ^= x
    return c & 0x7F


def parse_packet(payload: bytes) -> Optional[Tuple[int, int]]:
    """Decode one encoder packet into (timestamp_us, direction).

    Returns None for a short frame, the all-0xFF device buffer overflow
    marker, or a checksum mismatch. Direction is 1 (count up) or 0.
    """
    if len(payload) != _PACKET_LEN:
        return None
    if payload == _OVERFLOW:
        return None
    if checksum(payload) != payload[4] & 0x7F:
        return None
    (ts,) = struct.unpack(">I", payload[:4])
    return ts, (payload[4] >> 7) & 1


def build_packet(ts: int, direction: int) -> bytes:
    head = struct.pack(">I", ts & 0xFFFFFFFF)
    return head + bytes([((direction & 1) << 7) | checksum(head)])


class PacketDecoder:
    """Turns a stream of step packets into running-count encoder samples."""

    def __init__(self):
        self.count = 0
        self.overflows = 0
        self.rejected = 0
        self._last_ts: Optional[int] = None

    def feed(self, payload: bytes) -> Optional[EncoderSample]:
        pkt = parse_packet(payload)
        if pkt is None:
            self.rejected += 1
            return None
        ts, direction = pkt
        if self._last_ts is not None and ts < self._last_ts:
            self.overflows += 1
        self._last_ts = ts
        self.count += 1 if direction == 1 else -1
        return EncoderSample(device_micros=ts + self.overflows * _WRAP, raw_count=self.count)
