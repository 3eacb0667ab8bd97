"""Double-delta compression of (timestamp, value) pairs with 7-bit varints."""

from __future__ import annotations

import struct
from typing import BinaryIO

from .codec import U64_MASK, zig_zag_decode, zig_zag_encode

_CHUNK_SIZE = 16
_PAYLOAD_MASK = 0x7F
_CONTINUATION = 0x80


def _to_i64(n: int) -> int:
    n &= U64_MASK
    return n - (1 << 64) if n >> 63 else n


def _as_u64(value) -> int:
    if isinstance(value, float):
        return struct.unpack("<Q", struct.pack("<d", value))[0]
    return int(value) & U64_MASK


class GoogleCompressor:
    """Encodes each double delta as a zig-zag varint, 7 bits per byte."""

    def __init__(self, writer: BinaryIO, header) -> None:
        self._writer = writer
        self._last_timestamp = header.min_timestamp & U64_MASK
        self._last_value = _as_u64(header.first_value)
        self._last_deltas = (0, 0)
        self._pending = bytearray()

    def _encode(self, value: int) -> int:
        start = len(self._pending)
        while True:
            byte = value & _PAYLOAD_MASK
            value >>= 7
            if value:
                byte |= _CONTINUATION
            self._pending.append(byte)
            if not value:
                break
        return len(self._pending) - start

    def consume(self, timestamp: int, value: int) -> int:
        """Buffer one pair; return the number of encoded bytes it produced."""
        ts_delta = _to_i64(timestamp - self._last_timestamp)
        value_delta = _to_i64(value - self._last_value)

        written = self._encode(zig_zag_encode(_to_i64(ts_delta - self._last_deltas[0])))
        written += self._encode(zig_zag_encode(_to_i64(value_delta - self._last_deltas[1])))

        self._last_timestamp = timestamp & U64_MASK
        self._last_value = value & U64_MASK
        self._last_deltas = (ts_delta, value_delta)
        return written

    def flush_all(self) -> int:
        """Write the buffered bytes to the writer and return how many were written."""
        data = bytes(self._pending)
        self._writer.write(data)
        self._pending.clear()
        return len(data)


class GoogleDecompressor:
    """Iterates over the (timestamp, value) pairs of a stream from GoogleCompressor."""

    def __init__(self, reader: BinaryIO, header) -> None:
        self._reader = reader
        self._timestamp = header.min_timestamp & U64_MASK
        self._value = _as_u64(header.first_value)
        self._last_deltas = (0, 0)
        self._buffer = b""
        self._pos = 0

    def _next_byte(self) -> int | None:
        if self._pos >= len(self._buffer):
            self._buffer = self._reader.read(_CHUNK_SIZE)
            self._pos = 0
            if not self._buffer:
                return None
        byte = self._buffer[self._pos]
        self._pos += 1
        return byte

    def _decode(self, at_entry_start: bool) -> int | None:
        result = 0
        shift = 0
        while True:
            byte = self._next_byte()
            if byte is None:
                if at_entry_start and shift == 0:
                    return None
                raise EOFError("compressed stream ends inside an entry")
            result |= (byte & _PAYLOAD_MASK) << shift
            shift += 7
            if not byte & _CONTINUATION:
                break
            if shift >= 63:
                raise ValueError("varint is too long")
        return zig_zag_decode(result)

    def __iter__(self) -> GoogleDecompressor:
        return self

    def __next__(self) -> tuple[int, int]:
        ts_double_delta = self._decode(at_entry_start=True)
        if ts_double_delta is None:
            raise StopIteration
        value_double_delta = self._decode(at_entry_start=False)

        ts_delta = _to_i64(self._last_deltas[0] + ts_double_delta)
        value_delta = _to_i64(self._last_deltas[1] + value_double_delta)
        self._last_deltas = (ts_delta, value_delta)

        self._timestamp = (self._timestamp + ts_delta) & U64_MASK
        self._value = (self._value + value_delta) & U64_MASK
        return self._timestamp, self._value