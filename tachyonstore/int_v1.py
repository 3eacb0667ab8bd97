"""Byte-aligned double-delta integer compression, scheme V1 (superseded by V2).

Entries are encoded two at a time. Each group starts with a length byte that
holds four 2-bit codes, one per encoded integer in the order timestamp, value,
timestamp, value:

    00 -> 1 byte, 01 -> 2 bytes, 10 -> 4 bytes, 11 -> 8 bytes

The integers follow in little-endian order. Each one is the zig-zag encoding
of a double delta. A trailing group may carry a single entry, in which case
only its two integers are present.
"""

from __future__ import annotations

import struct
from typing import BinaryIO

from .codec import U64_MASK, read_uint_le, zig_zag_decode, zig_zag_encode

_CODE_TO_BYTES = (1, 2, 4, 8)
_SLOTS_PER_GROUP = 4


def _to_i64(n: int) -> int:
    n &= U64_MASK
    return n - (1 << 64) if n >> 63 else n


def _as_u64(value) -> int:
    if isinstance(value, float):
        return struct.unpack("<Q", struct.pack("<d", value))[0]
    return int(value) & U64_MASK


def _check_u64(n: int, what: str) -> int:
    if not 0 <= n <= U64_MASK:
        raise OverflowError(f"{what} {n} does not fit in an unsigned 64-bit integer")
    return n


def _bytes_needed(n: int) -> int:
    return max(1, (n.bit_length() + 7) // 8)


def _length_code(num_bytes: int) -> int:
    if num_bytes == 1:
        return 0
    if num_bytes == 2:
        return 1
    if num_bytes <= 4:
        return 2
    if num_bytes <= 8:
        return 3
    raise OverflowError(f"integer needs {num_bytes} bytes, more than 8")


def _read_up_to(reader: BinaryIO, size: int) -> bytes:
    data = bytearray()
    while len(data) < size:
        chunk = reader.read(size - len(data))
        if not chunk:
            break
        data += chunk
    return bytes(data)


def _read_exact(reader: BinaryIO, size: int) -> bytes:
    data = _read_up_to(reader, size)
    if len(data) != size:
        raise EOFError("compressed stream ends inside a group")
    return data


class IntCompressorV1:
    """Compresses unsigned (timestamp, value) pairs following the header's first entry."""

    def __init__(self, writer: BinaryIO, header) -> None:
        self._writer = writer
        self._last_timestamp = header.min_timestamp & U64_MASK
        self._last_value = _as_u64(header.first_value)
        self._last_deltas = (0, 0)
        self._slots: list[int] = []
        self._result = bytearray()

    def consume(self, timestamp: int, value: int) -> int:
        """Buffer one pair; return the bytes encoded by a group it completed, else 0."""
        timestamp = _check_u64(timestamp, "timestamp")
        value = _check_u64(value, "value")

        ts_delta = _to_i64(timestamp - self._last_timestamp)
        value_delta = _to_i64(value - self._last_value)
        self._slots.append(zig_zag_encode(_to_i64(ts_delta - self._last_deltas[0])))
        self._slots.append(zig_zag_encode(_to_i64(value_delta - self._last_deltas[1])))

        written = self._flush() if len(self._slots) >= _SLOTS_PER_GROUP else 0

        self._last_timestamp = timestamp
        self._last_value = value
        self._last_deltas = (ts_delta, value_delta)
        return written

    def _flush(self) -> int:
        if not self._slots:
            return 0
        codes = [_length_code(_bytes_needed(n)) for n in self._slots]
        length_byte = 0
        for slot, code in enumerate(codes):
            length_byte |= code << (6 - 2 * slot)

        start = len(self._result)
        self._result.append(length_byte)
        for n, code in zip(self._slots, codes):
            self._result += n.to_bytes(_CODE_TO_BYTES[code], "little")
        self._slots.clear()
        return len(self._result) - start

    def flush_all(self) -> int:
        """Encode any buffered pair, write everything out and return the byte count."""
        self._flush()
        data = bytes(self._result)
        self._writer.write(data)
        self._result.clear()
        return len(data)


class IntDecompressorV1:
    """Iterates over the (timestamp, value) pairs of a stream from IntCompressorV1."""

    def __init__(self, reader: BinaryIO, header) -> None:
        self._reader = reader
        self._timestamp = header.min_timestamp & U64_MASK
        self._value = _as_u64(header.first_value)
        self._last_deltas = (0, 0)
        self._pending: tuple[int, int] | None = None

    def _advance(self, ts_double_delta: int, value_double_delta: int) -> tuple[int, int]:
        ts_delta = _to_i64(self._last_deltas[0] + ts_double_delta)
        value_delta = _to_i64(self._last_deltas[1] + value_double_delta)
        self._last_deltas = (ts_delta, value_delta)
        self._timestamp = (self._timestamp + ts_delta) & U64_MASK
        self._value = (self._value + value_delta) & U64_MASK
        return self._timestamp, self._value

    def _decode(self, size: int) -> int:
        return zig_zag_decode(read_uint_le(_read_exact(self._reader, size)))

    def __iter__(self) -> IntDecompressorV1:
        return self

    def __next__(self) -> tuple[int, int]:
        if self._pending is not None:
            entry, self._pending = self._pending, None
            return entry

        length = _read_up_to(self._reader, 1)
        if not length:
            raise StopIteration
        sizes = [
            _CODE_TO_BYTES[(length[0] >> (6 - 2 * slot)) & 0b11]
            for slot in range(_SLOTS_PER_GROUP)
        ]

        current = self._advance(self._decode(sizes[0]), self._decode(sizes[1]))

        third = _read_up_to(self._reader, sizes[2])
        if third:
            if len(third) != sizes[2]:
                raise EOFError("compressed stream ends inside a group")
            ts_double_delta = zig_zag_decode(read_uint_le(third))
            self._pending = self._advance(ts_double_delta, self._decode(sizes[3]))
        return current