"""XOR-based compression of float (timestamp, value) pairs, scheme V1.

Consecutive floats are XORed bit-for-bit; timestamps are stored as zig-zag
double deltas. Entries are encoded in chunks of two, and up to four chunks
share a 4-byte group header:

* byte 0: four 2-bit codes, the byte width of each chunk's timestamps
  (00 -> 1, 01 -> 2, 10 -> 4, 11 -> 8 bytes);
* bytes 1-3 (big-endian): four 6-bit fields, each 3 bits of meaningful XOR
  length in bytes (minus one) followed by 3 bits of right shift in bytes.

Each chunk holds its two timestamp deltas followed by its two shifted XORs. A
chunk that ends the stream with only one real entry is padded with an entry
that repeats the previous timestamp delta and value; callers that know the
entry count should stop reading after it.
"""

from __future__ import annotations

import struct
from typing import BinaryIO

from .codec import U64_MASK, read_uint_le, varint_u64, zig_zag_decode, zig_zag_encode

_NUM_BYTES_TO_INT_CODE = (0, 0, 1, 2, 2, 3, 3, 3, 3)
_INT_CODE_TO_BYTES = (1, 2, 4, 8)

_CHUNK_SIZE = 2
_CHUNKS_PER_GROUP = 4
_GROUP_HEADER_SIZE = 4


def _to_i64(n: int) -> int:
    n &= U64_MASK
    return n - (1 << 64) if n >> 63 else n


def _float_bits(value) -> int:
    return struct.unpack("<Q", struct.pack("<d", float(value)))[0]


def _bits_float(bits: int) -> float:
    return struct.unpack("<d", struct.pack("<Q", bits & U64_MASK))[0]


def _leading_zero_bytes(n: int) -> int:
    return (64 - n.bit_length()) // 8


def _trailing_zero_bytes(n: int) -> int:
    return ((n & -n).bit_length() - 1) // 8


def _read_up_to(reader: BinaryIO, size: int) -> bytes:
    data = bytearray()
    while len(data) < size:
        chunk = reader.read(size - len(data))
        if not chunk:
            break
        data += chunk
    return bytes(data)


class FloatCompressorV1:
    """Compresses (timestamp, float) pairs following the header's first entry."""

    def __init__(self, writer: BinaryIO, header) -> None:
        self._writer = writer
        self._last_timestamp = header.min_timestamp & U64_MASK
        self._last_value = _float_bits(header.first_value)
        self._last_ts_delta = 0

        self._ts_d_deltas: list[int] = []
        self._xors: list[int] = []
        self._chunk_idx = 0
        self._length_header = 0
        self._xor_info_header = 0

        self._result = bytearray()
        self._group = bytearray()

    def consume(self, timestamp: int, value: float) -> int:
        """Buffer one pair; bytes are only produced by :meth:`flush_all`, so return 0."""
        if not 0 <= timestamp <= U64_MASK:
            raise OverflowError(f"timestamp {timestamp} does not fit in an unsigned 64-bit integer")

        ts_delta = _to_i64(timestamp - self._last_timestamp)
        self._ts_d_deltas.append(zig_zag_encode(_to_i64(ts_delta - self._last_ts_delta)))

        bits = _float_bits(value)
        self._xors.append(self._last_value ^ bits)

        if len(self._ts_d_deltas) >= _CHUNK_SIZE:
            self._flush()

        self._last_timestamp = timestamp
        self._last_ts_delta = ts_delta
        self._last_value = bits
        return 0

    def _flush(self) -> None:
        if not self._ts_d_deltas:
            return
        padding = _CHUNK_SIZE - len(self._ts_d_deltas)
        ts_d_deltas = self._ts_d_deltas + [0] * padding
        xors = self._xors + [0] * padding

        max_bytes = max((n.bit_length() + 7) // 8 for n in ts_d_deltas)
        length_code = _NUM_BYTES_TO_INT_CODE[max_bytes]
        ts_width = _INT_CODE_TO_BYTES[length_code]
        self._length_header |= length_code << (6 - 2 * self._chunk_idx)
        for delta in ts_d_deltas:
            self._group += delta.to_bytes(8, "little")[:ts_width]

        min_start_block: int | None = None
        max_end_block = 0
        for xor in xors:
            if xor == 0:
                if min_start_block is None:
                    min_start_block = max_end_block = 4
            else:
                start = _leading_zero_bytes(xor)
                end = 7 - _trailing_zero_bytes(xor)
                min_start_block = start if min_start_block is None else min(min_start_block, start)
                max_end_block = max(max_end_block, end)

        meaningful_len = max_end_block - min_start_block + 1
        shift = 7 - max_end_block
        self._xor_info_header |= (meaningful_len - 1) << (21 - 6 * self._chunk_idx)
        self._xor_info_header |= shift << (18 - 6 * self._chunk_idx)
        for xor in xors:
            self._group += (xor >> (shift * 8)).to_bytes(8, "little")[:meaningful_len]

        self._chunk_idx += 1
        if self._chunk_idx >= _CHUNKS_PER_GROUP:
            self._flush_group()
        self._ts_d_deltas.clear()
        self._xors.clear()

    def _flush_group(self) -> None:
        if self._chunk_idx == 0:
            return
        self._result.append(self._length_header)
        self._result += self._xor_info_header.to_bytes(3, "big")
        self._result += self._group
        self._group.clear()
        self._chunk_idx = 0
        self._length_header = 0
        self._xor_info_header = 0

    def flush_all(self) -> int:
        """Encode everything buffered, write it out and return the byte count."""
        self._flush()
        self._flush_group()
        data = bytes(self._result)
        self._writer.write(data)
        self._result.clear()
        return len(data)


class FloatDecompressorV1:
    """Iterates over the (timestamp, float) pairs of a stream from FloatCompressorV1."""

    def __init__(self, reader: BinaryIO, header) -> None:
        self._reader = reader
        self._timestamp = header.min_timestamp & U64_MASK
        self._value = _float_bits(header.first_value)
        self._last_ts_delta = 0

        self._length_header = 0
        self._xor_info_header = 0
        self._chunk_idx = _CHUNKS_PER_GROUP
        self._entries: list[tuple[int, int]] = []
        self._entry_idx = 0

    def _load_chunk(self) -> None:
        if self._chunk_idx >= _CHUNKS_PER_GROUP:
            group_header = _read_up_to(self._reader, _GROUP_HEADER_SIZE)
            if not group_header:
                raise StopIteration
            if len(group_header) != _GROUP_HEADER_SIZE:
                raise EOFError("compressed stream ends inside a group header")
            self._length_header = group_header[0]
            self._xor_info_header = int.from_bytes(group_header, "big")
            self._chunk_idx = 0

        length_code = (self._length_header >> (6 - 2 * self._chunk_idx)) & 0b11
        ts_width = _INT_CODE_TO_BYTES[length_code]
        xor_width = ((self._xor_info_header >> (21 - 6 * self._chunk_idx)) & 0b111) + 1
        shift = (self._xor_info_header >> (18 - 6 * self._chunk_idx)) & 0b111

        total = (ts_width + xor_width) * _CHUNK_SIZE
        data = _read_up_to(self._reader, total)
        if not data and self._chunk_idx > 0:
            raise StopIteration
        if len(data) != total:
            raise EOFError("compressed stream ends inside a chunk")

        ts_part = data[: ts_width * _CHUNK_SIZE]
        xor_part = data[ts_width * _CHUNK_SIZE :]
        ts_d_deltas = [
            zig_zag_decode(read_uint_le(ts_part[pos : pos + ts_width]))
            for pos in range(0, len(ts_part), ts_width)
        ]
        xors = [
            (varint_u64(xor_part[pos : pos + xor_width]) << (shift * 8)) & U64_MASK
            for pos in range(0, len(xor_part), xor_width)
        ]
        self._entries = list(zip(ts_d_deltas, xors))
        self._entry_idx = 0
        self._chunk_idx += 1

    def __iter__(self) -> FloatDecompressorV1:
        return self

    def __next__(self) -> tuple[int, float]:
        if self._entry_idx >= len(self._entries):
            self._load_chunk()

        ts_double_delta, xor = self._entries[self._entry_idx]
        self._entry_idx += 1

        self._last_ts_delta = _to_i64(self._last_ts_delta + ts_double_delta)
        self._timestamp = (self._timestamp + self._last_ts_delta) & U64_MASK
        self._value ^= xor
        return self._timestamp, _bits_float(self._value)