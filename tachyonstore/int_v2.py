"""Bit-packed double-delta integer compression, scheme V2.

Entries are encoded in blocks of 16. Each block becomes two chunks, one of
timestamp double deltas and one of value double deltas, all zig-zag encoded.
Up to eight chunks share a 3-byte big-endian length header holding a 3-bit
width code per chunk:

    000 -> 1 bit    001 -> 2 bits   010 -> 4 bits   011 -> 1 byte
    100 -> 2 bytes  101 -> 3 bytes  110 -> 4 bytes  111 -> 8 bytes

Widths under a byte are bit-packed from the most significant bit down; wider
integers are stored little-endian. A block that ends the stream with fewer
than 16 real entries is padded with zero double deltas, which decode as
entries that continue the last deltas; callers that know the entry count
should stop reading after it.
"""

from __future__ import annotations

import struct
from typing import BinaryIO

from .codec import U64_MASK, bits_needed, read_uint_le, zig_zag_decode, zig_zag_encode

_CHUNK_SIZE = 16
_CHUNKS_PER_GROUP = 8
_GROUP_HEADER_SIZE = 3

_CODE_TO_BITS = (1, 2, 4, 8, 16, 24, 32, 64)
_LENGTH_LOOKUP = (
    (0, 0, 1, 2, 2)
    + (3,) * 4
    + (4,) * 8
    + (5,) * 8
    + (6,) * 8
    + (7,) * 32
)


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


def _read_up_to(reader: BinaryIO, size: int) -> bytes:
    data = bytearray()
    while len(data) < size:
        chunk = reader.read(size - len(data))
        if not chunk:
            break
        data += chunk
    return bytes(data)


def _encode_chunk(values: list[int]) -> tuple[int, bytes]:
    """Return the width code and the encoded bytes of one padded chunk."""
    code = _LENGTH_LOOKUP[max(bits_needed(n) for n in values)]
    bits = _CODE_TO_BITS[code]
    if bits < 8:
        packed = bytearray(bits * _CHUNK_SIZE // 8)
        for i, n in enumerate(values):
            pos = bits * i
            packed[pos // 8] |= n << (8 - bits - pos % 8)
        return code, bytes(packed)
    width = bits // 8
    return code, b"".join(n.to_bytes(8, "little")[:width] for n in values)


def _decode_chunk(code: int, data: bytes) -> list[int]:
    bits = _CODE_TO_BITS[code]
    if bits < 8:
        mask = (1 << bits) - 1
        encoded = []
        for i in range(_CHUNK_SIZE):
            pos = bits * i
            encoded.append((data[pos // 8] >> (8 - bits - pos % 8)) & mask)
    else:
        width = bits // 8
        encoded = [read_uint_le(data[pos : pos + width]) for pos in range(0, len(data), width)]
    return [zig_zag_decode(n) for n in encoded]


class IntCompressorV2:
    """Compresses unsigned (timestamp, value) pairs following the header's first entry.

    Each completed group of eight chunks is written to the writer at once.
    """

    def __init__(self, writer: BinaryIO, header) -> None:
        self._setup(writer, header.min_timestamp & U64_MASK, _as_u64(header.first_value), (0, 0))

    def _setup(self, writer: BinaryIO, last_timestamp: int, last_value: int, last_deltas) -> None:
        self._writer = writer
        self._last_timestamp = last_timestamp
        self._last_value = last_value
        self._last_deltas = last_deltas

        self._ts_d_deltas: list[int] = []
        self._value_d_deltas: list[int] = []
        self._chunk_idx = 0
        self._length_header = 0
        self._group = bytearray()

    @classmethod
    def from_partial(cls, writer: BinaryIO, data_file) -> IntCompressorV2:
        """Continue compressing after the entries already held by ``data_file``."""
        timestamps = list(data_file.timestamps)
        values = [_as_u64(v) for v in data_file.values]
        if not timestamps or not values:
            raise ValueError("cannot resume compression from an empty data file")

        if len(timestamps) < 2:
            last_deltas = (0, 0)
        else:
            last_deltas = (
                _to_i64(_to_i64(timestamps[-1]) - _to_i64(timestamps[-2])),
                _to_i64(_to_i64(values[-1]) - _to_i64(values[-2])),
            )
        compressor = cls.__new__(cls)
        compressor._setup(writer, timestamps[-1] & U64_MASK, values[-1], last_deltas)
        return compressor

    def consume(self, timestamp: int, value: int) -> int:
        """Buffer one pair; return the bytes written if it completed a group, else 0."""
        timestamp = _check_u64(timestamp, "timestamp")
        value = _check_u64(value, "value")

        ts_delta = _to_i64(timestamp - self._last_timestamp)
        value_delta = _to_i64(value - self._last_value)
        self._ts_d_deltas.append(zig_zag_encode(_to_i64(ts_delta - self._last_deltas[0])))
        self._value_d_deltas.append(zig_zag_encode(_to_i64(value_delta - self._last_deltas[1])))

        written = self._flush() if len(self._ts_d_deltas) >= _CHUNK_SIZE else 0

        self._last_timestamp = timestamp
        self._last_value = value
        self._last_deltas = (ts_delta, value_delta)
        return written

    def _flush(self) -> int:
        if not self._ts_d_deltas:
            return 0
        padding = [0] * (_CHUNK_SIZE - len(self._ts_d_deltas))
        for deltas in (self._ts_d_deltas + padding, self._value_d_deltas + padding):
            code, data = _encode_chunk(deltas)
            self._length_header |= code << (21 - 3 * self._chunk_idx)
            self._group += data
            self._chunk_idx += 1
        self._ts_d_deltas.clear()
        self._value_d_deltas.clear()

        if self._chunk_idx >= _CHUNKS_PER_GROUP:
            return self._flush_group()
        return 0

    def _flush_group(self) -> int:
        if self._chunk_idx == 0:
            return 0
        data = self._length_header.to_bytes(_GROUP_HEADER_SIZE, "big") + bytes(self._group)
        self._writer.write(data)
        self._chunk_idx = 0
        self._length_header = 0
        self._group.clear()
        return len(data)

    def flush_all(self) -> int:
        """Write out everything still buffered and return the number of bytes written."""
        written = self._flush()
        return written + self._flush_group()


class IntDecompressorV2:
    """Iterates over the (timestamp, value) pairs of a stream from IntCompressorV2."""

    def __init__(self, reader: BinaryIO, header) -> None:
        self._reader = reader
        self._timestamp = header.min_timestamp & U64_MASK
        self._value = _as_u64(header.first_value)
        self._last_deltas = (0, 0)

        self._length_header = 0
        self._chunk_idx = _CHUNKS_PER_GROUP
        self._block: list[tuple[int, int]] = []
        self._block_idx = 0

    def _read_chunk(self, first_of_block: bool) -> list[int]:
        code = (self._length_header >> (21 - 3 * self._chunk_idx)) & 0b111
        size = _CODE_TO_BITS[code] * _CHUNK_SIZE // 8
        data = _read_up_to(self._reader, size)
        if not data and first_of_block and self._chunk_idx > 0:
            raise StopIteration
        if len(data) != size:
            raise EOFError("compressed stream ends inside a chunk")
        self._chunk_idx += 1
        return _decode_chunk(code, data)

    def _load_block(self) -> None:
        if self._chunk_idx >= _CHUNKS_PER_GROUP:
            group_header = _read_up_to(self._reader, _GROUP_HEADER_SIZE)
            if not group_header:
                raise StopIteration
            if len(group_header) != _GROUP_HEADER_SIZE:
                raise EOFError("compressed stream ends inside a group header")
            self._length_header = int.from_bytes(group_header, "big")
            self._chunk_idx = 0

        ts_d_deltas = self._read_chunk(first_of_block=True)
        value_d_deltas = self._read_chunk(first_of_block=False)
        self._block = list(zip(ts_d_deltas, value_d_deltas))
        self._block_idx = 0

    def __iter__(self) -> IntDecompressorV2:
        return self

    def __next__(self) -> tuple[int, int]:
        if self._block_idx >= len(self._block):
            self._load_block()

        ts_double_delta, value_double_delta = self._block[self._block_idx]
        self._block_idx += 1

        ts_delta = _to_i64(self._last_deltas[0] + ts_double_delta)
        value_delta = _to_i64(self._last_deltas[1] + value_double_delta)
        self._last_deltas = (ts_delta, value_delta)

        self._timestamp = (self._timestamp + ts_delta) & U64_MASK
        self._value = (self._value + value_delta) & U64_MASK
        return self._timestamp, self._value