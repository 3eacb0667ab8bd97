"""Low-level integer and float encodings shared by the storage format."""

from __future__ import annotations

import struct

MAX_NUM_ENTRIES = 62_500
U64_MASK = (1 << 64) - 1

_I64_MIN = -(1 << 63)
_I64_MAX = (1 << 63) - 1


def _require_length(buf: bytes, size: int, what: str) -> None:
    if len(buf) != size:
        raise ValueError(f"{what} needs exactly {size} bytes, got {len(buf)}")


def read_uint_le(buf: bytes) -> int:
    """Read an unsigned little-endian integer spanning the whole buffer."""
    if not buf:
        raise ValueError("cannot read an integer from an empty buffer")
    return int.from_bytes(buf, "little")


def read_i64(buf: bytes) -> int:
    """Read a little-endian signed 64-bit integer."""
    _require_length(buf, 8, "i64")
    return struct.unpack("<q", buf)[0]


def read_f64(buf: bytes) -> float:
    """Read a little-endian IEEE 754 double."""
    _require_length(buf, 8, "f64")
    return struct.unpack("<d", buf)[0]


def read_u128(buf: bytes) -> int:
    """Read a little-endian unsigned 128-bit integer."""
    _require_length(buf, 16, "u128")
    return int.from_bytes(buf, "little")


def zig_zag_encode(n: int) -> int:
    """Map a signed 64-bit integer onto an unsigned one, small magnitudes first."""
    if not _I64_MIN <= n <= _I64_MAX:
        raise OverflowError(f"{n} does not fit in a signed 64-bit integer")
    return ((n << 1) ^ (n >> 63)) & U64_MASK


def zig_zag_decode(n: int) -> int:
    """Invert :func:`zig_zag_encode`."""
    if not 0 <= n <= U64_MASK:
        raise OverflowError(f"{n} does not fit in an unsigned 64-bit integer")
    return (n >> 1) ^ -(n & 1)


def bits_needed(n: int) -> int:
    """Number of significant bits in an unsigned 64-bit integer (0 for 0)."""
    if not 0 <= n <= U64_MASK:
        raise OverflowError(f"{n} does not fit in an unsigned 64-bit integer")
    return n.bit_length()


def varint_u64(buf: bytes) -> int:
    """Read a little-endian unsigned integer of up to eight bytes; empty gives 0."""
    return int.from_bytes(buf, "little") & U64_MASK