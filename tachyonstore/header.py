"""Value types, vectors and the fixed-size header of a data file."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple, Union

from .codec import U64_MASK

Number = Union[int, float]

MAGIC = b"Tach"
MAGIC_SIZE = len(MAGIC)
HEADER_SIZE = 71
HEADER_BYTES = MAGIC_SIZE + HEADER_SIZE

_I64_MIN = -(1 << 63)
_I64_MAX = (1 << 63) - 1
_U32_MAX = (1 << 32) - 1

_FIXED = struct.Struct("<H16sQQIB")


class CorruptFileError(ValueError):
    """Raised when a data file header cannot be parsed."""


class ValueType(Enum):
    """The physical type of the values in a stream."""

    INTEGER64 = 0
    UINTEGER64 = 1
    FLOAT64 = 2

    def coerce(self, value: Number) -> Number:
        """Return ``value`` as this type, raising if it does not fit."""
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise TypeError(f"expected a number, got {type(value).__name__}")
        if self is ValueType.FLOAT64:
            return float(value)
        if isinstance(value, float):
            raise TypeError(f"{self.name} values must be integers, got {value!r}")
        low, high = (0, U64_MASK) if self is ValueType.UINTEGER64 else (_I64_MIN, _I64_MAX)
        if not low <= value <= high:
            raise OverflowError(f"{value} does not fit in {self.name}")
        return value


_VALUE_FORMATS = {
    ValueType.INTEGER64: "q",
    ValueType.UINTEGER64: "Q",
    ValueType.FLOAT64: "d",
}


def _add(value_type: ValueType, a: Number, b: Number) -> Number:
    if value_type is ValueType.FLOAT64:
        return a + b
    total = (a + b) & U64_MASK
    if value_type is ValueType.INTEGER64 and total >> 63:
        total -= 1 << 64
    return total


class Vector(NamedTuple):
    """One (timestamp, value) entry of a stream."""

    timestamp: int
    value: Number


@dataclass
class Header:
    """Summary of a data file: identity, time range, count and value statistics."""

    version: int
    stream_id: int
    min_timestamp: int
    max_timestamp: int
    count: int
    value_type: ValueType
    value_sum: Number
    min_value: Number
    max_value: Number
    first_value: Number

    @classmethod
    def empty(cls, version: int, stream_id: int, value_type: ValueType) -> Header:
        """A header for a file that holds no entries yet."""
        zero = value_type.coerce(0)
        return cls(
            version=version,
            stream_id=stream_id,
            min_timestamp=0,
            max_timestamp=0,
            count=0,
            value_type=value_type,
            value_sum=zero,
            min_value=zero,
            max_value=zero,
            first_value=zero,
        )

    @classmethod
    def from_bytes(cls, data: bytes) -> Header:
        """Parse the magic and header at the start of ``data``."""
        if len(data) < HEADER_BYTES:
            raise CorruptFileError(
                f"header needs {HEADER_BYTES} bytes, got {len(data)}"
            )
        if data[:MAGIC_SIZE] != MAGIC:
            raise CorruptFileError("invalid magic for a data file")

        version, stream_bytes, min_ts, max_ts, count, type_code = _FIXED.unpack_from(
            data, MAGIC_SIZE
        )
        try:
            value_type = ValueType(type_code)
        except ValueError:
            raise CorruptFileError(f"unknown value type code {type_code}") from None

        fmt = "<" + _VALUE_FORMATS[value_type] * 4
        value_sum, min_value, max_value, first_value = struct.unpack_from(
            fmt, data, MAGIC_SIZE + _FIXED.size
        )
        return cls(
            version=version,
            stream_id=int.from_bytes(stream_bytes, "little"),
            min_timestamp=min_ts,
            max_timestamp=max_ts,
            count=count,
            value_type=value_type,
            value_sum=value_sum,
            min_value=min_value,
            max_value=max_value,
            first_value=first_value,
        )

    def to_bytes(self) -> bytes:
        """Serialise the magic and header."""
        fmt = "<" + _VALUE_FORMATS[self.value_type] * 4
        try:
            fixed = _FIXED.pack(
                self.version,
                self.stream_id.to_bytes(16, "little"),
                self.min_timestamp,
                self.max_timestamp,
                self.count,
                self.value_type.value,
            )
            values = struct.pack(
                fmt, self.value_sum, self.min_value, self.max_value, self.first_value
            )
        except struct.error as exc:
            raise ValueError(f"header field out of range: {exc}") from exc
        return MAGIC + fixed + values

    def record(self, timestamp: int, value: Number) -> None:
        """Account for one more entry in the counts, ranges and sums."""
        if not 0 <= timestamp <= U64_MASK:
            raise OverflowError(f"timestamp {timestamp} does not fit in 64 bits")
        value = self.value_type.coerce(value)
        if self.count >= _U32_MAX:
            raise OverflowError("header entry count is full")

        if self.count == 0:
            self.first_value = value
            self.min_timestamp = timestamp
            self.max_timestamp = timestamp
            self.min_value = value
            self.max_value = value

        self.count += 1
        self.max_timestamp = max(self.max_timestamp, timestamp)
        self.min_timestamp = min(self.min_timestamp, timestamp)

        self.value_sum = _add(self.value_type, self.value_sum, value)
        self.max_value = max(self.max_value, value)
        self.min_value = min(self.min_value, value)