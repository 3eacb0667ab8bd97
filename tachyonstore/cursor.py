"""Range scans over a sequence of data files through a shared page cache."""

from __future__ import annotations

import os
import struct
from enum import Enum
from typing import Sequence

from .header import HEADER_BYTES, Header, Number, ValueType, Vector
from .int_v2 import IntDecompressorV2
from .page_cache import PageCache, SequentialPageReader


class ScanHint(Enum):
    """Aggregate a scan will compute, letting whole files be summarised by their header."""

    NONE = "none"
    SUM = "sum"
    COUNT = "count"
    MIN = "min"
    MAX = "max"


def _from_raw(value_type: ValueType, raw: int) -> Number:
    """Interpret a decompressed 64-bit pattern as a value of ``value_type``."""
    if value_type is ValueType.UINTEGER64:
        return raw
    if value_type is ValueType.INTEGER64:
        return raw - (1 << 64) if raw >> 63 else raw
    return struct.unpack("<d", struct.pack("<Q", raw))[0]


class Cursor:
    """Iterates over the entries of consecutive files whose timestamps lie in ``[start, end]``.

    The first file must hold at least one timestamp not below ``start``. The
    entry the cursor stands on is available from :meth:`fetch`; iterating
    yields the entries that follow it. With a scan hint other than
    ``ScanHint.NONE``, a file lying entirely inside the range is reported as a
    single entry at its last timestamp carrying the file's aggregate.
    """

    def __init__(
        self,
        file_paths: Sequence[str | os.PathLike],
        start: int,
        end: int,
        page_cache: PageCache,
        scan_hint: ScanHint,
    ) -> None:
        if not file_paths:
            raise ValueError("a cursor needs at least one file")
        if start > end:
            raise ValueError(f"start {start} is after end {end}")

        self._file_paths = list(file_paths)
        self._file_index = 0
        self._start = start
        self._end = end
        self._page_cache = page_cache
        self._scan_hint = scan_hint
        self._is_done = False

        self._open_file(self._file_paths[0])
        self._use_query_hint_for_value(self._value)

        if self._hint_covers_file():
            self._use_query_hint()

        while self._timestamp < start:
            vector = self._advance()
            if vector is None:
                raise ValueError(
                    f"the first file does not reach the start timestamp {start}"
                )
            self._timestamp = vector.timestamp
            self._use_query_hint_for_value(vector.value)

    def _open_file(self, path: str | os.PathLike) -> None:
        self._file_id = self._page_cache.register_or_get_file_id(path)
        self._header = Header.from_bytes(
            self._page_cache.read(self._file_id, 0, HEADER_BYTES)
        )
        self._load_state()

    def _load_state(self) -> None:
        self._timestamp = self._header.min_timestamp
        self._value = self._header.first_value
        self._values_read = 1
        self._decompressor = IntDecompressorV2(
            SequentialPageReader(self._page_cache, self._file_id, HEADER_BYTES),
            self._header,
        )

    def _hint_covers_file(self) -> bool:
        return (
            self._scan_hint is not ScanHint.NONE
            and self._start <= self._header.min_timestamp
            and self._header.max_timestamp <= self._end
        )

    def _use_query_hint(self) -> None:
        header = self._header
        self._timestamp = header.max_timestamp
        if self._scan_hint is ScanHint.SUM:
            self._value = header.value_sum
        elif self._scan_hint is ScanHint.COUNT:
            self._value = header.value_type.coerce(header.count)
        elif self._scan_hint is ScanHint.MIN:
            self._value = header.min_value
        elif self._scan_hint is ScanHint.MAX:
            self._value = header.max_value
        else:
            raise ValueError("no scan hint to apply")
        self._values_read = header.count

    def _use_query_hint_for_value(self, value: Number) -> None:
        if self._scan_hint is ScanHint.COUNT:
            self._value = self._header.value_type.coerce(1)
        else:
            self._value = value

    def _load_next_file(self) -> bool:
        self._file_index += 1
        if self._file_index == len(self._file_paths):
            return False

        self._file_id = self._page_cache.register_or_get_file_id(
            self._file_paths[self._file_index]
        )
        self._header = Header.from_bytes(
            self._page_cache.read(self._file_id, 0, HEADER_BYTES)
        )
        if self._header.min_timestamp > self._end:
            return False

        self._load_state()
        if self._hint_covers_file():
            self._use_query_hint()
        return True

    def _advance(self) -> Vector | None:
        if self._is_done:
            return None

        if self._values_read == self._header.count:
            if not self._load_next_file():
                self._is_done = True
                return None
            if self._timestamp > self._end:
                raise RuntimeError("file change moved the cursor past the end timestamp")
            return Vector(self._timestamp, self._value)

        try:
            timestamp, raw = next(self._decompressor)
        except StopIteration:
            raise EOFError("data file holds fewer entries than its header states") from None
        self._timestamp = timestamp
        self._value = _from_raw(self._header.value_type, raw)
        self._use_query_hint_for_value(self._value)

        if self._timestamp > self._end:
            self._is_done = True
            return None
        self._values_read += 1
        return Vector(self._timestamp, self._value)

    def __iter__(self) -> Cursor:
        return self

    def __next__(self) -> Vector:
        vector = self._advance()
        if vector is None:
            raise StopIteration
        return vector

    def fetch(self) -> Vector:
        """The entry the cursor currently stands on; meaningless once exhausted."""
        return Vector(self._timestamp, self._value)

    def is_done(self) -> bool:
        """Whether the cursor has run past its range or its files."""
        return self._is_done

    def value_type(self) -> ValueType:
        """The value type of the file currently being read."""
        return self._header.value_type