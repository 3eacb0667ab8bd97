"""Data files of one stream: built in memory, or persisted a group at a time."""

from __future__ import annotations

import dataclasses
import os
import struct
from itertools import islice
from pathlib import Path
from typing import Iterable

from .codec import MAX_NUM_ENTRIES, U64_MASK
from .cursor import Cursor, ScanHint
from .header import HEADER_BYTES, Header, Number, ValueType
from .int_v2 import IntCompressorV2
from .page_cache import PageCache

_READ_CACHE_FRAMES = 100


def _raw_bits(value_type: ValueType, value: Number) -> int:
    """The 64-bit pattern the compressor stores for ``value``."""
    if value_type is ValueType.FLOAT64:
        return struct.unpack("<Q", struct.pack("<d", value))[0]
    return value & U64_MASK


class TimeDataFile:
    """The entries of one file held in memory, together with their header."""

    def __init__(self, version: int, stream_id: int, value_type: ValueType) -> None:
        self.header = Header.empty(version, stream_id, value_type)
        self.timestamps: list[int] = []
        self.values: list[Number] = []

    @classmethod
    def read(cls, path: str | os.PathLike) -> TimeDataFile:
        """Load every entry of the data file at ``path``."""
        page_cache = PageCache(_READ_CACHE_FRAMES)
        file_id = page_cache.register_or_get_file_id(path)
        header = Header.from_bytes(page_cache.read(file_id, 0, HEADER_BYTES))

        data_file = cls(header.version, header.stream_id, header.value_type)
        data_file.header = header
        if header.count == 0:
            return data_file

        cursor = Cursor([path], 0, U64_MASK, page_cache, ScanHint.NONE)
        for timestamp, value in [cursor.fetch(), *cursor]:
            data_file.timestamps.append(timestamp)
            data_file.values.append(value)
        return data_file

    def write(self, path: str | os.PathLike) -> int:
        """Write the header and compressed entries to ``path``; return the bytes written."""
        value_type = self.header.value_type
        with open(path, "wb") as handle:
            handle.write(self.header.to_bytes())
            compressor = IntCompressorV2(handle, self.header)
            written = sum(
                compressor.consume(timestamp, _raw_bits(value_type, value))
                for timestamp, value in islice(zip(self.timestamps, self.values), 1, None)
            )
            written += compressor.flush_all()
        return HEADER_BYTES + written

    def append(self, timestamp: int, value: Number) -> None:
        """Add one entry, updating the header's statistics."""
        value = self.header.value_type.coerce(value)
        self.header.record(timestamp, value)
        self.timestamps.append(timestamp)
        self.values.append(value)

    def extend(self, batch: Iterable[tuple[int, Number]]) -> int:
        """Append entries until the file is full; return how many were taken."""
        space = max(MAX_NUM_ENTRIES - len(self), 0)
        taken = 0
        for timestamp, value in islice(batch, space):
            self.append(timestamp, value)
            taken += 1
        return taken

    def file_name(self) -> str:
        """The file's name on disk: its last timestamp."""
        return str(self.header.max_timestamp)

    def __len__(self) -> int:
        return self.header.count


class _HeaderPrefixedWriter:
    """Appends bytes to a file, first rewriting the current header at its start."""

    def __init__(self, header: Header, path: Path) -> None:
        self._header = header
        self._path = path
        self._path.touch(exist_ok=True)

    def write(self, data: bytes) -> int:
        with open(self._path, "r+b") as handle:
            handle.write(self._header.to_bytes())
            handle.seek(0, os.SEEK_END)
            handle.write(data)
        return len(data)


class PartiallyPersistentDataFile:
    """A data file whose compressed entries reach disk as soon as a group is complete.

    It must be started with :meth:`lazy_init` for a new file or
    :meth:`partial_init` to continue an existing one before entries are written.
    Continuing a file is exact when its compressed part ends on a group
    boundary, that is when its entry count is one more than a multiple of 64.
    """

    def __init__(
        self,
        version: int,
        stream_id: int,
        value_type: ValueType,
        path: str | os.PathLike,
    ) -> None:
        self.header = Header.empty(version, stream_id, value_type)
        self.path = Path(path)
        self._writer: _HeaderPrefixedWriter | None = None
        self._compressor: IntCompressorV2 | None = None

    def lazy_init(self, timestamp: int, value: Number) -> PartiallyPersistentDataFile:
        """Start a new file whose first entry is ``(timestamp, value)``."""
        self.header.record(timestamp, value)
        self._writer = _HeaderPrefixedWriter(self.header, self.path)
        self._compressor = IntCompressorV2(self._writer, self.header)
        return self

    def partial_init(self, timestamp: int, value: Number) -> PartiallyPersistentDataFile:
        """Reopen the file at ``path`` and add ``(timestamp, value)`` after its entries."""
        data_file = TimeDataFile.read(self.path)
        self.header = dataclasses.replace(data_file.header)
        self._writer = _HeaderPrefixedWriter(self.header, self.path)
        self._compressor = IntCompressorV2.from_partial(self._writer, data_file)
        self.write(timestamp, value)
        return self

    def _require_compressor(self) -> IntCompressorV2:
        if self._compressor is None:
            raise RuntimeError("compressor not initialised")
        return self._compressor

    def write(self, timestamp: int, value: Number) -> None:
        """Add one entry."""
        compressor = self._require_compressor()
        value_type = self.header.value_type
        value = value_type.coerce(value)
        self.header.record(timestamp, value)
        compressor.consume(timestamp, _raw_bits(value_type, value))

    def flush(self) -> None:
        """Persist every buffered entry and the current header."""
        compressor = self._require_compressor()
        compressor.flush_all()
        self._writer.write(b"")

    def __len__(self) -> int:
        return self.header.count