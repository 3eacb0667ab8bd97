# tachyonstore

The storage layer for time-series data. It writes `(timestamp, value)` streams
to compact data files and reads them back through a shared page cache.

## Modules

- `tachyonstore.header`: `ValueType` (`INTEGER64`, `UINTEGER64`, `FLOAT64`,
  with `coerce` to check a value fits), `Vector` (a `(timestamp, value)` named
  tuple) and `Header`, the fixed 75-byte start of every data file (the magic
  `Tach` followed by version, stream id, timestamp range, entry count, value
  type, and the sum, minimum, maximum and first value). `Header.from_bytes`
  raises `CorruptFileError` on a bad magic or a short buffer.
- `tachyonstore.datafile`:
  - `TimeDataFile` collects entries in memory with `append` and `extend`
    (`extend` stops once the file holds 62,500 entries and returns how many it
    took), writes the whole file with `write(path)` and loads one back with
    `TimeDataFile.read(path)`. `file_name()` is the file's last timestamp.
  - `PartiallyPersistentDataFile` appends to a file on disk as data arrives.
    Start it with `lazy_init(timestamp, value)` for a new file or
    `partial_init(timestamp, value)` to continue an existing one, then call
    `write` and `flush`. Each completed group of compressed entries reaches
    disk at once, with the header rewritten in front of it. Continuing a file
    is exact when its entry count is one more than a multiple of 64.
- `tachyonstore.cursor`: `Cursor` walks the range `[start, end]` across one or
  more data files in order. `fetch()` returns the entry the cursor stands on;
  iterating yields the entries that follow it. A `ScanHint` other than
  `NONE` (`SUM`, `COUNT`, `MIN`, `MAX`) lets a file that lies wholly inside the
  range be reported as a single entry carrying the aggregate from its header;
  with `COUNT`, each single entry carries the value 1.
- `tachyonstore.page_cache`: `PageCache`, a fixed number of 4 KiB frames reused
  in round-robin order, and `SequentialPageReader`, a file-like reader over
  one file through that cache.
- Compression, each with a compressor (`consume`, `flush_all`) and an iterating
  decompressor:
  - `tachyonstore.int_v2`: `IntCompressorV2` / `IntDecompressorV2`, the format
    data files use: zig-zag double deltas, bit-packed in blocks of 16.
    `IntCompressorV2.from_partial` resumes after the entries of a
    `TimeDataFile`.
  - `tachyonstore.int_v1`: `IntCompressorV1` / `IntDecompressorV1`, byte-aligned
    double deltas.
  - `tachyonstore.google`: `GoogleCompressor` / `GoogleDecompressor`, double
    deltas as 7-bit varints.
  - `tachyonstore.float_v1`: `FloatCompressorV1` / `FloatDecompressorV1`, XOR of
    consecutive floats.
- `tachyonstore.codec`: zig-zag encoding, little-endian readers and bit counts.
- `tachyonstore.idlookup`: `IDLookup`, a fixed-capacity chained hash table used
  by the page cache.

## Example

```python
from tachyonstore.cursor import Cursor, ScanHint
from tachyonstore.datafile import TimeDataFile
from tachyonstore.header import ValueType
from tachyonstore.page_cache import PageCache

data = TimeDataFile(0, 0, ValueType.UINTEGER64)
for ts in range(10):
    data.append(ts, ts + 10)
data.write("1.ty")

cursor = Cursor(["1.ty"], 0, 100, PageCache(10), ScanHint.NONE)
for vector in [cursor.fetch(), *cursor]:
    print(vector.timestamp, vector.value)

total = Cursor(["1.ty"], 0, 100, PageCache(10), ScanHint.SUM).fetch().value
print(total)  # 145, taken from the header
```

## What it does not do

This package is the file layer only. It has no query language, no server or
command, and no catalogue of streams: it does not decide where a stream's
files live, when to start a new file, or which files a time range needs.
Callers pass file paths to `Cursor` themselves, in timestamp order.

## Installing and testing

```
pip install .
pip install ".[test]"
pytest
```

It needs Python 3.10 or later and depends only on the standard library.