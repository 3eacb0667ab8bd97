from itertools import islice

import pytest

from tachyonstore.header import Header, ValueType
from tachyonstore.int_v2 import IntCompressorV2, IntDecompressorV2
from tachyonstore.page_cache import PAGE_SIZE, PageCache, SequentialPageReader


@pytest.fixture
def data_file(tmp_path):
    data = bytes((i * 7) % 251 for i in range(3 * PAGE_SIZE + 100))
    path = tmp_path / "data.ty"
    path.write_bytes(data)
    return path, data


def test_register_assigns_sequential_ids(tmp_path):
    cache = PageCache(10)
    first = cache.register_or_get_file_id(tmp_path / "a.ty")
    second = cache.register_or_get_file_id(tmp_path / "b.ty")
    again = cache.register_or_get_file_id(str(tmp_path / "a.ty"))
    assert (first, second, again) == (0, 1, 0)


def test_read_whole_file(data_file):
    path, data = data_file
    cache = PageCache(10)
    file_id = cache.register_or_get_file_id(path)
    assert cache.read(file_id, 0, len(data)) == data


def test_read_with_single_frame_evicts_correctly(data_file):
    path, data = data_file
    cache = PageCache(1)
    file_id = cache.register_or_get_file_id(path)
    offset = PAGE_SIZE - 10
    assert cache.read(file_id, offset, 2 * PAGE_SIZE) == data[offset : offset + 2 * PAGE_SIZE]
    assert cache.read(file_id, 5, 20) == data[5:25]


def test_read_past_end_is_short(data_file):
    path, data = data_file
    cache = PageCache(4)
    file_id = cache.register_or_get_file_id(path)
    assert cache.read(file_id, len(data) - 50, 500) == data[-50:]
    assert cache.read(file_id, len(data) + PAGE_SIZE, 10) == b""


def test_read_unknown_file_id_raises():
    cache = PageCache(2)
    with pytest.raises(KeyError):
        cache.read(3, 0, 10)


def test_zero_frames_rejected():
    with pytest.raises(ValueError):
        PageCache(0)


def test_sequential_read_in_small_steps(data_file):
    path, data = data_file
    cache = PageCache(10)
    file_id = cache.register_or_get_file_id(path)
    reader = SequentialPageReader(cache, file_id, 0)
    pieces = []
    while chunk := reader.read(8):
        pieces.append(chunk)
    assert b"".join(pieces) == data


def test_sequential_readers_share_single_frame(data_file):
    path, data = data_file
    cache = PageCache(1)
    file_id = cache.register_or_get_file_id(path)
    first = SequentialPageReader(cache, file_id, 0)
    second = SequentialPageReader(cache, file_id, 2 * PAGE_SIZE)
    got_first, got_second = bytearray(), bytearray()
    for _ in range(40):
        got_first += first.read(100)
        got_second += second.read(100)
    assert bytes(got_first) == data[:4000]
    assert bytes(got_second) == data[2 * PAGE_SIZE :][:4000]


def test_sequential_read_from_offset_stops_at_end(data_file):
    path, data = data_file
    cache = PageCache(3)
    file_id = cache.register_or_get_file_id(path)
    reader = SequentialPageReader(cache, file_id, len(data) - 30)
    assert reader.read(100) == data[-30:]
    assert reader.read(100) == b""


def test_decompressor_reads_through_page_cache(tmp_path):
    header = Header.empty(0, 0, ValueType.UINTEGER64)
    path = tmp_path / "stream.ty"
    pairs = [(i, i * 3) for i in range(1, 1001)]
    with open(path, "wb") as handle:
        compressor = IntCompressorV2(handle, header)
        for timestamp, value in pairs:
            compressor.consume(timestamp, value)
        compressor.flush_all()

    cache = PageCache(2)
    file_id = cache.register_or_get_file_id(path)
    reader = SequentialPageReader(cache, file_id, 0)
    decoded = list(islice(IntDecompressorV2(reader, header), len(pairs)))
    assert decoded == pairs