import os

import pytest

from tachyonstore.codec import MAX_NUM_ENTRIES
from tachyonstore.datafile import PartiallyPersistentDataFile, TimeDataFile
from tachyonstore.header import CorruptFileError, ValueType, Vector
from tachyonstore.page_cache import PageCache, SequentialPageReader

U32_MAX = (1 << 32) - 1


def generate_ty_file(path, timestamps, values, value_type=ValueType.UINTEGER64):
    model = TimeDataFile(0, 0, value_type)
    for timestamp, value in zip(timestamps, values):
        model.append(timestamp, value)
    size = model.write(path)
    return model, size


def test_write_and_read_back(tmp_path):
    path = tmp_path / "cool.ty"
    model, size = generate_ty_file(path, range(10), [i + 10 for i in range(10)])
    assert size == os.path.getsize(path)

    loaded = TimeDataFile.read(path)
    assert loaded.timestamps == list(range(10))
    assert loaded.values == list(range(10, 20))
    assert loaded.header == model.header
    assert len(loaded) == 10


def test_single_valued_file(tmp_path):
    path = tmp_path / "1.ty"
    generate_ty_file(path, [1], [2])
    loaded = TimeDataFile.read(path)
    assert loaded.timestamps == [1]
    assert loaded.values == [2]


def test_empty_file_round_trip(tmp_path):
    path = tmp_path / "empty.ty"
    model = TimeDataFile(3, 7, ValueType.UINTEGER64)
    model.write(path)
    loaded = TimeDataFile.read(path)
    assert loaded.timestamps == []
    assert loaded.values == []
    assert loaded.header.version == 3
    assert loaded.header.stream_id == 7


def test_compression_large(tmp_path):
    path = tmp_path / "1.ty"
    timestamps = list(range(1, 100000))
    values = [i * 200000 for i in timestamps]
    generate_ty_file(path, timestamps, values)
    loaded = TimeDataFile.read(path)
    assert loaded.timestamps == timestamps
    assert loaded.values == values


def test_compression_2(tmp_path):
    path = tmp_path / "1.ty"
    timestamps = [1, 257, 69000, U32_MAX + 69000]
    values = [1, 257, 69000, U32_MAX + 69000]
    generate_ty_file(path, timestamps, values)
    loaded = TimeDataFile.read(path)
    assert loaded.timestamps == timestamps
    assert loaded.values == values


def test_compression_negative_deltas(tmp_path):
    path = tmp_path / "1.ty"
    timestamps = [1, 25, 27, 35, U32_MAX, U32_MAX + 69000, U32_MAX + 69001]
    values = [100, 3, 23, 0, 100, U32_MAX, 1]
    generate_ty_file(path, timestamps, values)
    loaded = TimeDataFile.read(path)
    assert loaded.timestamps == timestamps
    assert loaded.values == values


def test_float_values_round_trip(tmp_path):
    path = tmp_path / "f.ty"
    values = [1.5, -2.25, 1e300, 0.0, 3.0]
    model, _ = generate_ty_file(path, range(10, 15), values, ValueType.FLOAT64)
    loaded = TimeDataFile.read(path)
    assert loaded.values == values
    assert loaded.header.value_sum == model.header.value_sum
    assert loaded.header.min_value == -2.25


def test_signed_values_round_trip(tmp_path):
    path = tmp_path / "i.ty"
    values = [-5, 7, -1000, 0, 42]
    generate_ty_file(path, range(5), values, ValueType.INTEGER64)
    loaded = TimeDataFile.read(path)
    assert loaded.values == values
    assert loaded.header.value_sum == sum(values)


def test_read_whole_file_through_page_cache(tmp_path):
    source = tmp_path / "test.ty"
    copy = tmp_path / "expected.ty"
    _, file_size = generate_ty_file(source, range(100000), [i + 10 for i in range(100000)])

    page_cache = PageCache(10)
    file_id = page_cache.register_or_get_file_id(source)
    assert file_id == 0
    data = page_cache.read(file_id, 0, file_size)
    assert len(data) == file_size
    copy.write_bytes(data)

    loaded = TimeDataFile.read(copy)
    assert len(loaded.timestamps) == 100000
    assert loaded.timestamps == list(range(100000))
    assert loaded.values == [i + 10 for i in range(100000)]


def test_read_sequential_whole_file(tmp_path):
    source = tmp_path / "test.ty"
    copy = tmp_path / "expected.ty"
    _, file_size = generate_ty_file(source, range(100000), [i + 10 for i in range(100000)])

    page_cache = PageCache(10)
    file_id = page_cache.register_or_get_file_id(source)
    assert file_id == 0
    reader = SequentialPageReader(page_cache, file_id, 0)

    data = bytearray()
    while len(data) < file_size:
        data += reader.read(min(8, file_size - len(data)))
    copy.write_bytes(bytes(data))

    loaded = TimeDataFile.read(copy)
    assert len(loaded.timestamps) == 100000
    assert loaded.timestamps == list(range(100000))
    assert loaded.values == [i + 10 for i in range(100000)]


def test_append_tracks_header_and_file_name():
    model = TimeDataFile(0, 0, ValueType.UINTEGER64)
    model.append(5, 1)
    model.append(9, 2)
    model.append(7, 3)
    assert model.file_name() == "9"
    assert model.header.min_timestamp == 5
    assert model.header.value_sum == 6
    assert model.header.first_value == 1
    assert len(model) == 3


def test_append_rejects_wrong_value_type():
    model = TimeDataFile(0, 0, ValueType.UINTEGER64)
    with pytest.raises(TypeError):
        model.append(1, 2.5)
    assert len(model) == 0


def test_extend_stops_when_full():
    model = TimeDataFile(0, 0, ValueType.UINTEGER64)
    batch = [Vector(i, i) for i in range(MAX_NUM_ENTRIES + 5)]
    assert model.extend(batch) == MAX_NUM_ENTRIES
    assert len(model) == MAX_NUM_ENTRIES
    assert model.extend([Vector(1, 1)]) == 0


def test_extend_takes_small_batch():
    model = TimeDataFile(0, 0, ValueType.UINTEGER64)
    assert model.extend([(1, 10), (2, 20), (3, 30)]) == 3
    assert model.timestamps == [1, 2, 3]
    assert model.values == [10, 20, 30]


def test_persistent_write_before_init_fails(tmp_path):
    pfile = PartiallyPersistentDataFile(0, 0, ValueType.UINTEGER64, tmp_path / "0.ty")
    with pytest.raises(RuntimeError):
        pfile.write(1, 1)
    with pytest.raises(RuntimeError):
        pfile.flush()


def test_persistent_lazy_init_round_trip(tmp_path):
    path = tmp_path / "0.ty"
    pfile = PartiallyPersistentDataFile(0, 0, ValueType.UINTEGER64, path).lazy_init(0, 0)
    for i in range(1, 100):
        pfile.write(i, i * 1000)
    pfile.flush()
    assert len(pfile) == 100

    loaded = TimeDataFile.read(path)
    assert loaded.timestamps == list(range(100))
    assert loaded.values == [i * 1000 for i in range(100)]
    assert loaded.header == pfile.header


def test_persistent_written_in_steps(tmp_path):
    path = tmp_path / "0.ty"
    first_batch = 193

    pfile = PartiallyPersistentDataFile(0, 0, ValueType.UINTEGER64, path).lazy_init(0, 0)
    for i in range(1, first_batch):
        pfile.write(i, i * 1000)
    pfile.flush()

    loaded = TimeDataFile.read(path)
    assert loaded.timestamps == list(range(first_batch))
    assert loaded.values == [i * 1000 for i in range(first_batch)]

    resumed = PartiallyPersistentDataFile(0, 0, ValueType.UINTEGER64, path).partial_init(
        first_batch, first_batch * 1000
    )
    for i in range(first_batch + 1, 300):
        resumed.write(i, i * 1000)
    resumed.flush()
    assert len(resumed) == 300

    loaded = TimeDataFile.read(path)
    assert loaded.timestamps == list(range(300))
    assert loaded.values == [i * 1000 for i in range(300)]
    assert loaded.header.max_timestamp == 299


def test_partial_init_on_empty_file_fails(tmp_path):
    path = tmp_path / "0.ty"
    path.touch()
    pfile = PartiallyPersistentDataFile(0, 0, ValueType.UINTEGER64, path)
    with pytest.raises(CorruptFileError):
        pfile.partial_init(1, 1)