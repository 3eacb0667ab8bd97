import pytest

from tachyonstore.idlookup import IDLookup


def test_get():
    hm = IDLookup(10)
    assert hm.get(4) is None

    hm.insert(45, 234)
    hm.insert(15, 123)
    hm.insert(25, 23)
    hm.insert(45, 1)
    hm.insert(43, 22)
    assert hm.get(25) == 23
    assert hm.get(45) == 1
    assert hm.get(43) == 22
    assert len(hm) == 4

    hm.remove(45)
    assert len(hm) == 3
    assert hm.get(45) is None
    assert hm.get(15) == 123


def test_insert_remove():
    hm = IDLookup(10)
    hm.insert(4, 5)

    # all land in the same bucket
    hm.insert(14, 3)
    hm.insert(24, 5)
    hm.insert(34, 8)
    hm.insert(44, 9)

    assert hm.get(24) == 5
    assert hm.get(44) == 9
    assert len(hm) == 5

    hm.remove(4)
    assert hm.get(4) is None
    assert hm.get(14) == 3

    hm.remove(44)
    assert hm.get(44) is None
    assert hm.get(14) == 3
    assert hm.get(34) == 8

    hm.remove(24)
    assert hm.get(24) is None
    assert hm.get(14) == 3
    assert hm.get(34) == 8

    hm.remove(14)
    hm.remove(34)
    assert len(hm) == 0
    assert hm.get(34) is None
    assert hm.get(14) is None

    hm.insert(4, 23)
    assert hm.get(4) == 23
    hm.insert(4, 24)
    assert hm.get(4) == 24

    hm.remove(4)
    assert hm.get(4) is None
    assert len(hm) == 0


def test_remove_missing_key_raises():
    hm = IDLookup(3)
    hm.insert(1, "a")
    with pytest.raises(KeyError):
        hm.remove(4)
    assert len(hm) == 1


def test_zero_capacity_rejected():
    with pytest.raises(ValueError):
        IDLookup(0)


def test_large_keys():
    hm = IDLookup(20)
    key = (7 << 32) | 3
    hm.insert(key, 11)
    assert hm.get(key) == 11
    assert hm.get(3) is None