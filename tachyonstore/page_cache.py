"""A small page cache over data files, with sequential readers on top of it."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from .idlookup import IDLookup

PAGE_SIZE = 4_096


@dataclass
class _Page:
    file_id: int
    page_id: int
    data: bytes


def _page_key(file_id: int, page_id: int) -> int:
    return (file_id << 32) | page_id


class PageCache:
    """Caches fixed-size pages of registered files in a ring of frames.

    Frames are reused in round-robin order. Pages near the end of a file hold
    only the bytes that exist, so reads stop short at end of file.
    """

    def __init__(self, num_frames: int) -> None:
        if num_frames <= 0:
            raise ValueError("a page cache needs at least one frame")
        self._frames: list[_Page | None] = [None] * num_frames
        self._mapping: IDLookup[int] = IDLookup(2 * num_frames)
        self._path_to_id: dict[Path, int] = {}
        self._id_to_path: dict[int, Path] = {}
        self._next_frame = 0

    def register_or_get_file_id(self, path: str | os.PathLike) -> int:
        """Return the id of ``path``, assigning the next free id on first use."""
        path = Path(path)
        file_id = self._path_to_id.get(path)
        if file_id is None:
            file_id = len(self._path_to_id)
            self._path_to_id[path] = file_id
            self._id_to_path[file_id] = path
        return file_id

    def _load_page(self, file_id: int, page_id: int) -> int:
        """Make sure the page is resident and return the frame holding it."""
        key = _page_key(file_id, page_id)
        frame_id = self._mapping.get(key)
        if frame_id is not None:
            return frame_id

        try:
            path = self._id_to_path[file_id]
        except KeyError:
            raise KeyError(f"unknown file id {file_id}") from None
        with open(path, "rb") as handle:
            handle.seek(page_id * PAGE_SIZE)
            data = handle.read(PAGE_SIZE)

        frame_id = self._next_frame
        self._next_frame = (frame_id + 1) % len(self._frames)

        evicted = self._frames[frame_id]
        if evicted is not None:
            self._mapping.remove(_page_key(evicted.file_id, evicted.page_id))

        self._frames[frame_id] = _Page(file_id, page_id, data)
        self._mapping.insert(key, frame_id)
        return frame_id

    def _frame(self, frame_id: int) -> _Page | None:
        return self._frames[frame_id]

    def read(self, file_id: int, offset: int, size: int) -> bytes:
        """Read up to ``size`` bytes at ``offset``; fewer are returned at end of file."""
        if offset < 0 or size < 0:
            raise ValueError("offset and size must not be negative")
        out = bytearray()
        while len(out) < size:
            page = self._frames[self._load_page(file_id, offset // PAGE_SIZE)]
            start = offset % PAGE_SIZE
            chunk = page.data[start : start + size - len(out)]
            out += chunk
            offset += len(chunk)
            if len(out) < size and len(page.data) < PAGE_SIZE:
                break
        return bytes(out)


class SequentialPageReader:
    """A file-like reader that walks one file through a shared page cache."""

    def __init__(self, page_cache: PageCache, file_id: int, start_offset: int) -> None:
        if start_offset < 0:
            raise ValueError("start offset must not be negative")
        self._page_cache = page_cache
        self._file_id = file_id
        self._offset = start_offset
        self._frame_id = page_cache._load_page(file_id, start_offset // PAGE_SIZE)

    def _current_page(self) -> _Page:
        page_id = self._offset // PAGE_SIZE
        page = self._page_cache._frame(self._frame_id)
        if page is None or page.file_id != self._file_id or page.page_id != page_id:
            self._frame_id = self._page_cache._load_page(self._file_id, page_id)
            page = self._page_cache._frame(self._frame_id)
        return page

    def read(self, size: int) -> bytes:
        """Read up to ``size`` bytes and advance; an empty result means end of file."""
        if size < 0:
            raise ValueError("size must not be negative")
        out = bytearray()
        while len(out) < size:
            page = self._current_page()
            start = self._offset % PAGE_SIZE
            wanted = size - len(out)
            chunk = page.data[start : start + wanted]
            out += chunk
            self._offset += len(chunk)
            if len(chunk) < wanted and start + len(chunk) < PAGE_SIZE:
                break
        return bytes(out)