"""Storage layer for time-series data: compressed data files, a page cache and range cursors."""

__version__ = "0.1.0"
__all__ = [
    "codec",
    "idlookup",
    "google",
    "int_v1",
    "float_v1",
    "int_v2",
    "page_cache",
    "header",
    "cursor",
    "datafile",
]