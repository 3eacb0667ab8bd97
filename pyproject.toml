[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tachyonstore"
version = "0.1.0"
description = "Storage layer for time-series data: compressed data files, a page cache and range cursors"
requires-python = ">=3.10"
dependencies = []
keywords = ["time-series", "database", "storage", "compression", "page-cache"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Database :: Database Engines/Servers",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["tachyonstore"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
