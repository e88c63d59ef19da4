"""Shared fixtures for the content cache tests."""

import io
import os
from unittest.mock import patch

import pytest

from pagecache.runtime import BlockingRuntime


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def write_file(path, text, mtime=None):
    """Write text and optionally pin the file's mtime (seconds)."""
    path.write_text(text, encoding="utf-8")
    if mtime is not None:
        os.utime(path, (mtime, mtime))
    return path


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def runtime():
    rt = BlockingRuntime(max_workers=2)
    yield rt
    rt.shutdown()


@pytest.fixture
def content_reads():
    """Record every content read done by pagecache.digest.load_file."""
    reads = []

    class CountingFileIO(io.FileIO):
        def read(self, size=-1):
            reads.append(self.name)
            return super().read(size)

    def counting_open(path, mode="r"):
        return CountingFileIO(path, mode.replace("b", ""))

    with patch("pagecache.digest.open", counting_open, create=True):
        yield reads
