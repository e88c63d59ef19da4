"""
Digest Module.

Provides mtime/size/hash fingerprints for change detection of source files.
"""

from __future__ import annotations

import hashlib
import os
from dataclasses import dataclass
from pathlib import Path
from typing import NamedTuple

HASH_BYTES = 16


@dataclass(frozen=True)
class Digest:
    """ファイル状態の指紋（mtime + size + 内容ハッシュ）"""

    mtime: int
    size: int
    hash: int


class Probe(NamedTuple):
    """Result of one digest computation.

    ``contents`` is None when the file content is unchanged since the
    previous digest.
    """

    digest: Digest
    contents: str | None


def content_hash(data: bytes) -> int:
    """128-bit content hash of raw file bytes."""
    return int.from_bytes(
        hashlib.blake2b(data, digest_size=HASH_BYTES).digest(), "big"
    )


def load_file(path: str | Path, digest: Digest | None = None) -> Probe:
    """
    Fingerprint a file and read it only when it may have changed.

    Args:
        path: Source file path
        digest: Digest remembered from the previous check, if any

    Returns:
        Probe(previous digest, None) when size and mtime are unchanged,
        Probe(new digest, None) when only metadata changed,
        Probe(new digest, contents) otherwise.

    Raises:
        OSError: The file cannot be opened, stat'ed or read
        UnicodeDecodeError: The file is not valid UTF-8
    """
    with open(path, "rb") as f:
        stat = os.fstat(f.fileno())
        size = stat.st_size
        mtime = int(stat.st_mtime)

        if digest is not None and digest.size == size and digest.mtime == mtime:
            return Probe(digest, None)

        data = f.read()

    contents = data.decode("utf-8")
    new_digest = Digest(mtime=mtime, size=size, hash=content_hash(data))
    if digest is not None and digest.hash == new_digest.hash:
        return Probe(new_digest, None)

    return Probe(new_digest, contents)
