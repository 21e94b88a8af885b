from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Callable, Protocol

import blake3
import xxhash

from fasthash.config import HashAlgorithm


CHUNK_SIZE = 1024 * 1024


class StreamingHasher(Protocol):
    def update(self, data: bytes, /) -> object: ...

    def hexdigest(self) -> str: ...


def new_hasher(algorithm: HashAlgorithm) -> StreamingHasher:
    if algorithm is HashAlgorithm.BLAKE3:
        return blake3.blake3()
    if algorithm is HashAlgorithm.XXH3:
        return xxhash.xxh3_128()
    if algorithm is HashAlgorithm.SHA256:
        return hashlib.sha256()
    raise ValueError(f"Unsupported hash algorithm: {algorithm!r}")


def hash_file(
    path: Path,
    algorithm: HashAlgorithm,
    chunk_size: int = CHUNK_SIZE,
    *,
    on_chunk: Callable[[int], None] | None = None,
) -> str:
    digest = new_hasher(algorithm)
    with path.open("rb") as fh:
        while True:
            chunk = fh.read(chunk_size)
            if not chunk:
                break
            digest.update(chunk)
            if on_chunk is not None:
                on_chunk(len(chunk))
    return digest.hexdigest().lower()
