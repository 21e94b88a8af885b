from __future__ import annotations

import logging
import os
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Callable, Sequence

from fasthash.config import HashAlgorithm
from fasthash.errors import IndexingError
from fasthash.filters import relative_posix
from fasthash.hashing import hash_file
from fasthash.models import Entry


logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int], None]


def default_workers() -> int:
    return os.cpu_count() or 1


def file_timestamp(stat_result: os.stat_result) -> int:
    """Creation time where the platform reports one, else modification time.

    ``os.stat`` exposes ``st_birthtime`` on macOS, the BSDs and Windows only.
    On Linux the stored timestamp is therefore the mtime, even on filesystems
    that record a creation time through ``statx``.
    """
    created = getattr(stat_result, "st_birthtime", None)
    value = created if created is not None else stat_result.st_mtime
    if value is None or value < 0:
        return 0
    return int(value)


def hash_one(root: Path, abs_path: Path, algorithm: HashAlgorithm) -> Entry:
    rel_path = relative_posix(root, abs_path)

    try:
        stat_result = abs_path.stat()
    except OSError as exc:
        raise IndexingError(abs_path, "Failed to read metadata") from exc

    try:
        hash_hex = hash_file(abs_path, algorithm)
    except OSError as exc:
        raise IndexingError(abs_path, f"Failed to hash ({algorithm.value})") from exc

    return Entry(
        rel_path=rel_path,
        size=stat_result.st_size,
        tstamp=file_timestamp(stat_result),
        hash_hex=hash_hex,
    )


def hash_files(
    root: Path,
    paths: Sequence[Path],
    algorithm: HashAlgorithm,
    *,
    workers: int | None = None,
    on_progress: ProgressCallback | None = None,
) -> list[Entry]:
    """Hash every path on a thread pool and return entries sorted by path.

    The first failure cancels the remaining work and propagates; callers never
    see a partial result.
    """
    if not paths:
        return []

    max_workers = max(1, workers or default_workers())
    entries: list[Entry] = []

    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="fasthash-hash") as executor:
        futures: dict[Future[Entry], Path] = {
            executor.submit(hash_one, root, path, algorithm): path for path in paths
        }
        try:
            for future in as_completed(futures):
                entry = future.result()
                entries.append(entry)
                logger.debug("Hashed %s (%d bytes)", entry.rel_path, entry.size)
                if on_progress is not None:
                    on_progress(entry.rel_path, entry.size)
        except Exception:
            for future in futures:
                future.cancel()
            raise

    entries.sort(key=lambda entry: entry.rel_path)
    return entries
