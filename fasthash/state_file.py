"""Line-oriented snapshot file holding one ``Entry`` per line.

Format: ``rel_path:size:tstamp:hash_hex``. Blank lines and ``#`` comments are
ignored. Loading never fails on bad content; problems come back as warnings so
that a truncated or hand-edited snapshot degrades to unknown metadata instead
of blocking the next run.
"""

from __future__ import annotations

import logging
import os
import stat
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from fasthash.errors import StateFileError
from fasthash.models import Entry, Index, sorted_entries


logger = logging.getLogger(__name__)

FIELD_COUNT = 4
MAX_U64 = 2**64 - 1


@dataclass(slots=True)
class LoadResult:
    index: Index = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)


def _parse_u64(value: str) -> int | None:
    if not value.isascii() or not value.isdigit():
        return None
    number = int(value)
    if number > MAX_U64:
        return None
    return number


def parse_lines(raw_lines: list[bytes]) -> LoadResult:
    result = LoadResult()

    for lineno, raw in enumerate(raw_lines, start=1):
        try:
            line = raw.decode("utf-8").strip()
        except UnicodeDecodeError as exc:
            result.warnings.append(f"invalid line {lineno} (not UTF-8): {exc.reason}")
            continue
        if not line or line.startswith("#"):
            continue

        parts = line.split(":", FIELD_COUNT - 1)
        if len(parts) != FIELD_COUNT:
            result.warnings.append(f"invalid format at line {lineno}: {line}")
            continue

        rel_path, size_text, tstamp_text, hash_hex = parts
        size = _parse_u64(size_text)
        if size is None:
            result.warnings.append(f"invalid size at line {lineno}, using 0: {size_text!r}")
        tstamp = _parse_u64(tstamp_text)
        if tstamp is None:
            result.warnings.append(f"invalid timestamp at line {lineno}, using 0: {tstamp_text!r}")

        if rel_path in result.index:
            result.warnings.append(f"duplicate path at line {lineno}, keeping the later entry: {rel_path}")

        result.index[rel_path] = Entry(
            rel_path=rel_path,
            size=size or 0,
            tstamp=tstamp or 0,
            hash_hex=hash_hex,
        )

    return result


def load_index(path: Path) -> LoadResult:
    if not path.exists():
        return LoadResult()

    try:
        data = path.read_bytes()
    except OSError as exc:
        return LoadResult(warnings=[f"failed to read previous state {path}: {exc.strerror or exc}"])

    result = parse_lines(data.splitlines())
    logger.debug("Loaded %d entries from %s", len(result.index), path)
    return result


def render_index(index: Index) -> str:
    return "".join(f"{entry.to_line()}\n" for entry in sorted_entries(index))


def _file_mode(path: Path) -> int:
    try:
        return stat.S_IMODE(path.stat().st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask


def save_index(path: Path, index: Index) -> None:
    """Replace the snapshot at ``path`` (or at the file a symlink points to).

    The new file keeps the old file's permission bits; a fresh file gets the
    umask default.
    """
    destination = path.resolve() if path.is_symlink() else path
    parent = destination.parent
    try:
        parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise StateFileError(parent, "Failed to create state file directory") from exc

    payload = render_index(index).encode("utf-8")
    tmp_name: str | None = None
    try:
        mode = _file_mode(destination)
        with tempfile.NamedTemporaryFile(
            "wb", dir=parent, prefix=f".{destination.name}.", suffix=".tmp", delete=False
        ) as fh:
            tmp_name = fh.name
            fh.write(payload)
            fh.flush()
            os.fsync(fh.fileno())
        os.chmod(tmp_name, mode)
        os.replace(tmp_name, destination)
    except OSError as exc:
        if tmp_name is not None:
            Path(tmp_name).unlink(missing_ok=True)
        raise StateFileError(path, "Failed to write state file") from exc

    logger.debug("Wrote %d entries to %s", len(index), destination)
