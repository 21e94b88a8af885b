"""Apply a diff to a second directory tree.

Added and updated files are copied with their permission bits and access and
modification times. Deleted files are removed from the target only when the
target path is a regular file. The first failing operation aborts the batch;
earlier operations stay applied.
"""

from __future__ import annotations

import logging
import os
import shutil
import stat
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Sequence

from fasthash.errors import ConfigError, SyncError
from fasthash.models import Change


logger = logging.getLogger(__name__)

ChangeCallback = Callable[[Change], None]


@dataclass(slots=True)
class MirrorResult:
    copied: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


def resolve_target(target: Path) -> Path:
    target = target.expanduser()
    if not target.is_absolute():
        target = Path.cwd() / target
    return target


def check_roots(source: Path, target: Path) -> None:
    """Reject mirroring a tree onto itself or into/out of one of its subtrees."""
    source_real = source.resolve()
    target_real = resolve_target(target).resolve()

    if source_real == target_real:
        raise ConfigError(f"Target cannot be the same as source: {target_real}")
    if target_real.is_relative_to(source_real) or source_real.is_relative_to(target_real):
        raise ConfigError(
            f"Source and target cannot contain each other: {source_real} <-> {target_real}"
        )


def _target_path(target_root: Path, rel_path: str) -> Path:
    # Deletions come from the stored snapshot, which may have been edited by hand.
    parts = [part for part in rel_path.split("/") if part not in ("", ".")]
    if not parts or os.path.isabs(rel_path) or os.path.splitdrive(rel_path)[0] or ".." in parts:
        raise SyncError("resolve", rel_path, "Refusing path outside the mirrored tree")
    return target_root.joinpath(*parts)


def _ensure_dir(path: Path) -> None:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise SyncError("mkdir", path, "Failed to create directory in target") from exc


def copy_with_metadata(src: Path, dst: Path) -> None:
    try:
        src_stat = src.stat()
    except OSError as exc:
        raise SyncError("stat", src, "Failed to read source metadata") from exc

    try:
        shutil.copyfile(src, dst)
    except OSError as exc:
        raise SyncError("copy", dst, f"Failed copying from {src}") from exc

    mode = stat.S_IMODE(src_stat.st_mode)
    try:
        os.chmod(dst, mode)
    except OSError as exc:
        raise SyncError("chmod", dst, f"Failed to apply permissions (mode {mode:o})") from exc

    try:
        os.utime(dst, ns=(src_stat.st_atime_ns, src_stat.st_mtime_ns))
    except OSError as exc:
        raise SyncError("utime", dst, "Failed to apply timestamps") from exc


def delete_target_file(path: Path) -> bool:
    """Remove ``path`` if it is a regular file. Anything else is left alone."""
    try:
        if not path.is_file():
            return False
        path.unlink()
    except FileNotFoundError:
        return False
    except OSError as exc:
        raise SyncError("delete", path, "Failed to delete in target") from exc
    return True


def mirror_changes(
    changes: Sequence[Change],
    source: Path,
    target: Path,
    *,
    on_change: ChangeCallback | None = None,
) -> MirrorResult:
    check_roots(source, target)
    target_root = resolve_target(target)
    if not target_root.exists():
        _ensure_dir(target_root)

    result = MirrorResult()
    for change in changes:
        dst = _target_path(target_root, change.rel_path)
        if change.is_deletion:
            if delete_target_file(dst):
                result.deleted.append(change.rel_path)
                logger.debug("Deleted %s", dst)
            else:
                result.skipped.append(change.rel_path)
                logger.debug("Nothing to delete at %s", dst)
        else:
            src = _target_path(source, change.rel_path)
            _ensure_dir(dst.parent)
            copy_with_metadata(src, dst)
            result.copied.append(change.rel_path)
            logger.debug("Copied %s -> %s", src, dst)

        if on_change is not None:
            on_change(change)

    return result
