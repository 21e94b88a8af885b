from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Sequence

from fasthash.config import IndexConfig
from fasthash.differ import DiffSummary, diff_indices
from fasthash.errors import ConfigError
from fasthash.filters import build_path_filter, walk_files
from fasthash.mirror import ChangeCallback, MirrorResult, check_roots, mirror_changes, resolve_target
from fasthash.models import Change, build_index
from fasthash.scanner import ProgressCallback, hash_files
from fasthash.state_file import load_index, save_index


logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RunResult:
    changes: list[Change]
    summary: DiffSummary
    entry_count: int
    warnings: list[str] = field(default_factory=list)
    mirror: MirrorResult | None = None
    state_written: bool = False


class RunHooks:
    """Extension points the CLI uses for progress and early reporting."""

    def warn(self, message: str) -> None:
        logger.warning(message)

    def changes_ready(self, changes: Sequence[Change]) -> None:
        pass

    @contextmanager
    def hashing(self, root: Path, paths: Sequence[Path]) -> Iterator[ProgressCallback | None]:
        yield None

    @contextmanager
    def mirroring(self, changes: Sequence[Change]) -> Iterator[ChangeCallback | None]:
        yield None


def resolve_root(root: Path) -> Path:
    try:
        resolved = root.expanduser().resolve(strict=True)
    except (FileNotFoundError, RuntimeError) as exc:
        raise ConfigError(f"Failed to resolve directory: {root}") from exc
    except OSError as exc:
        raise ConfigError(f"Failed to resolve directory: {root}: {exc.strerror or exc}") from exc

    if not resolved.is_dir():
        raise ConfigError(f"Not a directory: {resolved}")
    try:
        with os.scandir(resolved):
            pass
    except OSError as exc:
        raise ConfigError(f"Directory is not readable: {resolved}: {exc.strerror or exc}") from exc
    return resolved


def report_lines(changes: Sequence[Change]) -> list[str]:
    return [str(change) for change in changes]


def _file_key(path: Path) -> tuple[int, int] | None:
    try:
        stat_result = os.stat(path)
    except OSError:
        return None
    return (stat_result.st_dev, stat_result.st_ino)


def _without_own_files(paths: Sequence[Path], own_files: Sequence[Path]) -> list[Path]:
    keys = {key for key in map(_file_key, own_files) if key is not None}
    if not keys:
        return list(paths)
    # Only same-named candidates need a stat.
    names = {name for path in own_files for name in (path.name, path.resolve().name)}
    return [path for path in paths if path.name not in names or _file_key(path) not in keys]


def run_index(config: IndexConfig, hooks: RunHooks | None = None) -> RunResult:
    """Index ``config.root``, diff against the stored snapshot, mirror and persist.

    Configuration problems are raised before anything is read or written. The
    snapshot is only replaced after hashing, diffing and (optional) mirroring
    have all succeeded.
    """
    hooks = hooks or RunHooks()
    root = resolve_root(config.root)

    target: Path | None = None
    if config.target is not None:
        target = resolve_target(config.target)
        check_roots(root, target)

    warnings: list[str] = []

    def _warn(message: str) -> None:
        warnings.append(message)
        hooks.warn(message)

    loaded = load_index(config.state_file)
    for message in loaded.warnings:
        _warn(message)

    walked = walk_files(
        root,
        build_path_filter(config.excludes),
        follow_symlinks=config.follow_symlinks,
    )
    for message in walked.warnings:
        _warn(message)

    # The snapshot (and a config file) may live inside the indexed tree.
    own_files = [path.expanduser() for path in (config.state_file, *config.extra_excluded_files)]
    paths = _without_own_files(walked.paths, own_files)

    with hooks.hashing(root, paths) as on_progress:
        entries = hash_files(
            root,
            paths,
            config.algorithm,
            workers=config.workers,
            on_progress=on_progress,
        )
    new_index = build_index(entries)
    logger.debug("Indexed %d files under %s", len(new_index), root)

    changes = diff_indices(loaded.index, new_index)
    hooks.changes_ready(changes)

    mirror_result: MirrorResult | None = None
    if target is not None:
        with hooks.mirroring(changes) as on_change:
            mirror_result = mirror_changes(changes, root, target, on_change=on_change)

    state_written = False
    if not config.no_write:
        save_index(config.state_file, new_index)
        state_written = True

    return RunResult(
        changes=changes,
        summary=DiffSummary.from_changes(changes),
        entry_count=len(new_index),
        warnings=warnings,
        mirror=mirror_result,
        state_written=state_written,
    )
