from __future__ import annotations

import os
import stat
from dataclasses import dataclass, field
from pathlib import Path

from pathspec import GitIgnoreSpec


def _normalize_pattern(pattern: str) -> str:
    normalized = pattern.strip().replace("\\", "/")
    if normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized


def relative_posix(root: Path, path: Path) -> str:
    return Path(os.path.relpath(path, root)).as_posix()


@dataclass(slots=True)
class PathFilter:
    exclude_patterns: tuple[str, ...] = ()
    _spec: GitIgnoreSpec = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        self._spec = GitIgnoreSpec.from_lines(self.exclude_patterns)

    def excludes(self, rel_path: str) -> bool:
        if not self.exclude_patterns:
            return False
        return self._spec.match_file(rel_path)

    def excludes_dir(self, rel_path: str) -> bool:
        # Trailing slash lets directory-only patterns (`build/`) apply.
        return self.excludes(rel_path) or self.excludes(f"{rel_path}/")


def build_path_filter(exclude_patterns: list[str] | tuple[str, ...] | None = None) -> PathFilter:
    exclude = tuple(
        normalized
        for normalized in (_normalize_pattern(pattern) for pattern in (exclude_patterns or []))
        if normalized
    )
    return PathFilter(exclude_patterns=exclude)


@dataclass(slots=True)
class WalkResult:
    paths: list[Path]
    warnings: list[str]


def walk_files(
    root: Path,
    path_filter: PathFilter | None = None,
    *,
    follow_symlinks: bool = False,
) -> WalkResult:
    """Collect regular files under ``root``, pruning excluded directories.

    Unreadable directories are reported in ``warnings`` and skipped. Results are
    deduplicated and ordered by their slash-separated relative path.
    """
    path_filter = path_filter or PathFilter()
    warnings: list[str] = []
    seen_dirs: set[tuple[int, int]] = set()
    found: dict[str, Path] = {}

    def _on_error(exc: OSError) -> None:
        warnings.append(f"failed to read an entry: {exc.filename or ''}: {exc.strerror or exc}")

    for dirpath, dirnames, filenames in os.walk(root, onerror=_on_error, followlinks=follow_symlinks):
        current_dir = Path(dirpath)

        if follow_symlinks:
            try:
                dir_stat = current_dir.stat()
            except OSError as exc:
                _on_error(exc)
                dirnames[:] = []
                continue
            key = (dir_stat.st_dev, dir_stat.st_ino)
            if key in seen_dirs:
                warnings.append(f"skipping already visited directory (symlink loop?): {current_dir}")
                dirnames[:] = []
                continue
            seen_dirs.add(key)

        dirnames[:] = sorted(
            name
            for name in dirnames
            if not path_filter.excludes_dir(relative_posix(root, current_dir / name))
        )

        for filename in filenames:
            file_path = current_dir / filename
            rel_path = relative_posix(root, file_path)
            if path_filter.excludes(rel_path):
                continue
            if not _is_regular_file(file_path, follow_symlinks, warnings):
                continue
            found.setdefault(rel_path, file_path)

    return WalkResult(paths=[found[rel] for rel in sorted(found)], warnings=warnings)


def _is_regular_file(path: Path, follow_symlinks: bool, warnings: list[str]) -> bool:
    try:
        mode = os.stat(path, follow_symlinks=follow_symlinks).st_mode
    except OSError as exc:
        warnings.append(f"failed to read an entry: {path}: {exc.strerror or exc}")
        return False
    return stat.S_ISREG(mode)
